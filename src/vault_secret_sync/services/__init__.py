"""Clients for the external systems the operator talks to."""
