"""Vault Secret Sync: keeps Vault secrets materialized as Kubernetes Secrets."""

__version__ = "0.1.0"
