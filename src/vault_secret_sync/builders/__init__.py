"""Builders for managed Secret objects."""

from .secret import apply_desired_state, build_managed_secret

__all__ = ["apply_desired_state", "build_managed_secret"]
