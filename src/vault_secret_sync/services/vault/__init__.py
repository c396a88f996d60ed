"""Vault secret store client."""

from .base import SecretStore
from .client import VaultSecretStore

__all__ = ["SecretStore", "VaultSecretStore"]
