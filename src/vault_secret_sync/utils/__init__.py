"""Utility functions for Vault Secret Sync."""

from .context import (
    get_context_dict,
    get_correlation_id,
    new_correlation_id,
    with_correlation_id,
)
from .errors import (
    ClusterAPIError,
    ConfigurationError,
    MalformedPayloadError,
    SecretAlreadyExistsError,
    SecretNotFoundError,
    SecretStoreError,
    SyncError,
    sanitize_exception,
)
from .rate_limit import call_with_rate_limit_retry, rate_limit_k8s, rate_limit_vault
from .secrets import coerce_payload, coerce_value, decode_data, encode_data
from .sharding import in_bucket, resolve_shard

__all__ = [
    "ClusterAPIError",
    "ConfigurationError",
    "MalformedPayloadError",
    "SecretAlreadyExistsError",
    "SecretNotFoundError",
    "SecretStoreError",
    "SyncError",
    "sanitize_exception",
    "get_correlation_id",
    "new_correlation_id",
    "with_correlation_id",
    "get_context_dict",
    "rate_limit_k8s",
    "rate_limit_vault",
    "call_with_rate_limit_retry",
    "coerce_payload",
    "coerce_value",
    "decode_data",
    "encode_data",
    "in_bucket",
    "resolve_shard",
]
