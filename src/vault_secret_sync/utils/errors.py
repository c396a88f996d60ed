"""Error types and sanitization utilities to prevent information leakage."""

import re
from typing import Any


class SyncError(Exception):
    """Base class for all secret sync errors."""


class ConfigurationError(SyncError):
    """Invalid or incomplete configuration. Fatal at startup."""


class SecretStoreError(SyncError):
    """Reading from the external secret store failed."""


class SecretNotFoundError(SecretStoreError):
    """The source path does not exist in the external secret store."""


class MalformedPayloadError(SyncError):
    """The external store returned an empty or wrongly shaped payload."""


class ClusterAPIError(SyncError):
    """A Kubernetes API call failed for a reason other than not-found."""

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class SecretAlreadyExistsError(ClusterAPIError):
    """Creating a secret failed because the destination already exists."""

    def __init__(self, message: str) -> None:
        super().__init__(message, status=409)


# Patterns that might expose sensitive information
SENSITIVE_PATTERNS = [
    r"(hvs\.)[A-Za-z0-9_\-]{20,}",
    r"(s\.)[A-Za-z0-9]{24}",
    r"(Bearer )[A-Za-z0-9\-_\.=]+",
    r"(eyJ)[A-Za-z0-9\-_]+\.[A-Za-z0-9\-_]+\.[A-Za-z0-9\-_]*",
]

# Fields to redact completely
SENSITIVE_FIELDS = {
    "token",
    "client_token",
    "password",
    "secret",
    "jwt",
    "credentials",
    "data",
}


def sanitize_error_message(message: str) -> str:
    """Sanitize error message to remove sensitive information.

    Args:
        message: Original error message

    Returns:
        Sanitized error message with sensitive data redacted
    """
    sanitized = message

    for pattern in SENSITIVE_PATTERNS:
        sanitized = re.sub(pattern, r"\1[REDACTED]", sanitized)

    # Redact "field: value" and "field=value" pairs
    for field in SENSITIVE_FIELDS:
        sanitized = re.sub(
            rf"\b{field}(\s*[:=]\s*)([^\s,;\)]+)",
            rf"{field}\1[REDACTED]",
            sanitized,
            flags=re.IGNORECASE,
        )

    return sanitized


def sanitize_exception(error: Exception) -> str:
    """Sanitize exception message."""
    return sanitize_error_message(str(error))


def sanitize_dict(data: dict[str, Any], sensitive_keys: set[str] | None = None) -> dict[str, Any]:
    """Sanitize dictionary by redacting sensitive fields.

    Args:
        data: Dictionary to sanitize
        sensitive_keys: Additional keys to redact (merged with SENSITIVE_FIELDS)

    Returns:
        Sanitized dictionary with sensitive values redacted
    """
    if sensitive_keys is None:
        sensitive_keys = set()

    all_sensitive = SENSITIVE_FIELDS | sensitive_keys
    sanitized = {}

    for key, value in data.items():
        key_lower = key.lower()
        if any(sensitive in key_lower for sensitive in all_sensitive):
            sanitized[key] = "[REDACTED]"
        elif isinstance(value, dict):
            sanitized[key] = sanitize_dict(value, sensitive_keys)
        elif isinstance(value, str):
            sanitized[key] = sanitize_error_message(value)
        else:
            sanitized[key] = value

    return sanitized
