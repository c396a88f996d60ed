"""Structured logging configuration for Vault Secret Sync."""

import json
import logging
import sys
from typing import Any

from .constants import APP_NAME
from .utils.context import get_context_dict


def setup_structured_logging(level: str = "INFO") -> None:
    """Configure structured JSON logging."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )


def log_sync_event(
    logger: logging.Logger,
    component: str,
    namespace: str,
    name: str,
    event: str,
    reason: str,
    message: str,
    level: int = logging.INFO,
    **kwargs: Any,
) -> None:
    """Log a structured secret sync event."""
    if not logger.isEnabledFor(level):
        return
    log_data = {
        "controller": APP_NAME,
        "component": component,
        "namespace": namespace,
        "name": name,
        "event": event,
        "reason": reason,
        "message": message,
    }
    log_data.update(get_context_dict())
    log_data.update(sanitize_secrets(kwargs))
    logger.log(level, json.dumps(log_data, default=str))


def sanitize_secrets(log_data: dict[str, Any]) -> dict[str, Any]:
    """Remove secret fields from log data."""
    secret_fields = {"token", "password", "jwt", "data", "payload", "secret_id"}
    sanitized = log_data.copy()
    for field in secret_fields:
        if field in sanitized:
            sanitized[field] = "***REDACTED***"
    return sanitized
