"""Base handler class with common functionality for sync components."""

from __future__ import annotations

import logging
from typing import Any, Callable

from ..logging import log_sync_event
from ..models import SecretMapping
from ..utils.errors import sanitize_exception


class BaseHandler:
    """Base class for the engine, the executor and the listener."""

    def __init__(self, component: str, owner: str):
        """Initialize base handler.

        Args:
            component: Component name written to every log line
            owner: Owner identity of this operator
        """
        self.component = component
        self.owner = owner
        self.logger = logging.getLogger(f"vault_secret_sync.{component}")

    def _log(
        self,
        level: int,
        mapping: SecretMapping,
        message: str,
        event: str,
        reason: str,
        **kwargs: Any,
    ) -> None:
        log_sync_event(
            self.logger,
            component=self.component,
            namespace=mapping.destination_namespace,
            name=mapping.destination_name,
            event=event,
            reason=reason,
            message=message,
            level=level,
            source_path=mapping.source_ref,
            **kwargs,
        )

    def log_debug(self, mapping: SecretMapping, message: str, reason: str = "Debug", **kwargs: Any) -> None:
        """Log a debug-level structured log message."""
        self._log(logging.DEBUG, mapping, message, "debug", reason, **kwargs)

    def log_info(self, mapping: SecretMapping, message: str, reason: str = "Info", **kwargs: Any) -> None:
        """Log an info-level structured log message."""
        self._log(logging.INFO, mapping, message, "info", reason, **kwargs)

    def log_warning(self, mapping: SecretMapping, message: str, reason: str = "Warning", **kwargs: Any) -> None:
        """Log a warning-level structured log message."""
        self._log(logging.WARNING, mapping, message, "warning", reason, **kwargs)

    def log_error(
        self,
        mapping: SecretMapping,
        message: str,
        error: Exception | None = None,
        reason: str = "Error",
        **kwargs: Any,
    ) -> None:
        """Log an error-level structured log message.

        Args:
            mapping: Mapping the message is about
            message: Log message
            error: Optional exception to include sanitized error details
            reason: Reason for the event (default: "Error")
            **kwargs: Additional fields to include in the log
        """
        if error is not None:
            kwargs["error"] = sanitize_exception(error)
            kwargs["error_type"] = type(error).__name__
        self._log(logging.ERROR, mapping, message, "error", reason, **kwargs)

    def emit(self, emit_fn: Callable[..., None], *args: Any) -> None:
        """Emit a Kubernetes event; failing to record it never fails the caller."""
        try:
            emit_fn(*args)
        except Exception as e:
            self.logger.warning(f"Failed to emit Kubernetes event: {sanitize_exception(e)}")
