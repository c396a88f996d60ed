"""Correlation ids tying together the log lines of one cycle or one task."""

from __future__ import annotations

import contextvars
import uuid
from contextlib import contextmanager
from typing import Iterator

correlation_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "correlation_id", default=None
)


def new_correlation_id(prefix: str) -> str:
    """Create a short correlation ID such as ``cycle-1a2b3c4d``."""
    return f"{prefix}-{uuid.uuid4().hex[:8]}"


def get_correlation_id() -> str | None:
    return correlation_id.get()


@contextmanager
def with_correlation_id(corr_id: str) -> Iterator[str]:
    """Bind a correlation ID for the duration of a block.

    Context variables are copied into ``asyncio.to_thread`` calls, so blocking
    work started inside the block logs with the same id.
    """
    token = correlation_id.set(corr_id)
    try:
        yield corr_id
    finally:
        correlation_id.reset(token)


def get_context_dict() -> dict[str, str]:
    """Context fields to merge into a structured log line."""
    corr_id = correlation_id.get()
    return {"correlation_id": corr_id} if corr_id else {}
