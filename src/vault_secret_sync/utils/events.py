"""Utilities for emitting Kubernetes events on managed Secrets."""

from __future__ import annotations

from typing import Any

import kopf

from ..constants import (
    EVENT_REASON_DUPLICATE_DELETED,
    EVENT_REASON_OWNERSHIP_CONFLICT,
    EVENT_REASON_SECRET_CREATED,
    EVENT_REASON_SECRET_UPDATED,
    EVENT_REASON_SYNC_FAILED,
)


def secret_ref(namespace: str, name: str, uid: str | None = None) -> dict[str, Any]:
    """Build the object reference an event is attached to."""
    metadata: dict[str, Any] = {"namespace": namespace, "name": name}
    if uid:
        metadata["uid"] = uid
    return {"apiVersion": "v1", "kind": "Secret", "metadata": metadata}


def emit_event(
    obj: dict[str, Any],
    reason: str,
    message: str,
    type_: str = "Normal",
) -> None:
    """Emit a Kubernetes event.

    Args:
        obj: Object reference (apiVersion, kind, metadata)
        reason: Event reason
        message: Event message
        type_: Event type (Normal or Warning)
    """
    kopf.event(
        obj,
        reason=reason,
        message=message,
        type=type_,
    )


def emit_secret_created(obj: dict[str, Any], source_path: str) -> None:
    """Emit secret created event."""
    emit_event(obj, EVENT_REASON_SECRET_CREATED, f"Secret created from Vault path {source_path}")


def emit_secret_updated(obj: dict[str, Any], source_path: str) -> None:
    """Emit secret updated event."""
    emit_event(obj, EVENT_REASON_SECRET_UPDATED, f"Secret updated from Vault path {source_path}")


def emit_ownership_conflict(obj: dict[str, Any], owner: str) -> None:
    """Emit ownership conflict event."""
    emit_event(
        obj,
        EVENT_REASON_OWNERSHIP_CONFLICT,
        f"Secret is not managed by {owner}; refusing to overwrite",
        type_="Warning",
    )


def emit_duplicate_deleted(obj: dict[str, Any], expected_namespace: str) -> None:
    """Emit duplicate deleted event."""
    emit_event(
        obj,
        EVENT_REASON_DUPLICATE_DELETED,
        f"Deleted misplaced copy; secret belongs in namespace {expected_namespace}",
    )


def emit_sync_failed(obj: dict[str, Any], message: str) -> None:
    """Emit sync failed event."""
    emit_event(obj, EVENT_REASON_SYNC_FAILED, message, type_="Warning")
