"""Pure reconciliation decisions.

Nothing in here performs I/O: the reconciliation engine and the upsert
executor gather what they observe from Vault and the cluster and ask these
functions what to do. The per-mapping state is re-derived on every call,
never stored.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Mapping, NamedTuple

from kubernetes import client

from .constants import (
    ANNOTATION_SOURCE_PATH,
    ANNOTATION_SYNC_ID,
    LABEL_MANAGED_BY,
    TASK_CREATE,
    TASK_UPDATE,
)
from .fingerprint import fingerprint
from .models import SecretMapping
from .utils.secrets import decode_data


class UpdateAction(str, Enum):
    """Outcome of comparing an existing Secret with the desired one."""

    CONFLICT = "conflict"
    NOOP = "noop"
    UPDATE = "update"


class UpdateDecision(NamedTuple):
    action: UpdateAction
    reason: str


@dataclass(frozen=True)
class ReconcilePlan:
    """What one reconciliation pass should do for one mapping."""

    task_kind: str
    delete_namespaces: tuple[str, ...] = ()
    foreign_namespaces: tuple[str, ...] = ()


def is_managed(labels: Mapping[str, str] | None, owner: str) -> bool:
    """Check the ownership marker against this operator's identity."""
    return bool(labels) and labels.get(LABEL_MANAGED_BY) == owner


def plan_mapping(
    mapping: SecretMapping,
    observed: Mapping[str, client.V1Secret],
    owner: str,
) -> ReconcilePlan:
    """Classify a mapping from the secrets found under its name.

    Args:
        mapping: Secret mapping
        observed: Namespace to Secret, for every namespace where a Secret
            named ``mapping.destination_name`` exists
        owner: Owner identity

    Returns:
        Plan with exactly one task kind: create when nothing exists at the
        declared namespace, update otherwise. Copies in other namespaces that
        carry our ownership marker are misplaced duplicates to delete; copies
        without it are reported as foreign and left alone.
    """
    found = False
    deletes: list[str] = []
    foreign: list[str] = []
    for namespace in sorted(observed):
        if namespace == mapping.destination_namespace:
            found = True
            continue
        metadata = observed[namespace].metadata
        if is_managed(metadata.labels if metadata else None, owner):
            deletes.append(namespace)
        else:
            foreign.append(namespace)

    return ReconcilePlan(
        task_kind=TASK_UPDATE if found else TASK_CREATE,
        delete_namespaces=tuple(deletes),
        foreign_namespaces=tuple(foreign),
    )


def decide_update(
    existing: client.V1Secret,
    desired: client.V1Secret,
    source_path: str,
    owner: str,
) -> UpdateDecision:
    """Decide whether an existing Secret must be rewritten.

    Args:
        existing: Secret currently in the cluster
        desired: Secret built from the current Vault payload
        source_path: Mapping source reference (``SecretMapping.source_ref``)
        owner: Owner identity

    Returns:
        CONFLICT if the Secret is not ours, NOOP if the stored fingerprint,
        the stored source path and the fingerprint of the data actually stored
        all match the desired state, UPDATE otherwise.
    """
    metadata = existing.metadata
    if not is_managed(metadata.labels, owner):
        current = (metadata.labels or {}).get(LABEL_MANAGED_BY)
        reason = f"managed by {current!r}" if current else "ownership label missing"
        return UpdateDecision(UpdateAction.CONFLICT, reason)

    annotations = metadata.annotations or {}
    desired_annotations = desired.metadata.annotations
    desired_fingerprint = desired_annotations[ANNOTATION_SYNC_ID]

    if annotations.get(ANNOTATION_SYNC_ID) != desired_fingerprint:
        return UpdateDecision(UpdateAction.UPDATE, "source_changed")
    if annotations.get(ANNOTATION_SOURCE_PATH) != desired_annotations[ANNOTATION_SOURCE_PATH]:
        return UpdateDecision(UpdateAction.UPDATE, "source_path_changed")
    if fingerprint(decode_data(existing.data), source_path) != desired_fingerprint:
        return UpdateDecision(UpdateAction.UPDATE, "data_tampered")
    return UpdateDecision(UpdateAction.NOOP, "in_sync")
