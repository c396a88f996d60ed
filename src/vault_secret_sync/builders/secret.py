"""Builder for managed Secret objects."""

from __future__ import annotations

from typing import Mapping

from kubernetes import client

from ..constants import ANNOTATION_SOURCE_PATH, ANNOTATION_SYNC_ID, LABEL_MANAGED_BY
from ..fingerprint import encode_source_path, fingerprint
from ..models import SecretMapping
from ..utils.secrets import encode_data


def build_managed_secret(
    mapping: SecretMapping,
    data: Mapping[str, bytes],
    owner: str,
) -> client.V1Secret:
    """Create the desired Secret for a mapping.

    Args:
        mapping: Secret mapping
        data: Coerced payload read from Vault
        owner: Owner identity written to the managed-by label

    Returns:
        Secret carrying the payload, ownership label and sync annotations
    """
    return client.V1Secret(
        api_version="v1",
        kind="Secret",
        metadata=client.V1ObjectMeta(
            name=mapping.destination_name,
            namespace=mapping.destination_namespace,
            labels={LABEL_MANAGED_BY: owner},
            annotations={
                ANNOTATION_SYNC_ID: fingerprint(data, mapping.source_ref),
                ANNOTATION_SOURCE_PATH: encode_source_path(mapping.source_ref),
            },
        ),
        type=mapping.secret_type,
        data=encode_data(data),
    )


def apply_desired_state(existing: client.V1Secret, desired: client.V1Secret) -> client.V1Secret:
    """Copy data, ownership label and sync annotations onto an existing Secret.

    Labels and annotations written by others are kept; resourceVersion is left
    untouched so the replace call is checked against concurrent writers.
    """
    metadata = existing.metadata
    metadata.labels = {**(metadata.labels or {}), **(desired.metadata.labels or {})}
    metadata.annotations = {**(metadata.annotations or {}), **(desired.metadata.annotations or {})}
    existing.data = desired.data
    existing.string_data = None
    return existing
