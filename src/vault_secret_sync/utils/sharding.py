"""Hash-bucket sharding of mappings across operator replicas."""

from __future__ import annotations

import hashlib
import os
import re
from typing import Mapping

from .errors import ConfigurationError

_ORDINAL_RE = re.compile(r"-(\d+)$")


def in_bucket(key: str, index: int, count: int) -> bool:
    """Check whether a key belongs to bucket ``index`` of ``count``.

    The bucket is derived from a SHA-256 of the key, so every replica agrees
    on the assignment regardless of process or platform.
    """
    if count <= 1:
        return True
    digest = hashlib.sha256(key.encode("utf-8")).digest()
    return int.from_bytes(digest[:8], "big") % count == index


def resolve_shard(environ: Mapping[str, str] | None = None) -> tuple[int, int]:
    """Resolve this replica's (index, count).

    ``SHARD_COUNT`` defaults to 1. ``SHARD_INDEX`` wins when set, otherwise
    the ordinal suffix of a StatefulSet pod name in ``HOSTNAME`` is used.

    Raises:
        ConfigurationError: If the values are not integers or out of range
    """
    env = os.environ if environ is None else environ
    try:
        count = int(env.get("SHARD_COUNT", "1"))
    except ValueError as e:
        raise ConfigurationError(f"SHARD_COUNT must be an integer: {e}") from e
    if count < 1:
        raise ConfigurationError("SHARD_COUNT must be at least 1")
    if count == 1:
        return 0, 1

    raw_index = env.get("SHARD_INDEX")
    if raw_index is None:
        match = _ORDINAL_RE.search(env.get("HOSTNAME", ""))
        if match is None:
            raise ConfigurationError(
                "SHARD_INDEX is required when SHARD_COUNT > 1 and HOSTNAME has no ordinal suffix"
            )
        raw_index = match.group(1)
    try:
        index = int(raw_index)
    except ValueError as e:
        raise ConfigurationError(f"SHARD_INDEX must be an integer: {e}") from e
    if not 0 <= index < count:
        raise ConfigurationError(f"SHARD_INDEX {index} out of range for SHARD_COUNT {count}")
    return index, count
