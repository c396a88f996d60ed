"""Content fingerprints for secret payloads.

A fingerprint is the SHA-256 hex digest of a canonical serialization of a
secret's data payload: keys sorted, values base64 encoded, compact JSON. The
canonical form does not depend on dict ordering or on the process, so the
digest stored on a Secret stays comparable across restarts.

The path-aware variant also covers an independent base64 encoding of the
source path, so moving a mapping to another Vault path with identical content
still changes the fingerprint.
"""

from __future__ import annotations

import base64
import hashlib
import json
from typing import Mapping


def canonicalize(data: Mapping[str, bytes]) -> bytes:
    """Serialize a byte payload deterministically."""
    encoded = {key: base64.b64encode(value).decode("ascii") for key, value in data.items()}
    return json.dumps(encoded, sort_keys=True, separators=(",", ":")).encode("utf-8")


def encode_source_path(source_path: str) -> str:
    """Encode a source path for storage in an annotation."""
    return base64.b64encode(source_path.encode("utf-8")).decode("ascii")


def decode_source_path(value: str) -> str:
    """Decode a source path annotation written by encode_source_path."""
    return base64.b64decode(value.encode("ascii")).decode("utf-8")


def fingerprint(data: Mapping[str, bytes], source_path: str | None = None) -> str:
    """Compute the fingerprint of a payload.

    Args:
        data: Secret payload, key to raw bytes
        source_path: Source path to fold into the digest (path-aware variant)

    Returns:
        64 character lowercase hex digest
    """
    hasher = hashlib.sha256()
    hasher.update(canonicalize(data))
    if source_path is not None:
        hasher.update(b"\x00path:")
        hasher.update(encode_source_path(source_path).encode("ascii"))
    return hasher.hexdigest()
