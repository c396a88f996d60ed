"""Utilities for Kubernetes Secret payloads."""

from __future__ import annotations

import base64
import binascii
import json
from typing import Any, Mapping

from .errors import MalformedPayloadError


def coerce_value(value: Any) -> bytes:
    """Convert a Vault value to the raw bytes stored in a Secret.

    Args:
        value: Value as returned by Vault (JSON types or bytes)

    Returns:
        Raw bytes
    """
    if isinstance(value, bytes):
        return value
    if isinstance(value, str):
        return value.encode("utf-8")
    if isinstance(value, bool):
        return b"true" if value else b"false"
    if value is None:
        return b""
    if isinstance(value, (dict, list)):
        return json.dumps(value, sort_keys=True, separators=(",", ":")).encode("utf-8")
    return str(value).encode("utf-8")


def coerce_payload(payload: Any) -> dict[str, bytes]:
    """Convert a Vault key/value payload into Secret data.

    Raises:
        MalformedPayloadError: If the payload is not a mapping or is empty
    """
    if not isinstance(payload, Mapping):
        raise MalformedPayloadError(f"expected a key/value mapping, got {type(payload).__name__}")
    if not payload:
        raise MalformedPayloadError("no data found in secret")
    return {str(key): coerce_value(value) for key, value in payload.items()}


def encode_data(data: Mapping[str, bytes]) -> dict[str, str]:
    """Base64 encode Secret data for the Kubernetes API."""
    return {key: base64.b64encode(value).decode("ascii") for key, value in data.items()}


def decode_data(data: Mapping[str, Any] | None) -> dict[str, bytes]:
    """Decode Secret data as returned by the Kubernetes API.

    Values that are not valid base64 are taken verbatim.
    """
    result: dict[str, bytes] = {}
    for key, value in (data or {}).items():
        if isinstance(value, bytes):
            result[key] = value
            continue
        try:
            result[key] = base64.b64decode(value, validate=True)
        except (binascii.Error, ValueError):
            result[key] = str(value).encode("utf-8")
    return result
