"""Base secret store interface."""

from __future__ import annotations

from typing import Any, Protocol


class SecretStore(Protocol):
    """Protocol defining the external secret store operations."""

    def read(self, path: str, mount: str | None = None) -> dict[str, Any]:
        """Read the key/value payload stored at path.

        Args:
            path: Secret path relative to the mount
            mount: KV mount to read from; the store's default when None

        Raises:
            SecretNotFoundError: If nothing is stored at path
            MalformedPayloadError: If the stored value is not a key/value mapping
            SecretStoreError: On any other failure
        """
        ...
