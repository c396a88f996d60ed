"""Base cluster store interface."""

from __future__ import annotations

from typing import Iterator, Protocol

from kubernetes import client


class ClusterStore(Protocol):
    """Protocol defining the cluster operations on Secrets."""

    def list_namespaces(self) -> list[str]:
        """List the names of all namespaces."""
        ...

    def get_secret(self, namespace: str, name: str) -> client.V1Secret | None:
        """Get a secret, or None if it does not exist."""
        ...

    def create_secret(self, namespace: str, body: client.V1Secret) -> client.V1Secret:
        """Create a secret.

        Raises:
            SecretAlreadyExistsError: If the secret already exists
        """
        ...

    def update_secret(self, namespace: str, body: client.V1Secret) -> client.V1Secret:
        """Replace an existing secret."""
        ...

    def delete_secret(self, namespace: str, name: str) -> None:
        """Delete a secret."""
        ...

    def watch_deletions(self, label_selector: str, timeout_seconds: int) -> Iterator[tuple[str, str]]:
        """Yield (namespace, name) for secrets deleted during one watch window."""
        ...

    def stop_watch(self) -> None:
        """Interrupt the open watch stream, if any."""
        ...
