"""Shared fixtures: in-memory cluster and Vault doubles."""

from __future__ import annotations

import copy
import itertools
import time
from typing import Any, Iterator
from unittest.mock import patch

import pytest
from kubernetes import client

from vault_secret_sync.constants import LABEL_MANAGED_BY
from vault_secret_sync.models import MappingRegistry, SecretMapping
from vault_secret_sync.utils.errors import SecretAlreadyExistsError, SecretNotFoundError
from vault_secret_sync.utils.secrets import encode_data

OWNER = "vault-secret-sync"


class FakeCluster:
    """Dict-backed stand-in for KubernetesCluster that counts mutations."""

    def __init__(self, namespaces: list[str] | None = None) -> None:
        self.namespaces = list(namespaces or ["default", "app"])
        self.secrets: dict[tuple[str, str], client.V1Secret] = {}
        self.created: list[tuple[str, str]] = []
        self.updated: list[tuple[str, str]] = []
        self.deleted: list[tuple[str, str]] = []
        self.deletion_events: list[tuple[str, str]] = []
        self.watch_calls = 0
        self.watch_stopped = False
        self._uids = itertools.count(1)

    def add(
        self,
        namespace: str,
        name: str,
        data: dict[str, bytes],
        labels: dict[str, str] | None = None,
        annotations: dict[str, str] | None = None,
    ) -> client.V1Secret:
        secret = client.V1Secret(
            metadata=client.V1ObjectMeta(
                name=name,
                namespace=namespace,
                uid=f"uid-{next(self._uids)}",
                labels=labels,
                annotations=annotations,
            ),
            data=encode_data(data),
            type="Opaque",
        )
        self.secrets[(namespace, name)] = secret
        return secret

    @property
    def mutations(self) -> int:
        return len(self.created) + len(self.updated) + len(self.deleted)

    def list_namespaces(self) -> list[str]:
        return list(self.namespaces)

    def get_secret(self, namespace: str, name: str) -> client.V1Secret | None:
        secret = self.secrets.get((namespace, name))
        return copy.deepcopy(secret) if secret is not None else None

    def create_secret(self, namespace: str, body: client.V1Secret) -> client.V1Secret:
        key = (namespace, body.metadata.name)
        if key in self.secrets:
            raise SecretAlreadyExistsError(f"secret {namespace}/{body.metadata.name} already exists")
        stored = copy.deepcopy(body)
        stored.metadata.uid = f"uid-{next(self._uids)}"
        self.secrets[key] = stored
        self.created.append(key)
        return copy.deepcopy(stored)

    def update_secret(self, namespace: str, body: client.V1Secret) -> client.V1Secret:
        key = (namespace, body.metadata.name)
        self.secrets[key] = copy.deepcopy(body)
        self.updated.append(key)
        return copy.deepcopy(body)

    def delete_secret(self, namespace: str, name: str) -> None:
        self.secrets.pop((namespace, name), None)
        self.deleted.append((namespace, name))

    def watch_deletions(self, label_selector: str, timeout_seconds: int) -> Iterator[tuple[str, str]]:
        self.watch_calls += 1
        events, self.deletion_events = self.deletion_events, []
        if not events:
            # Stand in for a watch window with no traffic
            time.sleep(0.01)
        yield from events

    def stop_watch(self) -> None:
        self.watch_stopped = True


class FakeStore:
    """Dict-backed stand-in for VaultSecretStore."""

    def __init__(self, secrets: dict[str, Any] | None = None) -> None:
        self.secrets = dict(secrets or {})
        self.reads: list[str] = []

    def read(self, path: str, mount: str | None = None) -> Any:
        key = f"{mount}:{path}" if mount else path
        self.reads.append(key)
        if key not in self.secrets:
            raise SecretNotFoundError(f"secret {path!r} not found")
        return copy.deepcopy(self.secrets[key])


@pytest.fixture(autouse=True)
def mock_kopf_event():
    """Kubernetes events are posted through kopf, which needs a running operator."""
    with patch("kopf.event") as mock_event:
        yield mock_event


@pytest.fixture
def mapping() -> SecretMapping:
    return SecretMapping(source_path="db/creds", destination_namespace="app", destination_name="db-secret")


@pytest.fixture
def registry(mapping: SecretMapping) -> MappingRegistry:
    return MappingRegistry([mapping])


@pytest.fixture
def cluster() -> FakeCluster:
    return FakeCluster()


@pytest.fixture
def store() -> FakeStore:
    return FakeStore({"db/creds": {"user": "u", "pass": "p"}})


def managed_labels(owner: str = OWNER) -> dict[str, str]:
    return {LABEL_MANAGED_BY: owner}
