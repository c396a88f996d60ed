"""Tests for the upsert executor."""

from __future__ import annotations

import base64
from unittest.mock import MagicMock

import pytest

from conftest import OWNER, managed_labels
from vault_secret_sync.constants import (
    ANNOTATION_SYNC_ID,
    LABEL_MANAGED_BY,
    SOURCE_EVENT,
    TASK_CREATE,
    TASK_UPDATE,
)
from vault_secret_sync.fingerprint import fingerprint
from vault_secret_sync.handlers.upsert import TaskResult, UpsertExecutor
from vault_secret_sync.models import create_mapping_from_spec
from vault_secret_sync.utils.errors import ClusterAPIError, SecretStoreError
from vault_secret_sync.utils.secrets import decode_data
from vault_secret_sync.workers import SyncTask


@pytest.fixture
def executor(cluster, store):
    return UpsertExecutor(cluster, store, OWNER)


def stored_data(cluster, namespace="app", name="db-secret"):
    return decode_data(cluster.secrets[(namespace, name)].data)


class TestCreate:
    """Test cases for create tasks."""

    def test_cold_start(self, executor, cluster, mapping):
        """Test that a missing Secret is created with the Vault payload."""
        result = executor.run(SyncTask(TASK_CREATE, mapping))

        assert result is TaskResult.CREATED
        assert cluster.created == [("app", "db-secret")]
        secret = cluster.secrets[("app", "db-secret")]
        assert secret.metadata.labels[LABEL_MANAGED_BY] == OWNER
        assert secret.metadata.annotations[ANNOTATION_SYNC_ID] == fingerprint(
            {"user": b"u", "pass": b"p"}, "db/creds"
        )
        assert stored_data(cluster) == {"user": b"u", "pass": b"p"}

    def test_create_emits_event(self, executor, mapping, mock_kopf_event):
        """Test that a created Secret gets a Normal event."""
        executor.run(SyncTask(TASK_CREATE, mapping))

        assert mock_kopf_event.call_args.kwargs["reason"] == "SecretCreated"

    def test_already_exists_falls_back_to_update(self, executor, cluster, mapping):
        """Test that a create racing another writer turns into an update."""
        cluster.add("app", "db-secret", {"user": b"old"}, labels=managed_labels())

        result = executor.run(SyncTask(TASK_CREATE, mapping, source=SOURCE_EVENT))

        assert result is TaskResult.UPDATED
        assert cluster.created == []
        assert cluster.updated == [("app", "db-secret")]
        assert stored_data(cluster) == {"user": b"u", "pass": b"p"}

    def test_already_exists_unmarked_is_conflict(self, executor, cluster, mapping):
        """Test that the create fallback still honours ownership."""
        cluster.add("app", "db-secret", {"user": b"theirs"})

        result = executor.run(SyncTask(TASK_CREATE, mapping))

        assert result is TaskResult.CONFLICT
        assert cluster.mutations == 0
        assert stored_data(cluster) == {"user": b"theirs"}

    def test_vault_missing(self, cluster, mapping):
        """Test that a missing source path fails without touching the cluster."""
        executor = UpsertExecutor(cluster, MagicMock(read=MagicMock(side_effect=SecretStoreError("down"))), OWNER)

        result = executor.run(SyncTask(TASK_CREATE, mapping))

        assert result is TaskResult.FAILED
        assert cluster.mutations == 0

    def test_malformed_payload(self, cluster, store, mapping):
        """Test that an empty Vault payload fails the task."""
        store.secrets["db/creds"] = {}
        executor = UpsertExecutor(cluster, store, OWNER)

        assert executor.run(SyncTask(TASK_CREATE, mapping)) is TaskResult.FAILED
        assert cluster.mutations == 0

    def test_create_api_error(self, executor, cluster, mapping):
        """Test that a failed create is reported, not raised."""
        cluster.create_secret = MagicMock(side_effect=ClusterAPIError("forbidden", 403))

        assert executor.run(SyncTask(TASK_CREATE, mapping)) is TaskResult.FAILED

    def test_failure_emits_warning(self, cluster, mapping, mock_kopf_event):
        """Test that a failed sync leaves a SyncFailed event on the destination."""
        executor = UpsertExecutor(cluster, MagicMock(read=MagicMock(side_effect=SecretStoreError("down"))), OWNER)

        executor.run(SyncTask(TASK_CREATE, mapping))

        mock_kopf_event.assert_called_once()
        obj = mock_kopf_event.call_args.args[0]
        assert obj["metadata"] == {"namespace": "app", "name": "db-secret"}
        assert mock_kopf_event.call_args.kwargs["reason"] == "SyncFailed"
        assert mock_kopf_event.call_args.kwargs["type"] == "Warning"
        assert "down" in mock_kopf_event.call_args.kwargs["message"]

    def test_legacy_mount_is_read(self, cluster, store):
        """Test that a mount + name entry reads the name inside that mount."""
        store.secrets["kv:app/db"] = {"user": "u"}
        mapping = create_mapping_from_spec(
            {"mount": "kv", "name": "app/db", "destination_namespace": "app", "destination_name": "db-secret"}
        )
        executor = UpsertExecutor(cluster, store, OWNER)

        assert executor.run(SyncTask(TASK_CREATE, mapping)) is TaskResult.CREATED
        assert store.reads == ["kv:app/db"]
        assert stored_data(cluster) == {"user": b"u"}


class TestUpdate:
    """Test cases for update tasks."""

    def test_steady_state_is_noop(self, executor, cluster, mapping):
        """Test that a second pass performs zero writes."""
        executor.run(SyncTask(TASK_CREATE, mapping))
        before = cluster.mutations

        result = executor.run(SyncTask(TASK_UPDATE, mapping))

        assert result is TaskResult.NOOP
        assert cluster.mutations == before

    def test_vault_change_updates(self, executor, cluster, store, mapping):
        """Test that a changed Vault value is written."""
        executor.run(SyncTask(TASK_CREATE, mapping))
        store.secrets["db/creds"] = {"user": "u", "pass": "rotated"}

        result = executor.run(SyncTask(TASK_UPDATE, mapping))

        assert result is TaskResult.UPDATED
        assert stored_data(cluster)["pass"] == b"rotated"

    def test_tampered_data_restored(self, executor, cluster, mapping):
        """Test that a hand-edited Secret is restored with exactly one update."""
        executor.run(SyncTask(TASK_CREATE, mapping))
        cluster.secrets[("app", "db-secret")].data["pass"] = base64.b64encode(b"edited").decode()

        result = executor.run(SyncTask(TASK_UPDATE, mapping))

        assert result is TaskResult.UPDATED
        assert len(cluster.updated) == 1
        assert stored_data(cluster)["pass"] == b"p"
        assert executor.run(SyncTask(TASK_UPDATE, mapping)) is TaskResult.NOOP

    def test_unmarked_secret_is_conflict(self, executor, cluster, store, mapping, mock_kopf_event):
        """Test that an unmarked Secret is neither written nor read from Vault."""
        cluster.add("app", "db-secret", {"user": b"theirs"})

        result = executor.run(SyncTask(TASK_UPDATE, mapping))

        assert result is TaskResult.CONFLICT
        assert cluster.mutations == 0
        assert store.reads == []
        assert mock_kopf_event.call_args.kwargs["type"] == "Warning"

    def test_foreign_owner_is_conflict(self, executor, cluster, mapping):
        """Test that another operator's Secret is left alone."""
        cluster.add("app", "db-secret", {"user": b"theirs"}, labels=managed_labels("other-sync"))

        assert executor.run(SyncTask(TASK_UPDATE, mapping)) is TaskResult.CONFLICT
        assert cluster.mutations == 0

    def test_missing_secret_is_created(self, executor, cluster, mapping):
        """Test that an update for a vanished Secret recreates it."""
        result = executor.run(SyncTask(TASK_UPDATE, mapping))

        assert result is TaskResult.CREATED
        assert cluster.created == [("app", "db-secret")]

    def test_vault_failure_keeps_existing(self, cluster, mapping):
        """Test that a Vault outage leaves the current Secret untouched."""
        cluster.add("app", "db-secret", {"user": b"old"}, labels=managed_labels())
        store = MagicMock(read=MagicMock(side_effect=SecretStoreError("sealed")))
        executor = UpsertExecutor(cluster, store, OWNER)

        assert executor.run(SyncTask(TASK_UPDATE, mapping)) is TaskResult.FAILED
        assert cluster.mutations == 0
        assert stored_data(cluster) == {"user": b"old"}

    def test_get_failure(self, executor, cluster, mapping):
        """Test that a failed read of the existing Secret fails the task."""
        cluster.get_secret = MagicMock(side_effect=ClusterAPIError("unavailable", 503))

        assert executor.run(SyncTask(TASK_UPDATE, mapping)) is TaskResult.FAILED

    def test_update_api_error(self, executor, cluster, store, mapping, mock_kopf_event):
        """Test that a rejected replace is reported, not raised."""
        executor.run(SyncTask(TASK_CREATE, mapping))
        store.secrets["db/creds"] = {"user": "new"}
        cluster.update_secret = MagicMock(side_effect=ClusterAPIError("conflict", 409))

        assert executor.run(SyncTask(TASK_UPDATE, mapping)) is TaskResult.FAILED
        assert mock_kopf_event.call_args.kwargs["reason"] == "SyncFailed"
        assert mock_kopf_event.call_args.args[0]["metadata"]["uid"]

    def test_event_failure_does_not_fail_task(self, executor, mapping, mock_kopf_event):
        """Test that failing to post an event never fails the sync."""
        mock_kopf_event.side_effect = LookupError("no operator context")

        assert executor.run(SyncTask(TASK_CREATE, mapping)) is TaskResult.CREATED


class TestRun:
    """Test cases for task dispatch."""

    def test_unknown_kind(self, executor, mapping):
        """Test that an unknown task kind is a programming error."""
        with pytest.raises(ValueError, match="unknown task kind"):
            executor.run(SyncTask("delete", mapping))
