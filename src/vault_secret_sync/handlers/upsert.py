"""Upsert executor: the only component that writes destination Secrets."""

from __future__ import annotations

import time
from enum import Enum

from kubernetes import client

from .. import metrics
from ..builders.secret import apply_desired_state, build_managed_secret
from ..constants import LABEL_MANAGED_BY, TASK_CREATE, TASK_UPDATE
from ..decisions import UpdateAction, decide_update, is_managed
from ..models import SecretMapping
from ..services.kubernetes.base import ClusterStore
from ..services.vault.base import SecretStore
from ..tracing import set_span_status, trace_span
from ..utils.context import new_correlation_id, with_correlation_id
from ..utils.errors import (
    ClusterAPIError,
    MalformedPayloadError,
    SecretAlreadyExistsError,
    SecretStoreError,
    sanitize_exception,
)
from ..utils.events import (
    emit_ownership_conflict,
    emit_secret_created,
    emit_secret_updated,
    emit_sync_failed,
    secret_ref,
)
from ..utils.secrets import coerce_payload
from ..workers import SyncTask
from .base import BaseHandler


class TaskResult(str, Enum):
    """Outcome of one create or update task."""

    CREATED = "created"
    UPDATED = "updated"
    NOOP = "noop"
    CONFLICT = "conflict"
    FAILED = "failed"


class UpsertExecutor(BaseHandler):
    """Runs create and update tasks against Vault and the cluster.

    Every failure is logged and turned into a TaskResult; nothing is raised
    past run(). A failed task is retried by the next reconciliation cycle or
    the next deletion event.
    """

    def __init__(self, cluster: ClusterStore, store: SecretStore, owner: str):
        super().__init__("upsert", owner)
        self.cluster = cluster
        self.store = store

    def run(self, task: SyncTask) -> TaskResult:
        """Execute a task.

        Raises:
            ValueError: If the task kind is unknown
        """
        mapping = task.mapping
        attributes = {
            "sync.task": task.kind,
            "sync.source": task.source,
            "k8s.namespace": mapping.destination_namespace,
            "k8s.secret": mapping.destination_name,
        }
        with with_correlation_id(new_correlation_id(task.kind)), trace_span(f"sync.{task.kind}", attributes):
            start_time = time.time()
            try:
                if task.kind == TASK_CREATE:
                    result = self.create(mapping)
                elif task.kind == TASK_UPDATE:
                    result = self.update(mapping)
                else:
                    raise ValueError(f"unknown task kind {task.kind!r}")
            finally:
                duration = time.time() - start_time
                metrics.task_duration_seconds.labels(kind=task.kind).observe(duration)

            metrics.tasks_total.labels(kind=task.kind, result=result.value).inc()
            set_span_status(result is not TaskResult.FAILED, result.value)
            return result

    def build_desired(self, mapping: SecretMapping) -> client.V1Secret | None:
        """Read the mapping's Vault payload and build the desired Secret.

        Returns:
            Desired Secret, or None when the payload could not be read or is malformed
        """
        try:
            payload = self.store.read(mapping.source_path, mount=mapping.mount)
            data = coerce_payload(payload)
        except SecretStoreError as e:
            self.log_error(mapping, "Error reading secret from Vault", error=e, reason="VaultReadFailed")
            self._fail(mapping, "Error reading secret from Vault", error=e)
            return None
        except MalformedPayloadError as e:
            self.log_error(mapping, "Invalid secret payload in Vault", error=e, reason="MalformedPayload")
            self._fail(mapping, "Invalid secret payload in Vault", error=e)
            return None
        return build_managed_secret(mapping, data, self.owner)

    def create(self, mapping: SecretMapping) -> TaskResult:
        """Create the destination Secret, falling back to update if it already exists."""
        return self._create(mapping, fallback=True)

    def update(self, mapping: SecretMapping) -> TaskResult:
        """Bring an existing destination Secret in line with Vault."""
        return self._update(mapping, desired=None, fallback=True)

    def _create(self, mapping: SecretMapping, fallback: bool) -> TaskResult:
        desired = self.build_desired(mapping)
        if desired is None:
            return TaskResult.FAILED

        try:
            created = self.cluster.create_secret(mapping.destination_namespace, desired)
        except SecretAlreadyExistsError:
            if not fallback:
                self.log_error(mapping, "Secret appeared and vanished while syncing", reason="CreateRace")
                return self._fail(mapping, "Secret appeared and vanished while syncing")
            self.log_debug(mapping, "Secret already exists, updating it instead", reason="AlreadyExists")
            return self._update(mapping, desired=desired, fallback=False)
        except ClusterAPIError as e:
            self.log_error(mapping, "Error creating secret", error=e, reason="CreateFailed")
            return self._fail(mapping, "Error creating secret", error=e)

        uid = getattr(getattr(created, "metadata", None), "uid", None)
        self.log_info(mapping, "Secret created", reason="Created")
        self.emit(
            emit_secret_created,
            secret_ref(mapping.destination_namespace, mapping.destination_name, uid),
            mapping.source_ref,
        )
        return TaskResult.CREATED

    def _update(
        self,
        mapping: SecretMapping,
        desired: client.V1Secret | None,
        fallback: bool,
    ) -> TaskResult:
        try:
            existing = self.cluster.get_secret(mapping.destination_namespace, mapping.destination_name)
        except ClusterAPIError as e:
            self.log_error(mapping, "Error getting existing secret", error=e, reason="GetFailed")
            return self._fail(mapping, "Error getting existing secret", error=e)

        if existing is None:
            if not fallback:
                self.log_error(mapping, "Secret vanished while syncing", reason="UpdateRace")
                return self._fail(mapping, "Secret vanished while syncing")
            self.log_info(mapping, "Secret not found, creating it", reason="NotFound")
            return self._create(mapping, fallback=False)

        ref = secret_ref(mapping.destination_namespace, mapping.destination_name, existing.metadata.uid)

        # Never read Vault for a Secret we are not allowed to write
        if not is_managed(existing.metadata.labels, self.owner):
            return self._conflict(mapping, existing, ref)

        if desired is None:
            desired = self.build_desired(mapping)
            if desired is None:
                return TaskResult.FAILED

        decision = decide_update(existing, desired, mapping.source_ref, self.owner)
        if decision.action is UpdateAction.CONFLICT:
            return self._conflict(mapping, existing, ref)
        if decision.action is UpdateAction.NOOP:
            self.log_debug(mapping, "Secret is up to date", reason="InSync")
            return TaskResult.NOOP

        metrics.drift_detected_total.labels(reason=decision.reason).inc()
        try:
            self.cluster.update_secret(mapping.destination_namespace, apply_desired_state(existing, desired))
        except ClusterAPIError as e:
            self.log_error(mapping, "Error updating secret", error=e, reason="UpdateFailed")
            return self._fail(mapping, "Error updating secret", error=e, uid=existing.metadata.uid)

        self.log_info(mapping, "Secret updated", reason="Updated", drift=decision.reason)
        self.emit(emit_secret_updated, ref, mapping.source_ref)
        return TaskResult.UPDATED

    def _conflict(self, mapping: SecretMapping, existing: client.V1Secret, ref: dict) -> TaskResult:
        current_owner = (existing.metadata.labels or {}).get(LABEL_MANAGED_BY)
        metrics.ownership_conflicts_total.inc()
        self.log_warning(
            mapping,
            f"Secret is not managed by {self.owner}, refusing to overwrite",
            reason="OwnershipConflict",
            current_owner=current_owner,
        )
        self.emit(emit_ownership_conflict, ref, self.owner)
        return TaskResult.CONFLICT

    def _fail(
        self,
        mapping: SecretMapping,
        message: str,
        error: Exception | None = None,
        uid: str | None = None,
    ) -> TaskResult:
        """Record a Warning event on the destination Secret and return FAILED."""
        if error is not None:
            message = f"{message}: {sanitize_exception(error)}"
        ref = secret_ref(mapping.destination_namespace, mapping.destination_name, uid)
        self.emit(emit_sync_failed, ref, message)
        return TaskResult.FAILED
