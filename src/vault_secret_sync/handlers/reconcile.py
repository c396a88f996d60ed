"""Reconciliation engine: the periodic driver of the sync."""

from __future__ import annotations

import asyncio
import time

from kubernetes import client

from .. import metrics
from ..constants import DEFAULT_REFRESH_INTERVAL_SECONDS, SOURCE_RECONCILE
from ..decisions import plan_mapping
from ..models import MappingRegistry, SecretMapping
from ..services.kubernetes.base import ClusterStore
from ..tracing import trace_span
from ..utils.context import new_correlation_id, with_correlation_id
from ..utils.errors import ClusterAPIError, sanitize_exception
from ..utils.events import emit_duplicate_deleted, secret_ref
from ..workers import SyncTask, TaskQueue
from .base import BaseHandler


class ReconciliationEngine(BaseHandler):
    """Scans the cluster for every mapping and enqueues one task per mapping per cycle.

    Every namespace is searched for the mapping's destination name, which is
    how a managed Secret sitting in the wrong namespace is found and removed.
    """

    def __init__(
        self,
        cluster: ClusterStore,
        registry: MappingRegistry,
        queue: TaskQueue,
        owner: str,
    ):
        super().__init__("reconcile", owner)
        self.cluster = cluster
        self.registry = registry
        self.queue = queue
        self.cycles_completed = 0

    def scan_mapping(self, mapping: SecretMapping, namespaces: list[str]) -> SyncTask | None:
        """Inspect one mapping across namespaces and remove misplaced copies.

        Blocking; runs in a worker thread.

        Args:
            mapping: Mapping to inspect
            namespaces: All namespaces of the cluster

        Returns:
            The create or update task to enqueue, or None if the mapping was
            aborted for this cycle because of a read or delete failure
        """
        observed: dict[str, client.V1Secret] = {}
        for namespace in namespaces:
            try:
                secret = self.cluster.get_secret(namespace, mapping.destination_name)
            except ClusterAPIError as e:
                metrics.mapping_scan_errors_total.labels(stage="get").inc()
                self.log_error(
                    mapping, "Error getting secret", error=e, reason="ScanFailed", scanned_namespace=namespace
                )
                return None
            if secret is not None:
                observed[namespace] = secret

        plan = plan_mapping(mapping, observed, self.owner)

        for namespace in plan.foreign_namespaces:
            self.log_debug(
                mapping,
                "Secret with the same name in another namespace is not managed by us, leaving it",
                reason="ForeignSecret",
                found_namespace=namespace,
            )

        for namespace in plan.delete_namespaces:
            self.log_info(
                mapping,
                "Secret exists in a different namespace, deleting it",
                reason="DuplicateFound",
                found_namespace=namespace,
            )
            try:
                self.cluster.delete_secret(namespace, mapping.destination_name)
            except ClusterAPIError as e:
                metrics.mapping_scan_errors_total.labels(stage="delete").inc()
                self.log_error(
                    mapping, "Error deleting secret", error=e, reason="DeleteFailed", found_namespace=namespace
                )
                return None
            metrics.duplicates_deleted_total.inc()
            self.emit(
                emit_duplicate_deleted,
                secret_ref(namespace, mapping.destination_name, observed[namespace].metadata.uid),
                mapping.destination_namespace,
            )

        return SyncTask(kind=plan.task_kind, mapping=mapping, source=SOURCE_RECONCILE)

    async def run_cycle(self) -> int:
        """Run one reconciliation pass over all mappings.

        Returns:
            Number of tasks enqueued
        """
        with with_correlation_id(new_correlation_id("cycle")), trace_span("reconcile.cycle"):
            start_time = time.time()
            try:
                namespaces = await asyncio.to_thread(self.cluster.list_namespaces)
            except ClusterAPIError as e:
                metrics.reconcile_cycles_total.labels(result="error").inc()
                self.logger.error(f"Error listing namespaces, skipping cycle: {sanitize_exception(e)}")
                return 0

            enqueued = 0
            for mapping in self.registry:
                try:
                    task = await asyncio.to_thread(self.scan_mapping, mapping, namespaces)
                except Exception as e:
                    metrics.mapping_scan_errors_total.labels(stage="unexpected").inc()
                    self.log_error(mapping, "Unexpected error scanning mapping", error=e, reason="ScanFailed")
                    continue
                if task is None:
                    continue
                await self.queue.put(task)
                enqueued += 1

            self.cycles_completed += 1
            metrics.reconcile_cycles_total.labels(result="success").inc()
            metrics.reconcile_cycle_duration_seconds.observe(time.time() - start_time)
            self.logger.debug(f"Reconciliation cycle enqueued {enqueued} of {len(self.registry)} mappings")
            return enqueued

    async def start_reconciliation(
        self,
        interval: float,
        stop_event: asyncio.Event | None = None,
    ) -> None:
        """Run a cycle now and then every interval until stopped or cancelled.

        Args:
            interval: Seconds between cycles; non-positive values fall back to the default
            stop_event: Event that ends the loop when set
        """
        if interval <= 0:
            self.logger.warning(
                f"Invalid refresh interval {interval}, using default {DEFAULT_REFRESH_INTERVAL_SECONDS}s"
            )
            interval = DEFAULT_REFRESH_INTERVAL_SECONDS
        stop = stop_event or asyncio.Event()

        self.logger.info(f"Starting secret sync of {len(self.registry)} mappings every {interval}s")
        while not stop.is_set():
            try:
                await self.run_cycle()
            except Exception as e:
                metrics.reconcile_cycles_total.labels(result="error").inc()
                self.logger.error(f"Reconciliation cycle failed: {type(e).__name__}: {sanitize_exception(e)}")
            try:
                await asyncio.wait_for(stop.wait(), timeout=interval)
            except TimeoutError:
                continue
        self.logger.info("Stopping secret sync")
