"""Operator supervisor wiring the sync components together."""

from __future__ import annotations

import asyncio
import logging

from .config import OperatorConfig
from .handlers.reconcile import ReconciliationEngine
from .handlers.upsert import UpsertExecutor
from .handlers.watch import EventListener
from .services.kubernetes.base import ClusterStore
from .services.vault.base import SecretStore
from .workers import TaskQueue, WorkerPool

logger = logging.getLogger(__name__)


class SecretSyncOperator:
    """Owns the task queue, the worker pool and both task producers.

    run() supervises all of them in one task group: stop() or cancelling
    run() shuts down the periodic driver, the event watch and the workers
    together.
    """

    def __init__(self, config: OperatorConfig, cluster: ClusterStore, store: SecretStore) -> None:
        self.config = config
        self.registry = config.registry.for_shard(config.shard_index, config.shard_count)
        self.queue = TaskQueue(config.queue_size)
        self.executor = UpsertExecutor(cluster, store, config.owner)
        self.engine = ReconciliationEngine(cluster, self.registry, self.queue, config.owner)
        self.listener = EventListener(
            cluster,
            self.registry,
            self.queue,
            config.owner,
            watch_window_seconds=config.watch_window_seconds,
        )
        self.pool = WorkerPool(self.queue, self.executor.run, config.worker_count)
        self._stop_event = asyncio.Event()
        self._running = False

    @property
    def ready(self) -> bool:
        """True while run() is live and the first reconciliation cycle has completed."""
        return self._running and self.engine.cycles_completed > 0

    async def start_reconciliation(self, interval: float | None = None) -> None:
        """Run the periodic reconciliation until stopped or cancelled."""
        await self.engine.start_reconciliation(interval or self.config.refresh_interval, self._stop_event)

    async def start_event_watch(self) -> None:
        """Run the deletion watch until stopped or cancelled."""
        await self.listener.start_event_watch(self._stop_event)

    async def run(self) -> None:
        """Run workers and both producers until stop() is called."""
        if self.config.shard_count > 1:
            logger.info(
                f"Shard {self.config.shard_index}/{self.config.shard_count} handles "
                f"{len(self.registry)} of {len(self.config.registry)} mappings"
            )
        self._running = True
        try:
            async with asyncio.TaskGroup() as tg:
                self.pool.start(tg)
                reconcile = tg.create_task(self.start_reconciliation(), name="reconcile")
                tg.create_task(self.start_event_watch(), name="event-watch")
                await self._stop_event.wait()
                # A cycle may be blocked on a full queue once workers are gone
                reconcile.cancel()
                self.pool.stop()
        finally:
            self._running = False
        logger.info("Secret sync stopped")

    def stop(self) -> None:
        """Signal every loop to finish. In-flight tasks complete first."""
        self._stop_event.set()
