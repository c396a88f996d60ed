"""Bounded task queue and worker pool.

Producers (the reconciliation engine and the event listener) put SyncTasks on
a shared bounded queue; a fixed number of workers drain it and run the upsert
executor. A task only names the mapping and what to do: the Vault value is
read when the task executes, so a late task always acts on fresh data.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable

from . import metrics
from .constants import SOURCE_RECONCILE
from .models import SecretMapping
from .utils.errors import sanitize_exception

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SyncTask:
    """A unit of corrective work for one mapping."""

    kind: str
    mapping: SecretMapping
    source: str = SOURCE_RECONCILE
    enqueued_at: float = field(default_factory=time.monotonic, compare=False)


class TaskQueue:
    """Bounded FIFO of SyncTasks shared by all producers and workers.

    Must be used from the event loop thread.
    """

    def __init__(self, maxsize: int) -> None:
        if maxsize <= 0:
            raise ValueError("queue size must be positive")
        self.maxsize = maxsize
        self._queue: asyncio.Queue[SyncTask] = asyncio.Queue(maxsize=maxsize)

    def qsize(self) -> int:
        return self._queue.qsize()

    def _enqueued(self, task: SyncTask) -> None:
        metrics.tasks_enqueued_total.labels(kind=task.kind, source=task.source).inc()
        metrics.queue_depth.set(self._queue.qsize())

    async def put(self, task: SyncTask) -> None:
        """Enqueue a task, waiting for room when the queue is full. Never drops."""
        await self._queue.put(task)
        self._enqueued(task)

    def offer(self, task: SyncTask) -> SyncTask | None:
        """Enqueue a task without blocking.

        When the queue is full the oldest queued task is dropped to make room.

        Returns:
            The dropped task, or None
        """
        dropped = None
        if self._queue.full():
            dropped = self._queue.get_nowait()
            self._queue.task_done()
            metrics.queue_dropped_total.labels(kind=dropped.kind, source=dropped.source).inc()
            logger.warning(
                f"Task queue full ({self.maxsize}), dropped oldest {dropped.kind} task "
                f"for {dropped.mapping.destination_namespace}/{dropped.mapping.destination_name}"
            )
        self._queue.put_nowait(task)
        self._enqueued(task)
        return dropped

    async def get(self) -> SyncTask:
        task = await self._queue.get()
        metrics.queue_depth.set(self._queue.qsize())
        return task

    def task_done(self) -> None:
        self._queue.task_done()

    async def join(self) -> None:
        """Wait until every enqueued task has been processed."""
        await self._queue.join()


class WorkerPool:
    """Fixed number of workers draining a TaskQueue.

    Handlers are blocking and run in threads. A task that is running when the
    pool is cancelled is allowed to finish, so a destination Secret is never
    left half written.
    """

    def __init__(self, queue: TaskQueue, handler: Callable[[SyncTask], Any], size: int) -> None:
        if size <= 0:
            raise ValueError("worker count must be positive")
        self.queue = queue
        self.handler = handler
        self.size = size
        self._workers: list[asyncio.Task[None]] = []

    def start(self, task_group: asyncio.TaskGroup) -> list[asyncio.Task[None]]:
        """Spawn the workers inside a task group."""
        self._workers = [
            task_group.create_task(self._worker(), name=f"sync-worker-{i}") for i in range(self.size)
        ]
        logger.info(f"Started {self.size} sync workers")
        return self._workers

    def stop(self) -> None:
        """Cancel the workers. In-flight tasks still run to completion."""
        for worker in self._workers:
            worker.cancel()

    async def _worker(self) -> None:
        while True:
            task = await self.queue.get()
            try:
                await self._execute(task)
            finally:
                self.queue.task_done()

    async def _execute(self, task: SyncTask) -> None:
        future = asyncio.ensure_future(asyncio.to_thread(self._run_handler, task))
        try:
            await asyncio.shield(future)
        except asyncio.CancelledError:
            await asyncio.wait({future})
            raise

    def _run_handler(self, task: SyncTask) -> None:
        try:
            self.handler(task)
        except Exception as e:
            metrics.tasks_total.labels(kind=task.kind, result="error").inc()
            logger.error(
                f"Unhandled error in {task.kind} task for "
                f"{task.mapping.destination_namespace}/{task.mapping.destination_name}: "
                f"{type(e).__name__}: {sanitize_exception(e)}"
            )
