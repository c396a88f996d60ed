"""Event listener: recreates managed Secrets as soon as they are deleted."""

from __future__ import annotations

import asyncio
import random
import threading

from .. import metrics
from ..constants import DEFAULT_WATCH_WINDOW_SECONDS, LABEL_MANAGED_BY, SOURCE_EVENT, TASK_CREATE
from ..models import MappingRegistry
from ..services.kubernetes.base import ClusterStore
from ..utils.errors import sanitize_exception
from ..workers import SyncTask, TaskQueue
from .base import BaseHandler


class EventListener(BaseHandler):
    """Watches deletions of Secrets carrying our ownership label.

    Runs alongside the periodic reconciliation; both end up in the same
    idempotent executor, so a Secret recreated twice costs a no-op compare.
    """

    def __init__(
        self,
        cluster: ClusterStore,
        registry: MappingRegistry,
        queue: TaskQueue,
        owner: str,
        watch_window_seconds: int = DEFAULT_WATCH_WINDOW_SECONDS,
    ):
        super().__init__("watch", owner)
        self.cluster = cluster
        self.registry = registry
        self.queue = queue
        self.watch_window_seconds = watch_window_seconds
        self._thread_stop = threading.Event()

    @property
    def label_selector(self) -> str:
        return f"{LABEL_MANAGED_BY}={self.owner}"

    def handle_deletion(self, namespace: str, name: str) -> bool:
        """Schedule recreation of a deleted Secret.

        Must run on the event loop thread. Never blocks: a full queue drops
        its oldest task instead.

        Returns:
            True if a create task was enqueued
        """
        mapping = self.registry.lookup(namespace, name)
        if mapping is None:
            metrics.deletion_events_total.labels(result="ignored").inc()
            self.logger.info(f"Deleted secret {namespace}/{name} has no mapping on this replica, ignoring")
            return False

        self.log_info(mapping, "Secret deleted, scheduling recreation", reason="SecretDeleted")
        self.queue.offer(SyncTask(kind=TASK_CREATE, mapping=mapping, source=SOURCE_EVENT))
        metrics.deletion_events_total.labels(result="enqueued").inc()
        return True

    async def start_event_watch(self, stop_event: asyncio.Event | None = None) -> None:
        """Watch for deletions until stopped or cancelled.

        The blocking watch stream is consumed in a daemon thread which hands
        every deletion to the event loop.
        """
        loop = asyncio.get_running_loop()
        stop = stop_event or asyncio.Event()
        self._thread_stop.clear()
        thread = threading.Thread(target=self._watch_forever, args=(loop,), name="secret-watch", daemon=True)
        thread.start()
        self.logger.info(f"Watching secret deletions with selector {self.label_selector}")
        try:
            await stop.wait()
        finally:
            self._thread_stop.set()
            self.cluster.stop_watch()
            self.logger.info("Stopping secret watch")

    def _watch_forever(self, loop: asyncio.AbstractEventLoop) -> None:
        backoff_seconds = 1
        while not self._thread_stop.is_set():
            try:
                for namespace, name in self.cluster.watch_deletions(self.label_selector, self.watch_window_seconds):
                    if self._thread_stop.is_set():
                        break
                    loop.call_soon_threadsafe(self.handle_deletion, namespace, name)
                backoff_seconds = 1
            except Exception as e:
                metrics.watch_errors_total.inc()
                self.logger.error(
                    f"Secret watch failed, reconnecting in ~{backoff_seconds}s: "
                    f"{type(e).__name__}: {sanitize_exception(e)}"
                )
                self._thread_stop.wait(backoff_seconds * (0.5 + random.random()))  # noqa: S311
                backoff_seconds = min(backoff_seconds * 2, 30)
