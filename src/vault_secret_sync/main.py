"""Main entry point for Vault Secret Sync."""

from __future__ import annotations

import asyncio
import logging
import os
from typing import Any

import kopf

from . import health
from . import logging as structured_logging
from .config import load_config
from .operator import SecretSyncOperator
from .services.kubernetes.client import KubernetesCluster, get_core_api
from .services.vault.client import VaultSecretStore
from .tracing import initialize_tracing
from .utils.errors import ConfigurationError, sanitize_exception

logger = logging.getLogger(__name__)


@kopf.on.startup()
async def configure(settings: kopf.OperatorSettings, memo: kopf.Memo, **_: Any) -> None:
    """Configure the operator and start the secret sync."""
    structured_logging.setup_structured_logging(os.getenv("LOG_LEVEL", "INFO"))
    initialize_tracing()

    settings.networking.request_timeout = 30.0

    try:
        config = load_config()
    except ConfigurationError as e:
        raise kopf.PermanentError(f"Invalid configuration: {e}") from e

    cluster = KubernetesCluster(get_core_api())
    store = VaultSecretStore(config.vault)
    operator = SecretSyncOperator(config, cluster, store)

    memo.operator = operator
    memo.metrics_server = health.start_metrics_server(config.metrics_port, lambda: operator.ready)
    memo.sync_task = asyncio.create_task(operator.run(), name="vault-secret-sync")
    memo.sync_task.add_done_callback(_log_sync_exit)
    logger.info(f"Vault secret sync started with {len(config.registry)} mappings")


def _log_sync_exit(task: asyncio.Task) -> None:
    """Log a sync task that ended with an error; readiness already reports it."""
    if task.cancelled():
        return
    error = task.exception()
    if error is not None:
        logger.error(f"Secret sync stopped unexpectedly: {sanitize_exception(error)}")


@kopf.on.cleanup()
async def cleanup(memo: kopf.Memo, **_: Any) -> None:
    """Stop the secret sync, letting in-flight tasks finish."""
    operator = memo.get("operator")
    if operator is not None:
        operator.stop()
    sync_task = memo.get("sync_task")
    try:
        if sync_task is not None:
            await sync_task
    finally:
        metrics_server = memo.get("metrics_server")
        if metrics_server is not None:
            metrics_server.shutdown()


@kopf.on.probe(id="queue_depth")
def queue_depth(memo: kopf.Memo, **_: Any) -> int:
    """Report the number of queued sync tasks."""
    return memo.operator.queue.qsize()


@kopf.on.probe(id="ready")
def ready(memo: kopf.Memo, **_: Any) -> bool:
    """Report whether the first reconciliation cycle has completed."""
    return memo.operator.ready


def run() -> None:
    """Run the operator watching all namespaces."""
    kopf.run(clusterwide=True, standalone=True, liveness_endpoint=os.getenv("LIVENESS_ENDPOINT"))
