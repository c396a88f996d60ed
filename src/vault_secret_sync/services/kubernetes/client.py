"""Kubernetes CoreV1 client implementation for Secrets."""

from __future__ import annotations

import logging
import threading
import time
from typing import Any, Callable, Iterator

from kubernetes import client, config, watch
from kubernetes.client.exceptions import ApiException

from ... import metrics
from ...constants import FIELD_MANAGER
from ...utils.errors import ClusterAPIError, SecretAlreadyExistsError, sanitize_exception
from ...utils.rate_limit import call_with_rate_limit_retry

logger = logging.getLogger(__name__)


def get_core_api() -> client.CoreV1Api:
    """Get Kubernetes CoreV1Api client.

    Uses the in-cluster service account when available, otherwise the local
    kubeconfig.
    """
    try:
        config.load_incluster_config()
    except config.ConfigException:
        config.load_kube_config()

    return client.CoreV1Api()


class KubernetesCluster:
    """Secret operations against the Kubernetes API."""

    def __init__(self, api: client.CoreV1Api) -> None:
        self.api = api
        self._active_watcher: watch.Watch | None = None
        self._watcher_lock = threading.Lock()

    def _call(self, operation: str, func: Callable[..., Any], **kwargs: Any) -> Any:
        """Call the API with rate limiting and metrics; errors propagate as ApiException."""
        start_time = time.time()
        try:
            result = call_with_rate_limit_retry(func, **kwargs)
            metrics.api_call_total.labels(api_type="k8s", operation=operation, result="success").inc()
            return result
        except ApiException as e:
            result_label = "not_found" if e.status == 404 else "error"
            metrics.api_call_total.labels(api_type="k8s", operation=operation, result=result_label).inc()
            raise
        finally:
            duration = time.time() - start_time
            metrics.api_call_duration_seconds.labels(api_type="k8s", operation=operation).observe(duration)

    def list_namespaces(self) -> list[str]:
        """List the names of all namespaces."""
        try:
            result = self._call("list_namespaces", self.api.list_namespace)
        except ApiException as e:
            raise ClusterAPIError(f"error listing namespaces: {sanitize_exception(e)}", e.status) from e
        return [ns.metadata.name for ns in result.items]

    def get_secret(self, namespace: str, name: str) -> client.V1Secret | None:
        """Get a secret, or None if it does not exist."""
        try:
            return self._call("get_secret", self.api.read_namespaced_secret, name=name, namespace=namespace)
        except ApiException as e:
            if e.status == 404:
                return None
            raise ClusterAPIError(
                f"error getting secret {namespace}/{name}: {sanitize_exception(e)}", e.status
            ) from e

    def create_secret(self, namespace: str, body: client.V1Secret) -> client.V1Secret:
        """Create a secret."""
        name = body.metadata.name
        try:
            return self._call(
                "create_secret",
                self.api.create_namespaced_secret,
                namespace=namespace,
                body=body,
                field_manager=FIELD_MANAGER,
            )
        except ApiException as e:
            if e.status == 409:
                raise SecretAlreadyExistsError(f"secret {namespace}/{name} already exists") from e
            raise ClusterAPIError(
                f"error creating secret {namespace}/{name}: {sanitize_exception(e)}", e.status
            ) from e

    def update_secret(self, namespace: str, body: client.V1Secret) -> client.V1Secret:
        """Replace an existing secret.

        The body's resourceVersion is sent along, so a concurrent modification
        makes the call fail with a conflict instead of overwriting it.
        """
        name = body.metadata.name
        try:
            return self._call(
                "update_secret",
                self.api.replace_namespaced_secret,
                name=name,
                namespace=namespace,
                body=body,
                field_manager=FIELD_MANAGER,
            )
        except ApiException as e:
            raise ClusterAPIError(
                f"error updating secret {namespace}/{name}: {sanitize_exception(e)}", e.status
            ) from e

    def delete_secret(self, namespace: str, name: str) -> None:
        """Delete a secret."""
        try:
            self._call("delete_secret", self.api.delete_namespaced_secret, name=name, namespace=namespace)
        except ApiException as e:
            raise ClusterAPIError(
                f"error deleting secret {namespace}/{name}: {sanitize_exception(e)}", e.status
            ) from e

    def watch_deletions(self, label_selector: str, timeout_seconds: int) -> Iterator[tuple[str, str]]:
        """Yield (namespace, name) for secrets deleted during one watch window.

        The stream ends when the server closes the window, or after the next
        event once stop_watch() has been called.

        Raises:
            ClusterAPIError: If the watch cannot be opened or breaks
        """
        watcher = watch.Watch()
        with self._watcher_lock:
            self._active_watcher = watcher
        try:
            stream = watcher.stream(
                self.api.list_secret_for_all_namespaces,
                label_selector=label_selector,
                timeout_seconds=timeout_seconds,
            )
            for event in stream:
                event_type = event.get("type")
                obj = event.get("object")
                if event_type == "ERROR":
                    raise ClusterAPIError(f"watch error event: {obj}")
                if event_type != "DELETED" or obj is None or obj.metadata is None:
                    continue
                yield obj.metadata.namespace, obj.metadata.name
        except ApiException as e:
            raise ClusterAPIError(f"error watching secrets: {sanitize_exception(e)}", e.status) from e
        finally:
            with self._watcher_lock:
                if self._active_watcher is watcher:
                    self._active_watcher = None

    def stop_watch(self) -> None:
        """Interrupt the open watch stream, if any."""
        with self._watcher_lock:
            active_watcher = self._active_watcher
        if active_watcher is not None:
            active_watcher.stop()
