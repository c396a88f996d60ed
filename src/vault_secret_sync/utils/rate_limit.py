"""Rate limiting utilities for API calls."""

from __future__ import annotations

import os
import threading
import time
from functools import wraps
from typing import Any, Callable, TypeVar

from kubernetes.client.exceptions import ApiException

from .. import metrics

_F = TypeVar("_F", bound=Callable[..., Any])

# Rate limit configuration
_K8S_RATE_LIMIT_PER_SECOND = float(os.getenv("K8S_RATE_LIMIT_PER_SECOND", "20.0"))
_VAULT_RATE_LIMIT_PER_SECOND = float(os.getenv("VAULT_RATE_LIMIT_PER_SECOND", "10.0"))

# Next free call slot per API; each API paces independently
_k8s_next_call_time: float = 0.0
_vault_next_call_time: float = 0.0
_k8s_lock = threading.Lock()
_vault_lock = threading.Lock()


def _reserve_slot(next_call_time: float, per_second: float) -> tuple[float, float]:
    """Claim the next call slot.

    Returns:
        Seconds to wait before calling, and the slot after this one
    """
    now = time.time()
    slot = max(now, next_call_time)
    return slot - now, slot + 1.0 / per_second


def rate_limit_k8s(func: _F) -> _F:
    """Decorator to rate limit Kubernetes API calls.

    Spaces calls out to at most K8S_RATE_LIMIT_PER_SECOND so a reconciliation
    cycle over many namespaces does not overwhelm the API server.
    """
    @wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        global _k8s_next_call_time
        with _k8s_lock:
            wait, _k8s_next_call_time = _reserve_slot(_k8s_next_call_time, _K8S_RATE_LIMIT_PER_SECOND)
        if wait > 0:
            time.sleep(wait)
        return func(*args, **kwargs)

    return wrapper  # type: ignore


def rate_limit_vault(func: _F) -> _F:
    """Decorator to rate limit Vault API calls."""
    @wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        global _vault_next_call_time
        with _vault_lock:
            wait, _vault_next_call_time = _reserve_slot(_vault_next_call_time, _VAULT_RATE_LIMIT_PER_SECOND)
        if wait > 0:
            time.sleep(wait)
        return func(*args, **kwargs)

    return wrapper  # type: ignore


def is_rate_limit_error(e: Exception) -> bool:
    """Check whether a Kubernetes API exception signals throttling."""
    if not isinstance(e, ApiException):
        return False
    # Kubernetes API rate limit errors typically return 429 or 503
    return e.status == 429 or (e.status == 503 and "rate limit" in str(e).lower())


def call_with_rate_limit_retry(
    func: Callable[..., Any],
    *args: Any,
    max_retries: int = 3,
    **kwargs: Any,
) -> Any:
    """Call a Kubernetes API function, backing off on throttling responses.

    Exponential backoff: 1s, 2s, 4s. Any other error, or throttling after the
    last retry, is raised to the caller.
    """
    attempt = 0
    while True:
        try:
            return rate_limit_k8s(func)(*args, **kwargs)
        except ApiException as e:
            if not is_rate_limit_error(e) or attempt >= max_retries:
                raise
            metrics.rate_limit_hits_total.labels(api_type="k8s").inc()
            time.sleep(2 ** attempt)
            attempt += 1
