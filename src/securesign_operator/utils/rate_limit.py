"""Rate limiting utilities for Kubernetes API calls."""

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
_K8S_RATE_LIMIT_PER_SECOND = float(os.getenv("K8S_RATE_LIMIT_PER_SECOND", "10.0"))
_MAX_RATE_LIMIT_RETRIES = int(os.getenv("K8S_RATE_LIMIT_RETRIES", "3"))

# Track last call time, shared by all worker threads
_k8s_last_call_time: float = 0.0
_lock = threading.Lock()


def rate_limit_k8s(func: _F) -> _F:
    """Decorator to rate limit Kubernetes API calls.

    Spaces calls at least 1/K8S_RATE_LIMIT_PER_SECOND apart across all
    threads, and retries calls rejected with 429 using exponential backoff.
    """
    @wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        attempt = 0
        while True:
            _wait_turn()
            try:
                return func(*args, **kwargs)
            except ApiException as e:
                if not is_rate_limit_error(e) or attempt >= _MAX_RATE_LIMIT_RETRIES:
                    raise
                metrics.rate_limit_hits_total.labels(api_type="k8s").inc()
                time.sleep(2 ** attempt)
                attempt += 1

    return wrapper  # type: ignore


def _wait_turn() -> None:
    global _k8s_last_call_time
    with _lock:
        min_interval = 1.0 / _K8S_RATE_LIMIT_PER_SECOND
        time_since_last_call = time.time() - _k8s_last_call_time
        if time_since_last_call < min_interval:
            time.sleep(min_interval - time_since_last_call)
        _k8s_last_call_time = time.time()


def is_rate_limit_error(e: ApiException) -> bool:
    """Check if an API exception is a rate limit error.

    Kubernetes API rate limit errors typically return 429 or a 503 mentioning
    the rate limit.
    """
    return e.status == 429 or (e.status == 503 and "rate limit" in str(e).lower())
