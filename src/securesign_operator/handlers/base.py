"""Base handler driving the action pipeline of one kind."""

from __future__ import annotations

import logging
import threading
import time
from typing import Any, Mapping, Sequence

import kopf

from .. import metrics
from ..action.base import Action
from ..action.context import EventSink, ObjectStore, ReconcileContext
from ..action.pipeline import execute
from ..action.result import Fail, Requeue, Result, Return, StatusUpdate
from ..config import OperatorConfig
from ..constants import API_GROUP_VERSION
from ..logging import log_resource_event
from ..state import derive_phase
from ..tracing import trace_span
from ..utils.context import with_correlation_id
from ..utils.errors import NotFoundError, sanitize_exception
from ..utils.events import emit_reconcile_failed, emit_reconcile_started


class _KeyedLocks:
    """One lock per object uid so passes for the same object never overlap."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[str, threading.Lock] = {}

    def get(self, key: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.Lock()
            return lock

    def forget(self, key: str) -> None:
        with self._guard:
            self._locks.pop(key, None)


class ReconcileHandler:
    """Runs reconcile passes for one kind until the object settles.

    kopf calls :meth:`reconcile` from its worker threads. Each pass reloads
    the object from the store, so no state is carried between passes other
    than what is persisted in the object's status.
    """

    def __init__(
        self,
        kind: str,
        actions: Sequence[Action],
        store: ObjectStore,
        recorder: EventSink,
        config: OperatorConfig | None = None,
    ):
        """Initialize the handler.

        Args:
            kind: The resource kind (e.g., "Fulcio", "CTlog")
            actions: Ordered action set of the kind
            store: Object store used by the passes
            recorder: Event sink used by the passes
            config: Operator settings, read from the environment when omitted
        """
        self.kind = kind
        self.actions = list(actions)
        self.store = store
        self.recorder = recorder
        self.config = config or OperatorConfig.from_env()
        self.logger = logging.getLogger(__name__)
        self._locks = _KeyedLocks()

    def _log(self, level: int, meta: Mapping[str, Any], message: str, event: str, reason: str, **kwargs: Any) -> None:
        log_resource_event(self.logger, self.kind, meta, event, reason, message, level, **kwargs)

    def log_info(self, meta: Mapping[str, Any], message: str, reason: str = "Info", **kwargs: Any) -> None:
        self._log(logging.INFO, meta, message, "info", reason, **kwargs)

    def log_error(
        self,
        meta: Mapping[str, Any],
        message: str,
        error: Exception | None = None,
        reason: str = "Error",
        **kwargs: Any,
    ) -> None:
        if error is not None:
            kwargs["error"] = sanitize_exception(error)
            kwargs["error_type"] = type(error).__name__
        self._log(logging.ERROR, meta, message, "error", reason, **kwargs)

    def new_context(self) -> ReconcileContext:
        return ReconcileContext.with_timeout(self.store, self.recorder, self.config.reconcile_timeout)

    def run_passes(self, name: str, namespace: str) -> Result:
        """Run passes until one of them asks to stop.

        Returns:
            The result of the last pass, ``Return`` when the object is gone
            or being deleted.
        """
        for _ in range(self.config.max_passes):
            try:
                instance = self.store.get(API_GROUP_VERSION, self.kind, namespace, name)
            except NotFoundError:
                return Return()
            if instance["metadata"].get("deletionTimestamp"):
                return Return()

            ctx = self.new_context()
            result = execute(ctx, self.actions, instance)
            if not isinstance(result, StatusUpdate):
                return result
        # Still progressing after max_passes: come back right away
        return Requeue(after=0.5)

    def reconcile(self, body: Mapping[str, Any]) -> None:
        """Reconcile the object described by a kopf ``body``.

        Raises:
            kopf.TemporaryError: the object should be reconciled again
            kopf.PermanentError: the object is stuck on a terminal error
        """
        meta = body.get("metadata", {})
        name = meta["name"]
        namespace = meta["namespace"]
        uid = meta.get("uid") or f"{namespace}/{name}"

        with with_correlation_id(), self._locks.get(uid):
            emit_reconcile_started(body)
            metrics.reconcile_total.labels(kind=self.kind, result="started").inc()
            start_time = time.time()
            try:
                with trace_span("reconcile", kind=self.kind, attributes={"name": name, "namespace": namespace}):
                    result = self.run_passes(name, namespace)
            except Exception as e:
                metrics.error_total.labels(kind=self.kind, error_type=type(e).__name__).inc()
                metrics.reconcile_total.labels(kind=self.kind, result="error").inc()
                self.log_error(meta, "Reconciliation failed", error=e, reason="ReconciliationFailed")
                emit_reconcile_failed(body, f"Reconciliation failed: {sanitize_exception(e)}")
                raise
            finally:
                metrics.reconcile_duration_seconds.labels(kind=self.kind).observe(time.time() - start_time)

            self._observe_phase(namespace, name)
            self._raise_for(body, result)

    def _observe_phase(self, namespace: str, name: str) -> None:
        latest = self.store.find(API_GROUP_VERSION, self.kind, namespace, name)
        if latest is not None:
            metrics.resource_status_total.labels(kind=self.kind, phase=derive_phase(latest.get("status"))).inc()

    def _raise_for(self, body: Mapping[str, Any], result: Result) -> None:
        meta = body.get("metadata", {})
        if isinstance(result, Requeue):
            metrics.reconcile_total.labels(kind=self.kind, result="requeue").inc()
            raise kopf.TemporaryError("Reconciliation in progress", delay=result.after)

        if isinstance(result, Fail):
            message = sanitize_exception(result.error)
            metrics.error_total.labels(kind=self.kind, error_type=type(result.error).__name__).inc()
            metrics.reconcile_total.labels(kind=self.kind, result="failed").inc()
            self.log_error(meta, "Reconciliation failed", error=result.error, reason="ReconciliationFailed")
            emit_reconcile_failed(body, f"Reconciliation failed: {message}")
            if result.terminal:
                raise kopf.PermanentError(message)
            raise kopf.TemporaryError(message, delay=getattr(result.error, "delay", 5.0))

        metrics.reconcile_total.labels(kind=self.kind, result="success").inc()

    def forget(self, body: Mapping[str, Any]) -> None:
        """Drop per-object state once the object is deleted."""
        meta = body.get("metadata", {})
        self._locks.forget(meta.get("uid") or f"{meta.get('namespace')}/{meta.get('name')}")
        self.log_info(meta, "Resource deleted", reason="Deleted")
