"""Ordered action pipeline executor."""

from __future__ import annotations

import copy
import logging
import time
from typing import Any, Sequence

from .. import metrics
from ..tracing import trace_span
from ..utils.errors import CancelledError, is_retryable, is_terminal, sanitize_exception
from .base import Action, BaseAction
from .context import ReconcileContext
from .result import Continue, Fail, Requeue, Result

logger = logging.getLogger(__name__)


def _result_label(result: Result) -> str:
    return type(result).__name__.lower()


def _run_action(ctx: ReconcileContext, action: Action, instance: dict[str, Any]) -> Result:
    kind = instance.get("kind", "unknown")
    before = copy.deepcopy(instance.get("status") or {})
    start_time = time.time()
    try:
        with trace_span(f"action.{action.name}", kind=kind, attributes={"action": action.name}):
            result = action.handle(ctx, instance)
    except Exception as e:
        if is_retryable(e):
            delay = getattr(e, "delay", 1.0)
            logger.info("Action %s will be retried in %ss: %s", action.name, delay, sanitize_exception(e))
            result = Requeue(after=delay)
        else:
            logger.error("Action %s failed: %s", action.name, sanitize_exception(e))
            result = Fail(error=e, terminal=is_terminal(e))
    finally:
        metrics.action_duration_seconds.labels(kind=kind, action=action.name).observe(time.time() - start_time)

    if isinstance(result, Continue) and (instance.get("status") or {}) != before:
        # A status mutation must never be left unflushed
        logger.warning("Action %s changed status but returned Continue; persisting", action.name)
        persist = action if isinstance(action, BaseAction) else _Persister()
        result = persist.status_update(ctx, instance)

    metrics.action_total.labels(kind=kind, action=action.name, result=_result_label(result)).inc()
    return result


class _Persister(BaseAction):
    name = "persist-status"

    def __init__(self) -> None:
        super().__init__()

    def can_handle(self, ctx: ReconcileContext, instance: dict[str, Any]) -> bool:
        return False

    def handle(self, ctx: ReconcileContext, instance: dict[str, Any]) -> Result:
        return self.continue_()


def execute(ctx: ReconcileContext, actions: Sequence[Action], instance: dict[str, Any]) -> Result:
    """Run one reconcile pass over ``instance``.

    Actions are scanned in order. The first one whose ``can_handle`` holds is
    run; a ``Continue`` result lets the scan go on, any other result ends the
    pass. When nothing applies the pass is a no-op ``Continue``.
    """
    kind = instance.get("kind", "unknown")
    with trace_span("reconcile.pass", kind=kind, attributes={"name": instance["metadata"].get("name", "")}):
        for action in actions:
            try:
                ctx.check()
                applies = action.can_handle(ctx, instance)
            except CancelledError as e:
                logger.info("Reconcile pass of %s stopped: %s", kind, e)
                return Requeue(after=e.delay)
            if not applies:
                continue
            logger.debug("Running action %s on %s %s", action.name, kind, instance["metadata"].get("name"))
            result = _run_action(ctx, action, instance)
            if result.stops_pipeline:
                return result
    return Continue()


def applicable(ctx: ReconcileContext, actions: Sequence[Action], instance: dict[str, Any]) -> list[str]:
    """Names of every action whose predicate holds, for exclusivity checks."""
    return [action.name for action in actions if action.can_handle(ctx, instance)]

