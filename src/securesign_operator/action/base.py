"""Action abstraction and the helpers shared by every action set."""

from __future__ import annotations

import abc
import copy
import logging
from typing import Any

from .. import constants
from ..logging import log_resource_event
from ..utils.conditions import set_condition
from ..utils.errors import ConflictError, is_terminal, sanitize_exception
from . import ensure as ensure_mod
from .context import ReconcileContext
from .result import DEFAULT_REQUEUE_AFTER, Continue, Fail, Requeue, Result, Return, StatusUpdate

CONFLICT_REQUEUE_AFTER = 1.0


class Action(abc.ABC):
    """One step of a reconcile pipeline."""

    name: str = "action"

    @abc.abstractmethod
    def can_handle(self, ctx: ReconcileContext, instance: dict[str, Any]) -> bool:
        """Whether this action applies to the in-flight instance."""

    @abc.abstractmethod
    def handle(self, ctx: ReconcileContext, instance: dict[str, Any]) -> Result:
        """Apply the action and report how the pass continues."""


class BaseAction(Action):
    """Action with result constructors, status persistence and logging."""

    def __init__(self) -> None:
        self.logger = logging.getLogger(type(self).__module__)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name}>"

    # Results

    def continue_(self) -> Result:
        return Continue()

    def requeue(self, after: float = DEFAULT_REQUEUE_AFTER) -> Result:
        return Requeue(after=after)

    def return_(self) -> Result:
        return Return()

    def failed(self, error: Exception) -> Result:
        return Fail(error=error, terminal=is_terminal(error))

    def status_update(self, ctx: ReconcileContext, instance: dict[str, Any]) -> Result:
        """Persist the in-flight status.

        The write carries the resourceVersion read at the start of the pass.
        If anyone changed the object since, the write conflicts and the pass
        is requeued to start over from a fresh read.
        """
        meta = instance["metadata"]
        try:
            stored = ctx.update_status(instance)
        except ConflictError:
            self.log_info(instance, "Object changed during the pass, requeueing", reason="Conflict")
            return Requeue(after=CONFLICT_REQUEUE_AFTER)
        meta["resourceVersion"] = stored.get("metadata", {}).get("resourceVersion", meta.get("resourceVersion"))
        return StatusUpdate()

    def wait_for(
        self,
        ctx: ReconcileContext,
        instance: dict[str, Any],
        condition_type: str,
        message: str,
        after: float = DEFAULT_REQUEUE_AFTER,
    ) -> Result:
        """Record a Pending condition while waiting on a dependency.

        The condition is persisted once; later passes with nothing new to
        record just requeue.
        """
        status = instance.setdefault("status", {})
        before = copy.deepcopy(status)
        set_condition(status, condition_type, constants.STATUS_FALSE, constants.REASON_PENDING, message)
        if status == before:
            return self.requeue(after)
        self.log_info(instance, message, reason=constants.REASON_PENDING)
        persisted = self.status_update(ctx, instance)
        return persisted if isinstance(persisted, Requeue) else self.requeue(after)

    def error(
        self,
        ctx: ReconcileContext,
        err: Exception,
        instance: dict[str, Any],
        *conditions: dict[str, Any],
    ) -> Result:
        """Report an error; terminal ones are recorded on the status first.

        Args:
            ctx: Reconcile context
            err: The error
            instance: In-flight instance
            *conditions: Extra conditions ({type, status, reason, message}) to
                set along with Ready=False/Failure
        """
        if not is_terminal(err):
            return Fail(error=err)

        message = sanitize_exception(err)
        status = instance.setdefault("status", {})
        before = copy.deepcopy(status)
        set_condition(
            status,
            constants.COND_READY,
            constants.STATUS_FALSE,
            constants.REASON_FAILURE,
            message,
            observed_generation=instance["metadata"].get("generation"),
        )
        for cond in conditions:
            set_condition(status, cond["type"], cond["status"], cond["reason"], cond.get("message", ""))

        self.log_error(instance, "Action failed", error=err, reason=constants.REASON_FAILURE)
        if status == before:
            # Already recorded for this generation
            return Fail(error=err, terminal=True)
        ctx.event(instance, constants.EVENT_REASON_CONFIGURATION_ERROR, message, type_="Warning")
        persisted = self.status_update(ctx, instance)
        if isinstance(persisted, Requeue):
            return persisted
        return Fail(error=err, terminal=True)

    def ensure(self, ctx: ReconcileContext, desired: dict[str, Any], *options: ensure_mod.EnsureOption) -> bool:
        changed = ensure_mod.ensure(ctx, desired, *options)
        if changed:
            meta = desired["metadata"]
            self.logger.debug("Ensured %s %s/%s", desired["kind"], meta["namespace"], meta["name"])
        return changed

    # Logging

    def _log(self, level: int, instance: dict[str, Any], message: str, event: str, reason: str, **kwargs: Any) -> None:
        log_resource_event(
            self.logger,
            instance.get("kind", "unknown"),
            instance.get("metadata", {}),
            event=event,
            reason=reason,
            message=message,
            level=level,
            action=self.name,
            **kwargs,
        )

    def log_debug(self, instance: dict[str, Any], message: str, **kwargs: Any) -> None:
        self._log(logging.DEBUG, instance, message, "debug", "Debug", **kwargs)

    def log_info(self, instance: dict[str, Any], message: str, reason: str = "Info", **kwargs: Any) -> None:
        self._log(logging.INFO, instance, message, "info", reason, **kwargs)

    def log_warning(self, instance: dict[str, Any], message: str, reason: str = "Warning", **kwargs: Any) -> None:
        self._log(logging.WARNING, instance, message, "warning", reason, **kwargs)

    def log_error(
        self,
        instance: dict[str, Any],
        message: str,
        error: Exception | None = None,
        reason: str = "Error",
        **kwargs: Any,
    ) -> None:
        if error is not None:
            kwargs["error"] = sanitize_exception(error)
            kwargs["error_type"] = type(error).__name__
        self._log(logging.ERROR, instance, message, "error", reason, **kwargs)


def condition(type_: str, status: str | bool, reason: str, message: str = "") -> dict[str, Any]:
    """Build a condition dict for ``BaseAction.error``."""
    if isinstance(status, bool):
        status = constants.STATUS_TRUE if status else constants.STATUS_FALSE
    return {"type": type_, "status": status, "reason": reason, "message": message}
