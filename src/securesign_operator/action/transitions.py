"""Lifecycle transitions shared by every component pipeline."""

from __future__ import annotations

from typing import Any, Sequence

from ..constants import (
    COND_READY,
    REASON_CREATING,
    REASON_FAILURE,
    REASON_INITIALIZE,
    REASON_PENDING,
    REASON_READY,
    STATUS_FALSE,
    STATUS_TRUE,
)
from ..state import State, aggregate, current_state
from ..utils.conditions import find_condition, is_true, set_condition
from .base import BaseAction
from .context import ReconcileContext
from .result import Result


class ToPending(BaseAction):
    """Seed Ready and every component condition on a fresh resource."""

    name = "to-pending"

    def __init__(self, conditions: Sequence[str]):
        super().__init__()
        self.conditions = tuple(conditions)

    def condition_names(self, instance: dict[str, Any]) -> tuple[str, ...]:
        return self.conditions

    def can_handle(self, ctx: ReconcileContext, instance: dict[str, Any]) -> bool:
        return find_condition(instance.get("status"), COND_READY) is None

    def handle(self, ctx: ReconcileContext, instance: dict[str, Any]) -> Result:
        status = instance.setdefault("status", {})
        generation = instance["metadata"].get("generation")
        set_condition(status, COND_READY, STATUS_FALSE, REASON_PENDING, "Waiting for prerequisites", generation)
        for name in self.condition_names(instance):
            set_condition(status, name, STATUS_FALSE, REASON_PENDING, "")
        return self.status_update(ctx, instance)


class ToCreate(BaseAction):
    """Start creating resources once the prerequisites are in.

    A Failure recorded for the current generation stays until the spec
    changes; only a newer generation gets another attempt.
    """

    name = "to-create"

    def can_handle(self, ctx: ReconcileContext, instance: dict[str, Any]) -> bool:
        ready = find_condition(instance.get("status"), COND_READY)
        if ready is None:
            return False
        if ready.get("reason") == REASON_PENDING:
            return True
        if ready.get("reason") != REASON_FAILURE:
            return False
        return instance["metadata"].get("generation", 0) > ready.get("observedGeneration", 0)

    def handle(self, ctx: ReconcileContext, instance: dict[str, Any]) -> Result:
        set_condition(
            instance.setdefault("status", {}),
            COND_READY,
            STATUS_FALSE,
            REASON_CREATING,
            "Creating resources",
            instance["metadata"].get("generation"),
        )
        return self.status_update(ctx, instance)


class ToInitialize(BaseAction):
    name = "to-initialize"

    def can_handle(self, ctx: ReconcileContext, instance: dict[str, Any]) -> bool:
        return current_state(instance.get("status")) == State.CREATING

    def handle(self, ctx: ReconcileContext, instance: dict[str, Any]) -> Result:
        set_condition(
            instance.setdefault("status", {}),
            COND_READY,
            STATUS_FALSE,
            REASON_INITIALIZE,
            "Waiting for workloads to become available",
            instance["metadata"].get("generation"),
        )
        return self.status_update(ctx, instance)


class ToReady(BaseAction):
    """Keep Ready in agreement with the component conditions.

    Ready becomes True once every component condition is true, and drops
    back to the worst component reason when one of them stops being true.
    """

    name = "to-ready"

    def __init__(self, conditions: Sequence[str]):
        super().__init__()
        self.conditions = tuple(conditions)

    def condition_names(self, instance: dict[str, Any]) -> tuple[str, ...]:
        return self.conditions

    def can_handle(self, ctx: ReconcileContext, instance: dict[str, Any]) -> bool:
        status = instance.get("status")
        if current_state(status) < State.INITIALIZE:
            return False
        all_true, _, _ = aggregate(status, self.condition_names(instance))
        return all_true != is_true(status, COND_READY)

    def handle(self, ctx: ReconcileContext, instance: dict[str, Any]) -> Result:
        status = instance.setdefault("status", {})
        generation = instance["metadata"].get("generation")
        all_true, reason, message = aggregate(status, self.condition_names(instance))
        if all_true:
            set_condition(status, COND_READY, STATUS_TRUE, REASON_READY, "Ready", generation)
        else:
            set_condition(status, COND_READY, STATUS_FALSE, reason, message, generation)
        return self.status_update(ctx, instance)
