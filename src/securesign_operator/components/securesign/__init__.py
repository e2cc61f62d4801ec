"""Securesign action set: one child of each kind plus status aggregation."""

from __future__ import annotations

from typing import Any, Sequence

from ...action.base import Action, BaseAction
from ...action.context import ReconcileContext
from ...action.result import Result
from ...action.transitions import ToPending
from ...config import ComponentConfig
from ...constants import COND_READY, REASON_READY, STATUS_FALSE, STATUS_TRUE
from ...state import aggregate
from ...utils.conditions import find_condition, set_condition
from .children import EnsureCTlog, EnsureFulcio, EnsureTrillian, EnsureTuf


class InitializeStatus(ToPending):
    name = "initialize-status"


class UpdateStatus(BaseAction):
    """Fold the child conditions into Ready."""

    name = "update-status"

    def __init__(self, conditions: Sequence[str]):
        super().__init__()
        self.conditions = tuple(conditions)

    def _desired(self, status: dict[str, Any] | None) -> tuple[str, str, str]:
        all_true, reason, message = aggregate(status, self.conditions)
        if all_true:
            return STATUS_TRUE, REASON_READY, "Ready"
        return STATUS_FALSE, reason, message

    def can_handle(self, ctx: ReconcileContext, instance: dict[str, Any]) -> bool:
        status = instance.get("status")
        ready = find_condition(status, COND_READY)
        if ready is None:
            return False
        wanted, reason, _ = self._desired(status)
        return (ready.get("status"), ready.get("reason")) != (wanted, reason)

    def handle(self, ctx: ReconcileContext, instance: dict[str, Any]) -> Result:
        status = instance.setdefault("status", {})
        wanted, reason, message = self._desired(status)
        set_condition(status, COND_READY, wanted, reason, message, instance["metadata"].get("generation"))
        return self.status_update(ctx, instance)


def build_actions(config: ComponentConfig) -> list[Action]:
    return [
        InitializeStatus(config.conditions),
        EnsureTrillian(config),
        EnsureFulcio(config),
        EnsureCTlog(config),
        EnsureTuf(config),
        UpdateStatus(config.conditions),
    ]


__all__ = ["build_actions"]
