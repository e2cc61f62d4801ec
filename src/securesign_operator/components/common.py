"""Workload actions reused by every component pipeline."""

from __future__ import annotations

import abc
from typing import Any

from ..action.base import BaseAction
from ..action.context import ReconcileContext
from ..action.ensure import EnsureOption, ensure_labels, ensure_owner_references, ensure_spec
from ..action.result import Result
from ..config import ComponentConfig
from ..constants import (
    COND_READY,
    REASON_CREATING,
    REASON_INITIALIZE,
    REASON_READY,
    STATUS_FALSE,
    STATUS_TRUE,
)
from ..state import State, current_state
from ..utils.conditions import get_reason, is_true, set_condition
from .templates import deployment_is_running, labels_for, selector_labels_for


class ComponentAction(BaseAction):
    """Action bound to one component's configuration."""

    def __init__(self, config: ComponentConfig):
        super().__init__()
        self.config = config

    def labels(self, instance: dict[str, Any], name: str | None = None) -> dict[str, str]:
        return labels_for(self.config.component, name or self.config.deployment, instance["metadata"]["name"])

    def selector(self, instance: dict[str, Any], name: str | None = None) -> dict[str, str]:
        return selector_labels_for(self.config.component, name or self.config.deployment, instance["metadata"]["name"])


class EnsureWorkloadAction(ComponentAction):
    """Ensure one sub-resource from the Creating state onward.

    A create or update moves Ready back to Creating and resets the owning
    component condition so the rollout is awaited again.
    """

    def __init__(self, config: ComponentConfig, condition: str | None = None):
        super().__init__(config)
        # Component condition reset when the object changes
        self.condition = condition

    def enabled(self, instance: dict[str, Any]) -> bool:
        return True

    def can_handle(self, ctx: ReconcileContext, instance: dict[str, Any]) -> bool:
        return current_state(instance.get("status")) >= State.CREATING and self.enabled(instance)

    @abc.abstractmethod
    def desired(self, ctx: ReconcileContext, instance: dict[str, Any]) -> dict[str, Any]:
        """Object to ensure."""

    def options(self) -> tuple[EnsureOption, ...]:
        return ensure_spec(), ensure_labels(), ensure_owner_references()

    def handle(self, ctx: ReconcileContext, instance: dict[str, Any]) -> Result:
        obj = self.desired(ctx, instance)
        if not self.ensure(ctx, obj, *self.options()):
            return self.continue_()

        meta = obj["metadata"]
        message = f"{obj['kind']} {meta['name']} ensured"
        status = instance.setdefault("status", {})
        set_condition(status, COND_READY, STATUS_FALSE, REASON_CREATING, message, instance["metadata"].get("generation"))
        if self.condition:
            set_condition(status, self.condition, STATUS_FALSE, REASON_CREATING, message)
        self.log_info(instance, message, reason=REASON_CREATING)
        return self.status_update(ctx, instance)


class InitializeAction(ComponentAction):
    """Mark a component condition true once its deployment is available."""

    def __init__(self, config: ComponentConfig, condition: str, deployment: str):
        super().__init__(config)
        self.condition = condition
        self.deployment = deployment
        self.name = f"initialize-{deployment}"

    def enabled(self, instance: dict[str, Any]) -> bool:
        return True

    def can_handle(self, ctx: ReconcileContext, instance: dict[str, Any]) -> bool:
        status = instance.get("status")
        return (
            current_state(status) == State.INITIALIZE
            and not is_true(status, self.condition)
            and self.enabled(instance)
        )

    def handle(self, ctx: ReconcileContext, instance: dict[str, Any]) -> Result:
        status = instance.setdefault("status", {})
        namespace = instance["metadata"]["namespace"]
        if deployment_is_running(ctx, namespace, self.selector(instance, self.deployment)):
            set_condition(status, self.condition, STATUS_TRUE, REASON_READY, f"{self.deployment} is running")
            return self.status_update(ctx, instance)

        if get_reason(status, self.condition) == REASON_INITIALIZE:
            return self.requeue()
        set_condition(status, self.condition, STATUS_FALSE, REASON_INITIALIZE, "Waiting for deployment to be ready")
        return self.status_update(ctx, instance)
