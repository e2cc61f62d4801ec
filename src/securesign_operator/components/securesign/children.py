"""Child resources owned by a Securesign composite."""

from __future__ import annotations

from typing import Any

from ...action.base import condition
from ...action.context import ReconcileContext
from ...action.ensure import ensure_labels, ensure_owner_references, ensure_spec
from ...action.result import Result
from ...constants import (
    API_GROUP_VERSION,
    COND_READY,
    KIND_CTLOG,
    KIND_FULCIO,
    KIND_TRILLIAN,
    KIND_TUF,
    LABEL_APP_INSTANCE,
    REASON_CREATING,
    REASON_FAILURE,
    STATUS_FALSE,
)
from ...utils.conditions import find_condition, set_condition
from ...utils.errors import InvalidError
from ..common import ComponentAction
from ..templates import labels_for, owner_reference


class EnsureChild(ComponentAction):
    """Keep one child resource in line with the composite's spec section.

    The child is named after the composite and labelled with its instance
    name, so children of one composite find each other through the
    resolver. Once the child exists its Ready condition is mirrored into
    the composite's ``condition``.
    """

    kind: str = ""
    spec_field: str = ""
    condition: str = ""
    # Status fields copied from the child into status.<spec_field>
    copied_status: tuple[str, ...] = ()

    @property
    def name(self) -> str:  # type: ignore[override]
        return f"ensure-{self.kind.lower()}"

    def can_handle(self, ctx: ReconcileContext, instance: dict[str, Any]) -> bool:
        return find_condition(instance.get("status"), COND_READY) is not None

    def desired(self, instance: dict[str, Any]) -> dict[str, Any]:
        meta = instance["metadata"]
        labels = labels_for(self.config.component, meta["name"], meta["name"])
        labels[LABEL_APP_INSTANCE] = meta["name"]
        return {
            "apiVersion": API_GROUP_VERSION,
            "kind": self.kind,
            "metadata": {
                "name": meta["name"],
                "namespace": meta["namespace"],
                "labels": labels,
                "ownerReferences": [owner_reference(instance)],
            },
            "spec": dict((instance.get("spec") or {}).get(self.spec_field) or {}),
        }

    def handle(self, ctx: ReconcileContext, instance: dict[str, Any]) -> Result:
        desired = self.desired(instance)
        try:
            changed = self.ensure(ctx, desired, ensure_spec(), ensure_labels(), ensure_owner_references())
        except InvalidError as e:
            return self.error(
                ctx,
                e,
                instance,
                condition(self.condition, False, REASON_FAILURE, f"Could not create {self.kind}: {e}"),
            )

        status = instance.setdefault("status", {})
        if changed:
            message = f"{self.kind} resource created {desired['metadata']['name']}"
            set_condition(status, self.condition, STATUS_FALSE, REASON_CREATING, message)
            self.log_info(instance, f"{self.kind} ensured", reason=REASON_CREATING)
            return self.status_update(ctx, instance)

        meta = desired["metadata"]
        child = ctx.find(API_GROUP_VERSION, self.kind, meta["namespace"], meta["name"])
        return self.copy_status(ctx, instance, child or {})

    def copy_status(self, ctx: ReconcileContext, instance: dict[str, Any], child: dict[str, Any]) -> Result:
        child_status = child.get("status") or {}
        ready = find_condition(child_status, COND_READY)
        if ready is None:
            # Child has not started reconciling yet
            return self.continue_()

        status = instance.setdefault("status", {})
        current = find_condition(status, self.condition)
        changed = False
        observed = (ready.get("status"), ready.get("reason"))
        if current is None or (current.get("status"), current.get("reason")) != observed:
            set_condition(status, self.condition, ready["status"], ready.get("reason", ""), ready.get("message", ""))
            changed = True

        for field in self.copied_status:
            value = child_status.get(field)
            if value is not None and (status.get(self.spec_field) or {}).get(field) != value:
                status.setdefault(self.spec_field, {})[field] = value
                changed = True

        if changed:
            return self.status_update(ctx, instance)
        return self.continue_()


class EnsureTrillian(EnsureChild):
    kind = KIND_TRILLIAN
    spec_field = "trillian"
    condition = "TrillianAvailable"


class EnsureFulcio(EnsureChild):
    kind = KIND_FULCIO
    spec_field = "fulcio"
    condition = "FulcioAvailable"
    copied_status = ("url",)


class EnsureCTlog(EnsureChild):
    kind = KIND_CTLOG
    spec_field = "ctlog"
    condition = "CTlogAvailable"


class EnsureTuf(EnsureChild):
    kind = KIND_TUF
    spec_field = "tuf"
    condition = "TufAvailable"
    copied_status = ("url",)
