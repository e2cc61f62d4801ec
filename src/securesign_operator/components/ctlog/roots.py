"""Fulcio root certificates trusted by the CT log."""

from __future__ import annotations

from typing import Any

from ...action.context import ReconcileContext
from ...action.result import Result
from ...constants import COND_READY, KIND_FULCIO, LABEL_FULCIO_CA, REASON_PENDING, REASON_READY, STATUS_FALSE, STATUS_TRUE
from ...resolver import Availability, group_selector, lookup
from ...utils.conditions import find_condition, is_true, set_condition
from ...utils.errors import DependencyNotReadyError
from ...utils.secrets import find_secret_by_label, read_selector
from ..common import ComponentAction


def discover_fulcio_root(ctx: ReconcileContext, instance: dict[str, Any]) -> dict[str, str]:
    """Find the CA certificate of the Fulcio instance this log serves.

    The sibling Fulcio's status is authoritative. Without a sibling the
    namespace is searched for the Fulcio CA discovery label.

    Raises:
        DependencyNotReadyError: no usable certificate yet
    """
    namespace = instance["metadata"]["namespace"]
    found = lookup(ctx, namespace, group_selector(instance), KIND_FULCIO)
    if found.ready:
        ca_ref = (((found.instance or {}).get("status") or {}).get("certificate") or {}).get("caRef")
        if ca_ref:
            return {"name": ca_ref["name"], "key": ca_ref["key"]}
        raise DependencyNotReadyError("Fulcio has not published its CA certificate")
    if found.availability is not Availability.MISSING:
        raise DependencyNotReadyError(found.describe(KIND_FULCIO))

    secret = find_secret_by_label(ctx, namespace, LABEL_FULCIO_CA)
    if secret is None:
        raise DependencyNotReadyError("Waiting for Fulcio CA certificate")
    return {"name": secret["metadata"]["name"], "key": secret["metadata"]["labels"][LABEL_FULCIO_CA]}


class HandleRootCerts(ComponentAction):
    """Resolve ``status.rootCertificates`` from spec or from Fulcio."""

    name = "handle-root-certificates"

    def desired_roots(self, ctx: ReconcileContext, instance: dict[str, Any]) -> list[dict[str, str]]:
        roots = (instance.get("spec") or {}).get("rootCertificates") or []
        if roots:
            return [{"name": r["name"], "key": r["key"]} for r in roots]
        return [discover_fulcio_root(ctx, instance)]

    def can_handle(self, ctx: ReconcileContext, instance: dict[str, Any]) -> bool:
        status = instance.get("status") or {}
        if find_condition(status, COND_READY) is None:
            return False
        if not status.get("rootCertificates") or not is_true(status, self.config.name("root_condition")):
            return True
        try:
            return self.desired_roots(ctx, instance) != status["rootCertificates"]
        except DependencyNotReadyError:
            # Keep serving the known roots while Fulcio is rolling out
            return False

    def handle(self, ctx: ReconcileContext, instance: dict[str, Any]) -> Result:
        root_condition = self.config.name("root_condition")
        namespace = instance["metadata"]["namespace"]
        try:
            roots = self.desired_roots(ctx, instance)
            for ref in roots:
                read_selector(ctx, namespace, ref)
        except DependencyNotReadyError as e:
            return self.wait_for(ctx, instance, root_condition, str(e))

        status = instance.setdefault("status", {})
        if status.get("rootCertificates") != roots:
            status["rootCertificates"] = roots
            set_condition(
                status, self.config.name("config_condition"), STATUS_FALSE, REASON_PENDING, "Fulcio certificate changed"
            )
            self.log_info(instance, "Fulcio root certificates changed", roots=[r["name"] for r in roots])
        set_condition(status, root_condition, STATUS_TRUE, REASON_READY, "Fulcio certificate resolved")
        return self.status_update(ctx, instance)
