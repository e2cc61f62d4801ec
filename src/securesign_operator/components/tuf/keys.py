"""Trust root keys served by TUF."""

from __future__ import annotations

import copy
from typing import Any

from ...action.context import ReconcileContext
from ...action.ensure import ensure_data, ensure_labels, ensure_owner_references
from ...action.result import Requeue, Result
from ...constants import (
    API_GROUP,
    COND_READY,
    KIND_CTLOG,
    KIND_FULCIO,
    REASON_PENDING,
    REASON_READY,
    STATUS_FALSE,
    STATUS_TRUE,
)
from ...resolver import Availability, group_selector, lookup
from ...state import State, current_state
from ...utils.conditions import find_condition, is_true, set_condition
from ...utils.errors import DependencyNotReadyError
from ...utils.secrets import find_secret_by_label, make_secret, read_selector
from ..common import ComponentAction
from ..templates import owner_reference

REKOR_KEY = "rekor.pub"
CTLOG_KEY = "ctfe.pub"
FULCIO_KEY = "fulcio_v1.crt.pem"
TSA_KEY = "tsa.certchain.pem"
# Rekor and the timestamp authority are not managed here; their material is
# found through the discovery label they put on their public secret
DEFAULT_KEYS = (REKOR_KEY, CTLOG_KEY, FULCIO_KEY, TSA_KEY)


def spec_keys(instance: dict[str, Any]) -> list[dict[str, Any]]:
    keys = (instance.get("spec") or {}).get("keys")
    if not keys:
        return [{"name": name} for name in DEFAULT_KEYS]
    return keys


def key_names(instance: dict[str, Any]) -> tuple[str, ...]:
    return tuple(k["name"] for k in spec_keys(instance))


def bundle_name(instance: dict[str, Any]) -> str:
    return f"tuf-{instance['metadata']['name']}-keys"


def _from_sibling(
    ctx: ReconcileContext, instance: dict[str, Any], kind: str, field: tuple[str, ...]
) -> dict[str, str] | None:
    """Reference published in a ready sibling's status, or None without a sibling."""
    found = lookup(ctx, instance["metadata"]["namespace"], group_selector(instance), kind)
    if found.availability is Availability.MISSING:
        return None
    if not found.ready:
        raise DependencyNotReadyError(found.describe(kind))
    value: Any = (found.instance or {}).get("status") or {}
    for part in field:
        value = (value or {}).get(part)
    if not value:
        raise DependencyNotReadyError(f"{kind} has not published {field[-1]}")
    return {"name": value["name"], "key": value["key"]}


def _from_label(ctx: ReconcileContext, namespace: str, name: str) -> dict[str, str]:
    label = f"{API_GROUP}/{name}"
    secret = find_secret_by_label(ctx, namespace, label)
    if secret is None:
        raise DependencyNotReadyError(f"No secret labelled {label}")
    key = secret["metadata"]["labels"].get(label)
    if not key:
        raise DependencyNotReadyError(f"Label {label} on {secret['metadata']['name']} is empty")
    return {"name": secret["metadata"]["name"], "key": key}


def resolve_key(ctx: ReconcileContext, instance: dict[str, Any], key: dict[str, Any]) -> dict[str, str]:
    """Resolve where one trust root key is read from.

    Raises:
        DependencyNotReadyError: the producer is not ready or nothing was found
    """
    if key.get("secretRef"):
        return {"name": key["secretRef"]["name"], "key": key["secretRef"]["key"]}
    ref = None
    if key["name"] == FULCIO_KEY:
        ref = _from_sibling(ctx, instance, KIND_FULCIO, ("certificate", "caRef"))
    elif key["name"] == CTLOG_KEY:
        ref = _from_sibling(ctx, instance, KIND_CTLOG, ("publicKeyRef",))
    if ref is None:
        ref = _from_label(ctx, instance["metadata"]["namespace"], key["name"])
    return ref


class ResolveKeys(ComponentAction):
    """Resolve every trust root key, one condition per key."""

    name = "resolve-keys"

    def _desired(self, ctx: ReconcileContext, instance: dict[str, Any]) -> list[dict[str, Any]]:
        return [{"name": k["name"], "secretRef": resolve_key(ctx, instance, k)} for k in spec_keys(instance)]

    def can_handle(self, ctx: ReconcileContext, instance: dict[str, Any]) -> bool:
        status = instance.get("status") or {}
        if find_condition(status, COND_READY) is None:
            return False
        if not all(is_true(status, name) for name in key_names(instance)):
            return True
        current = status.get("keys") or []
        if [k["name"] for k in current] != list(key_names(instance)):
            return True
        try:
            return self._desired(ctx, instance) != current
        except DependencyNotReadyError:
            # Producers rolling out keep the known keys
            return False

    def handle(self, ctx: ReconcileContext, instance: dict[str, Any]) -> Result:
        namespace = instance["metadata"]["namespace"]
        status = instance.setdefault("status", {})
        before = copy.deepcopy(status)
        resolved = []
        waiting = []
        for key in spec_keys(instance):
            try:
                ref = resolve_key(ctx, instance, key)
                read_selector(ctx, namespace, ref)
            except DependencyNotReadyError as e:
                set_condition(status, key["name"], STATUS_FALSE, REASON_PENDING, str(e))
                waiting.append(key["name"])
                continue
            set_condition(status, key["name"], STATUS_TRUE, REASON_READY, f"Resolved from secret {ref['name']}")
            resolved.append({"name": key["name"], "secretRef": ref})

        if waiting:
            self.log_info(instance, "Waiting for trust root keys", keys=waiting)
            if status == before:
                return self.requeue()
            persisted = self.status_update(ctx, instance)
            return persisted if isinstance(persisted, Requeue) else self.requeue()

        if status.get("keys") != resolved:
            status["keys"] = resolved
            set_condition(status, self.config.name("repository_condition"), STATUS_FALSE, REASON_PENDING, "Keys changed")
        return self.status_update(ctx, instance)


class KeyBundle(ComponentAction):
    """Materialize the resolved public material in one owned secret."""

    name = "key-bundle"

    def can_handle(self, ctx: ReconcileContext, instance: dict[str, Any]) -> bool:
        status = instance.get("status") or {}
        return current_state(status) >= State.CREATING and bool(status.get("keys"))

    def handle(self, ctx: ReconcileContext, instance: dict[str, Any]) -> Result:
        condition_name = self.config.name("repository_condition")
        namespace = instance["metadata"]["namespace"]
        status = instance.setdefault("status", {})
        try:
            data = {k["name"]: read_selector(ctx, namespace, k["secretRef"]) for k in status["keys"]}
        except DependencyNotReadyError as e:
            return self.wait_for(ctx, instance, condition_name, str(e))

        desired = make_secret(
            namespace,
            data,
            name=bundle_name(instance),
            labels=self.labels(instance),
            owner_references=[owner_reference(instance)],
        )
        changed = self.ensure(ctx, desired, ensure_data(), ensure_labels(), ensure_owner_references())
        if not changed and is_true(status, condition_name):
            return self.continue_()
        set_condition(status, condition_name, STATUS_TRUE, REASON_READY, f"Keys published in {bundle_name(instance)}")
        return self.status_update(ctx, instance)
