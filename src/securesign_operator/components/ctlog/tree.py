"""Trillian tree backing the CT log."""

from __future__ import annotations

from typing import Any

from ...action.base import condition
from ...action.context import ReconcileContext
from ...action.ensure import ensure_labels, ensure_owner_references
from ...action.result import Result
from ...constants import (
    CORE_V1,
    KIND_CONFIG_MAP,
    KIND_TRILLIAN,
    REASON_CREATING,
    REASON_FAILURE,
    REASON_PENDING,
    REASON_READY,
    STATUS_FALSE,
    STATUS_TRUE,
)
from ...resolver import group_selector, lookup
from ...state import State, current_state
from ...utils.conditions import get_reason, set_condition
from ...utils.errors import ConfigurationError
from ..common import ComponentAction
from ..templates import config_map, container, job

TREE_ID_KEY = "tree_id"
DEFAULT_TRILLIAN_PORT = 8091


def tree_config_map_name(instance: dict[str, Any]) -> str:
    return f"ctlog-{instance['metadata']['name']}-tree"


def tree_job_name(instance: dict[str, Any]) -> str:
    return f"ctlog-{instance['metadata']['name']}-createtree"


def trillian_address(instance: dict[str, Any], service_name: str) -> str:
    """host:port of the Trillian log server."""
    trillian = (instance.get("spec") or {}).get("trillian") or {}
    host = trillian.get("address") or f"{service_name}.{instance['metadata']['namespace']}.svc"
    return f"{host}:{trillian.get('port') or DEFAULT_TRILLIAN_PORT}"


def needs_tree(instance: dict[str, Any]) -> bool:
    if current_state(instance.get("status")) < State.CREATING:
        return False
    wanted = (instance.get("spec") or {}).get("treeID")
    current = (instance.get("status") or {}).get("treeID")
    if current is None:
        return True
    return bool(wanted) and wanted != current


def created_tree_id(ctx: ReconcileContext, instance: dict[str, Any]) -> str | None:
    """Tree id written by the create-tree job, if any."""
    cm = ctx.find(CORE_V1, KIND_CONFIG_MAP, instance["metadata"]["namespace"], tree_config_map_name(instance))
    if cm is None:
        return None
    return (cm.get("data") or {}).get(TREE_ID_KEY)


class CreateTree(ComponentAction):
    """Run the create-tree job when no tree id is known."""

    name = "create-tree"

    def can_handle(self, ctx: ReconcileContext, instance: dict[str, Any]) -> bool:
        if not needs_tree(instance) or (instance.get("spec") or {}).get("treeID"):
            return False
        return created_tree_id(ctx, instance) is None

    def handle(self, ctx: ReconcileContext, instance: dict[str, Any]) -> Result:
        tree_condition = self.config.name("tree_condition")
        namespace = instance["metadata"]["namespace"]
        trillian = (instance.get("spec") or {}).get("trillian") or {}
        if not trillian.get("address"):
            found = lookup(ctx, namespace, group_selector(instance), KIND_TRILLIAN)
            if not found.ready:
                return self.wait_for(ctx, instance, tree_condition, found.describe(KIND_TRILLIAN))

        cm_name = tree_config_map_name(instance)
        labels = self.labels(instance)
        # The job fills in the data, so only metadata is managed here
        self.ensure(ctx, config_map(cm_name, namespace, labels, owner=instance), ensure_labels(), ensure_owner_references())

        address = trillian_address(instance, self.config.name("trillian_service"))
        desired_job = job(
            tree_job_name(instance),
            namespace,
            labels,
            [
                container(
                    "createtree",
                    self.config.image("createtree"),
                    args=[
                        f"--admin_server={address}",
                        f"--configmap={cm_name}",
                        "--display_name=ctlog-tree",
                    ],
                    env=[{"name": "NAMESPACE", "valueFrom": {"fieldRef": {"fieldPath": "metadata.namespace"}}}],
                )
            ],
            owner=instance,
        )
        created = self.ensure(ctx, desired_job, ensure_labels())

        status = instance.setdefault("status", {})
        if not created and get_reason(status, tree_condition) == REASON_CREATING:
            return self.requeue()
        set_condition(status, tree_condition, STATUS_FALSE, REASON_CREATING, "Waiting for tree creation job")
        self.log_info(instance, "Creating Trillian tree", trillian=address)
        return self.status_update(ctx, instance)


class ResolveTree(ComponentAction):
    """Record the tree id from spec or from the create-tree job."""

    name = "resolve-tree"

    def can_handle(self, ctx: ReconcileContext, instance: dict[str, Any]) -> bool:
        if not needs_tree(instance):
            return False
        return bool((instance.get("spec") or {}).get("treeID")) or created_tree_id(ctx, instance) is not None

    def handle(self, ctx: ReconcileContext, instance: dict[str, Any]) -> Result:
        tree_condition = self.config.name("tree_condition")
        tree_id = (instance.get("spec") or {}).get("treeID")
        if not tree_id:
            raw = created_tree_id(ctx, instance)
            try:
                tree_id = int(raw)
            except (TypeError, ValueError):
                err = ConfigurationError(f"Invalid tree id {raw!r} in {tree_config_map_name(instance)}")
                return self.error(ctx, err, instance, condition(tree_condition, False, REASON_FAILURE, str(err)))

        status = instance.setdefault("status", {})
        status["treeID"] = tree_id
        set_condition(status, tree_condition, STATUS_TRUE, REASON_READY, f"Using tree {tree_id}")
        set_condition(status, self.config.name("config_condition"), STATUS_FALSE, REASON_PENDING, "Tree changed")
        ctx.event(instance, "TreeResolved", f"Using Trillian tree {tree_id}")
        return self.status_update(ctx, instance)
