"""Builders for the workload objects the action sets manage."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from ..constants import (
    APPS_V1,
    BATCH_V1,
    CORE_V1,
    KIND_CONFIG_MAP,
    KIND_DEPLOYMENT,
    KIND_JOB,
    KIND_PVC,
    KIND_SERVICE,
    LABEL_APP_COMPONENT,
    LABEL_APP_INSTANCE,
    LABEL_APP_MANAGED_BY,
    LABEL_APP_NAME,
    LABEL_APP_PART_OF,
    LABEL_RESOURCE,
    MANAGED_BY,
    PART_OF,
    STATUS_TRUE,
)

if TYPE_CHECKING:
    from ..action.context import ReconcileContext


def labels_for(component: str, name: str, instance: str) -> dict[str, str]:
    """Common labels for objects of one component instance."""
    return {
        LABEL_APP_PART_OF: PART_OF,
        LABEL_APP_MANAGED_BY: MANAGED_BY,
        LABEL_APP_COMPONENT: component,
        LABEL_APP_NAME: name,
        LABEL_APP_INSTANCE: instance,
    }


def selector_labels_for(component: str, name: str, instance: str) -> dict[str, str]:
    """The subset of labels used in workload selectors."""
    return {
        LABEL_APP_COMPONENT: component,
        LABEL_APP_NAME: name,
        LABEL_APP_INSTANCE: instance,
    }


def resource_labels(component: str, name: str, instance: str, resource: str) -> dict[str, str]:
    """Ownership labels tying a generated object to one instance and slot."""
    labels = labels_for(component, name, instance)
    labels[LABEL_RESOURCE] = resource
    return labels


def owner_reference(owner: dict[str, Any], controller: bool = True) -> dict[str, Any]:
    meta = owner["metadata"]
    return {
        "apiVersion": owner["apiVersion"],
        "kind": owner["kind"],
        "name": meta["name"],
        "uid": meta["uid"],
        "controller": controller,
        "blockOwnerDeletion": True,
    }


def _metadata(
    name: str,
    namespace: str,
    labels: dict[str, str],
    owner: dict[str, Any] | None,
    annotations: dict[str, str] | None = None,
) -> dict[str, Any]:
    meta: dict[str, Any] = {"name": name, "namespace": namespace, "labels": dict(labels)}
    if annotations:
        meta["annotations"] = dict(annotations)
    if owner is not None:
        meta["ownerReferences"] = [owner_reference(owner)]
    return meta


def container(
    name: str,
    image: str,
    args: list[str] | None = None,
    env: list[dict[str, Any]] | None = None,
    ports: list[int] | None = None,
    volume_mounts: list[dict[str, Any]] | None = None,
    readiness_path: str | None = None,
    readiness_port: int | None = None,
) -> dict[str, Any]:
    spec: dict[str, Any] = {"name": name, "image": image}
    if args:
        spec["args"] = list(args)
    if env:
        spec["env"] = list(env)
    if ports:
        spec["ports"] = [{"containerPort": p, "protocol": "TCP"} for p in ports]
    if volume_mounts:
        spec["volumeMounts"] = list(volume_mounts)
    if readiness_port is not None:
        if readiness_path:
            spec["readinessProbe"] = {"httpGet": {"path": readiness_path, "port": readiness_port}}
        else:
            spec["readinessProbe"] = {"tcpSocket": {"port": readiness_port}}
    return spec


def secret_env(name: str, secret: str, key: str) -> dict[str, Any]:
    return {"name": name, "valueFrom": {"secretKeyRef": {"name": secret, "key": key}}}


def deployment(
    name: str,
    namespace: str,
    labels: dict[str, str],
    selector: dict[str, str],
    containers: list[dict[str, Any]],
    owner: dict[str, Any] | None = None,
    replicas: int = 1,
    volumes: list[dict[str, Any]] | None = None,
    strategy: str = "RollingUpdate",
) -> dict[str, Any]:
    pod_spec: dict[str, Any] = {"containers": containers}
    if volumes:
        pod_spec["volumes"] = volumes
    return {
        "apiVersion": APPS_V1,
        "kind": KIND_DEPLOYMENT,
        "metadata": _metadata(name, namespace, labels, owner),
        "spec": {
            "replicas": replicas,
            "selector": {"matchLabels": dict(selector)},
            "strategy": {"type": strategy},
            "template": {"metadata": {"labels": dict(labels)}, "spec": pod_spec},
        },
    }


def service(
    name: str,
    namespace: str,
    labels: dict[str, str],
    selector: dict[str, str],
    ports: dict[str, tuple[int, int]],
    owner: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Build a ClusterIP service.

    Args:
        ports: port name mapped to (service port, target port)
    """
    return {
        "apiVersion": CORE_V1,
        "kind": KIND_SERVICE,
        "metadata": _metadata(name, namespace, labels, owner),
        "spec": {
            "selector": dict(selector),
            "ports": [
                {"name": port_name, "port": port, "targetPort": target, "protocol": "TCP"}
                for port_name, (port, target) in ports.items()
            ],
        },
    }


def persistent_volume_claim(
    name: str,
    namespace: str,
    labels: dict[str, str],
    size: str,
    storage_class: str | None = None,
    owner: dict[str, Any] | None = None,
) -> dict[str, Any]:
    spec: dict[str, Any] = {
        "accessModes": ["ReadWriteOnce"],
        "resources": {"requests": {"storage": size}},
    }
    if storage_class:
        spec["storageClassName"] = storage_class
    return {
        "apiVersion": CORE_V1,
        "kind": KIND_PVC,
        "metadata": _metadata(name, namespace, labels, owner),
        "spec": spec,
    }


def config_map(
    name: str,
    namespace: str,
    labels: dict[str, str],
    data: dict[str, str] | None = None,
    owner: dict[str, Any] | None = None,
) -> dict[str, Any]:
    obj: dict[str, Any] = {
        "apiVersion": CORE_V1,
        "kind": KIND_CONFIG_MAP,
        "metadata": _metadata(name, namespace, labels, owner),
    }
    if data is not None:
        obj["data"] = dict(data)
    return obj


def job(
    name: str,
    namespace: str,
    labels: dict[str, str],
    containers: list[dict[str, Any]],
    owner: dict[str, Any] | None = None,
    service_account: str | None = None,
) -> dict[str, Any]:
    pod_spec: dict[str, Any] = {"containers": containers, "restartPolicy": "OnFailure"}
    if service_account:
        pod_spec["serviceAccountName"] = service_account
    return {
        "apiVersion": BATCH_V1,
        "kind": KIND_JOB,
        "metadata": _metadata(name, namespace, labels, owner),
        "spec": {
            "backoffLimit": 6,
            "template": {"metadata": {"labels": dict(labels)}, "spec": pod_spec},
        },
    }


def deployment_is_running(ctx: ReconcileContext, namespace: str, labels: dict[str, str]) -> bool:
    """Whether every deployment matching ``labels`` has rolled out and is available.

    No matching deployment counts as not running.
    """
    deployments = ctx.list(APPS_V1, KIND_DEPLOYMENT, namespace, labels)
    if not deployments:
        return False
    for item in deployments:
        generation = item["metadata"].get("generation", 0)
        status = item.get("status") or {}
        if status.get("observedGeneration", 0) < generation:
            return False
        available = any(
            c.get("type") == "Available" and c.get("status") == STATUS_TRUE for c in status.get("conditions") or []
        )
        if not available:
            return False
    return True
