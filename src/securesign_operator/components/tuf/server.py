"""TUF repository server."""

from __future__ import annotations

from typing import Any

from ...action.context import ReconcileContext
from ...action.result import Result
from ..common import EnsureWorkloadAction
from ..templates import container, deployment, service
from .keys import bundle_name

SERVER_PORT = 8080
DEFAULT_SERVICE_PORT = 80
KEYS_DIR = "/var/run/tuf-secrets"


class Deployment(EnsureWorkloadAction):
    name = "tuf-deployment"

    def desired(self, ctx: ReconcileContext, instance: dict[str, Any]) -> dict[str, Any]:
        name = self.config.deployment
        return deployment(
            name,
            instance["metadata"]["namespace"],
            self.labels(instance),
            self.selector(instance),
            [
                container(
                    name,
                    self.config.image("server"),
                    env=[{"name": "NAMESPACE", "valueFrom": {"fieldRef": {"fieldPath": "metadata.namespace"}}}],
                    ports=[SERVER_PORT],
                    volume_mounts=[{"name": "tuf-secrets", "mountPath": KEYS_DIR, "readOnly": True}],
                    readiness_path="/",
                    readiness_port=SERVER_PORT,
                )
            ],
            owner=instance,
            volumes=[{"name": "tuf-secrets", "secret": {"secretName": bundle_name(instance)}}],
        )


class Service(EnsureWorkloadAction):
    """TUF service; also publishes the in-cluster URL in status."""

    name = "tuf-service"

    def port(self, instance: dict[str, Any]) -> int:
        return (instance.get("spec") or {}).get("port") or DEFAULT_SERVICE_PORT

    def desired(self, ctx: ReconcileContext, instance: dict[str, Any]) -> dict[str, Any]:
        return service(
            self.config.deployment,
            instance["metadata"]["namespace"],
            self.labels(instance),
            self.selector(instance),
            {"http": (self.port(instance), SERVER_PORT)},
            owner=instance,
        )

    def handle(self, ctx: ReconcileContext, instance: dict[str, Any]) -> Result:
        result = super().handle(ctx, instance)
        if result.stops_pipeline:
            return result
        url = f"http://{self.config.deployment}.{instance['metadata']['namespace']}.svc"
        port = self.port(instance)
        if port != DEFAULT_SERVICE_PORT:
            url = f"{url}:{port}"
        status = instance.setdefault("status", {})
        if status.get("url") == url:
            return result
        status["url"] = url
        return self.status_update(ctx, instance)
