"""CT log server workload."""

from __future__ import annotations

from typing import Any

from ...action.context import ReconcileContext
from ...utils.errors import DependencyNotReadyError
from ..common import EnsureWorkloadAction
from ..templates import container, deployment, service
from .server_config import CONFIG_KEY, KEYS_DIR

HTTP_PORT = 6962
METRICS_PORT = 6963
CONFIG_DIR = "/ctfe-config"


class Deployment(EnsureWorkloadAction):
    name = "ctlog-deployment"

    def desired(self, ctx: ReconcileContext, instance: dict[str, Any]) -> dict[str, Any]:
        config_ref = (instance.get("status") or {}).get("serverConfigRef")
        if not config_ref:
            raise DependencyNotReadyError("Waiting for server config")
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
                    args=[
                        f"--http_endpoint=0.0.0.0:{HTTP_PORT}",
                        f"--metrics_endpoint=0.0.0.0:{METRICS_PORT}",
                        f"--log_config={CONFIG_DIR}/{CONFIG_KEY}",
                        "--alsologtostderr",
                    ],
                    ports=[HTTP_PORT, METRICS_PORT],
                    volume_mounts=[
                        {"name": "keys", "mountPath": KEYS_DIR, "readOnly": True},
                        {"name": "config", "mountPath": CONFIG_DIR, "readOnly": True},
                    ],
                    readiness_port=HTTP_PORT,
                )
            ],
            owner=instance,
            replicas=(instance.get("spec") or {}).get("replicas", 1),
            volumes=[
                {"name": "keys", "secret": {"secretName": config_ref["name"]}},
                {
                    "name": "config",
                    "secret": {"secretName": config_ref["name"], "items": [{"key": CONFIG_KEY, "path": CONFIG_KEY}]},
                },
            ],
        )


class Service(EnsureWorkloadAction):
    name = "ctlog-service"

    def desired(self, ctx: ReconcileContext, instance: dict[str, Any]) -> dict[str, Any]:
        return service(
            self.config.deployment,
            instance["metadata"]["namespace"],
            self.labels(instance),
            self.selector(instance),
            {"http": (80, HTTP_PORT), "metrics": (METRICS_PORT, METRICS_PORT)},
            owner=instance,
        )
