"""Trillian log server and log signer workloads."""

from __future__ import annotations

from typing import Any

from ...action.context import ReconcileContext
from ...utils.errors import DependencyNotReadyError
from ..common import EnsureWorkloadAction
from ..templates import container, deployment, service
from .db import connection_env, status_secret_name

GRPC_PORT = 8091
METRICS_PORT = 8090

MYSQL_URI = "$(MYSQL_USER):$(MYSQL_PASSWORD)@tcp($(MYSQL_HOSTNAME):$(MYSQL_PORT))/$(MYSQL_DATABASE)"


def trillian_args(*extra: str) -> list[str]:
    return [
        "--storage_system=mysql",
        "--quota_system=mysql",
        f"--mysql_uri={MYSQL_URI}",
        f"--rpc_endpoint=0.0.0.0:{GRPC_PORT}",
        f"--http_endpoint=0.0.0.0:{METRICS_PORT}",
        "--alsologtostderr",
        *extra,
    ]


class _TrillianDeployment(EnsureWorkloadAction):
    role = ""
    deployment_key = ""
    spec_key = ""
    extra_args: tuple[str, ...] = ()

    def desired(self, ctx: ReconcileContext, instance: dict[str, Any]) -> dict[str, Any]:
        secret_name = status_secret_name(instance)
        if secret_name is None:
            raise DependencyNotReadyError("Waiting for database secret")
        name = self.config.name(self.deployment_key)
        replicas = ((instance.get("spec") or {}).get(self.spec_key) or {}).get("replicas", 1)
        return deployment(
            name,
            instance["metadata"]["namespace"],
            self.labels(instance, name),
            self.selector(instance, name),
            [
                container(
                    self.role,
                    self.config.image(self.role),
                    args=trillian_args(*self.extra_args),
                    env=connection_env(secret_name),
                    ports=[GRPC_PORT, METRICS_PORT],
                    readiness_port=GRPC_PORT,
                )
            ],
            owner=instance,
            replicas=replicas,
        )


class LogServerDeployment(_TrillianDeployment):
    name = "logserver-deployment"
    role = "logserver"
    deployment_key = "logserver_deployment"
    spec_key = "server"


class LogSignerDeployment(_TrillianDeployment):
    name = "logsigner-deployment"
    role = "logsigner"
    deployment_key = "logsigner_deployment"
    spec_key = "signer"
    extra_args = ("--force_master=true",)


class LogServerService(EnsureWorkloadAction):
    name = "logserver-service"

    def desired(self, ctx: ReconcileContext, instance: dict[str, Any]) -> dict[str, Any]:
        name = self.config.name("logserver_deployment")
        return service(
            name,
            instance["metadata"]["namespace"],
            self.labels(instance, name),
            self.selector(instance, name),
            {"grpc": (GRPC_PORT, GRPC_PORT), "metrics": (METRICS_PORT, METRICS_PORT)},
            owner=instance,
        )
