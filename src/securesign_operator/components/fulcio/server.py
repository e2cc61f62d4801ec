"""Fulcio server configuration and workload."""

from __future__ import annotations

import json
from typing import Any

from ...action.base import condition
from ...action.context import ReconcileContext
from ...action.ensure import ensure_data, ensure_labels, ensure_owner_references
from ...action.result import Result
from ...constants import COND_READY, REASON_CREATING, REASON_FAILURE, REASON_READY, STATUS_FALSE, STATUS_TRUE
from ...state import State, current_state
from ...utils.conditions import is_true, set_condition
from ...utils.errors import ConfigurationError, DependencyNotReadyError
from ..common import ComponentAction, EnsureWorkloadAction
from ..templates import config_map, container, deployment, secret_env, service
from .cert import status_certificate

HTTP_PORT = 5555
GRPC_PORT = 5554
METRICS_PORT = 2112

SERVER_CONFIG_KEY = "config.json"
CONFIG_MOUNT = "/etc/fulcio-config"
SECRETS_MOUNT = "/var/run/fulcio-secrets"
DEFAULT_CTLOG_PREFIX = "trusted-artifact-signer"


def server_config_data(instance: dict[str, Any]) -> str:
    """Render the Fulcio issuer configuration.

    Raises:
        ConfigurationError: no OIDC issuer is configured
    """
    config = (instance.get("spec") or {}).get("config") or {}
    issuers = config.get("OIDCIssuers") or []
    if not issuers:
        raise ConfigurationError("At least one OIDC issuer must be configured")
    rendered: dict[str, Any] = {"OIDCIssuers": {}, "MetaIssuers": {}}
    for issuer in issuers:
        url = issuer.get("IssuerURL") or issuer.get("Issuer")
        entry = {k: v for k, v in issuer.items() if k != "Issuer" and v not in (None, "")}
        entry.setdefault("IssuerURL", url)
        rendered["OIDCIssuers"][issuer.get("Issuer") or url] = entry
    for issuer in config.get("MetaIssuers") or []:
        entry = {k: v for k, v in issuer.items() if k != "Issuer" and v not in (None, "")}
        rendered["MetaIssuers"][issuer["Issuer"]] = entry
    return json.dumps(rendered, sort_keys=True, indent=2)


class ServerConfig(ComponentAction):
    """Keep the issuer config map in line with ``spec.config``."""

    name = "server-config"

    def can_handle(self, ctx: ReconcileContext, instance: dict[str, Any]) -> bool:
        return current_state(instance.get("status")) >= State.CREATING

    def handle(self, ctx: ReconcileContext, instance: dict[str, Any]) -> Result:
        config_condition = self.config.name("config_condition")
        try:
            data = server_config_data(instance)
        except ConfigurationError as e:
            return self.error(ctx, e, instance, condition(config_condition, False, REASON_FAILURE, str(e)))

        name = self.config.name("config_map")
        desired = config_map(
            name,
            instance["metadata"]["namespace"],
            self.labels(instance),
            {SERVER_CONFIG_KEY: data},
            owner=instance,
        )
        changed = self.ensure(ctx, desired, ensure_data(), ensure_labels(), ensure_owner_references())

        status = instance.setdefault("status", {})
        if not changed and is_true(status, config_condition) and status.get("serverConfigRef") == {"name": name}:
            return self.continue_()

        status["serverConfigRef"] = {"name": name}
        set_condition(status, config_condition, STATUS_TRUE, REASON_READY, "Server config created")
        if changed and current_state(status) > State.CREATING:
            generation = instance["metadata"].get("generation")
            set_condition(status, COND_READY, STATUS_FALSE, REASON_CREATING, "Server config updated", generation)
        return self.status_update(ctx, instance)


class Deployment(EnsureWorkloadAction):
    name = "fulcio-deployment"

    def ctlog_url(self, instance: dict[str, Any]) -> str:
        ctlog = (instance.get("spec") or {}).get("ctlog") or {}
        prefix = ctlog.get("prefix") or DEFAULT_CTLOG_PREFIX
        if ctlog.get("address"):
            url = ctlog["address"]
            if ctlog.get("port"):
                url = f"{url}:{ctlog['port']}"
            return f"{url}/{prefix}"
        return f"http://ctlog.{instance['metadata']['namespace']}.svc/{prefix}"

    def desired(self, ctx: ReconcileContext, instance: dict[str, Any]) -> dict[str, Any]:
        status = instance.get("status") or {}
        cert = status_certificate(instance)
        if not status.get("serverConfigRef"):
            raise DependencyNotReadyError("Waiting for server config")
        if not cert.get("privateKeyRef") or not cert.get("caRef"):
            raise DependencyNotReadyError("Waiting for CA certificate")

        args = [
            "serve",
            f"--port={HTTP_PORT}",
            f"--grpc-port={GRPC_PORT}",
            "--ca=fileca",
            "--fileca-key",
            f"{SECRETS_MOUNT}/key.pem",
            "--fileca-cert",
            f"{SECRETS_MOUNT}/cert.pem",
            f"--ct-log-url={self.ctlog_url(instance)}",
        ]
        env = []
        if cert.get("privateKeyPasswordRef"):
            ref = cert["privateKeyPasswordRef"]
            env.append(secret_env("PASSWORD", ref["name"], ref["key"]))
            args.extend(["--fileca-key-passwd", "$(PASSWORD)"])

        key_ref, ca_ref = cert["privateKeyRef"], cert["caRef"]
        volumes = [
            {"name": "fulcio-config", "configMap": {"name": status["serverConfigRef"]["name"]}},
            {
                "name": "fulcio-cert",
                "projected": {
                    "sources": [
                        {"secret": {"name": key_ref["name"], "items": [{"key": key_ref["key"], "path": "key.pem"}]}},
                        {"secret": {"name": ca_ref["name"], "items": [{"key": ca_ref["key"], "path": "cert.pem"}]}},
                    ]
                },
            },
        ]
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
                    args=args,
                    env=env,
                    ports=[HTTP_PORT, GRPC_PORT, METRICS_PORT],
                    volume_mounts=[
                        {"name": "fulcio-config", "mountPath": CONFIG_MOUNT},
                        {"name": "fulcio-cert", "mountPath": SECRETS_MOUNT, "readOnly": True},
                    ],
                    readiness_path="/healthz",
                    readiness_port=HTTP_PORT,
                )
            ],
            owner=instance,
            replicas=(instance.get("spec") or {}).get("replicas", 1),
            volumes=volumes,
        )


class Service(EnsureWorkloadAction):
    """Fulcio service; also publishes the in-cluster URL in status."""

    name = "fulcio-service"

    def desired(self, ctx: ReconcileContext, instance: dict[str, Any]) -> dict[str, Any]:
        return service(
            self.config.deployment,
            instance["metadata"]["namespace"],
            self.labels(instance),
            self.selector(instance),
            {"http": (80, HTTP_PORT), "grpc": (GRPC_PORT, GRPC_PORT), "metrics": (METRICS_PORT, METRICS_PORT)},
            owner=instance,
        )

    def handle(self, ctx: ReconcileContext, instance: dict[str, Any]) -> Result:
        result = super().handle(ctx, instance)
        if result.stops_pipeline:
            return result
        url = f"http://{self.config.deployment}.{instance['metadata']['namespace']}.svc"
        status = instance.setdefault("status", {})
        if status.get("url") == url:
            return result
        status["url"] = url
        return self.status_update(ctx, instance)
