"""Operator and per-component configuration.

Values are read from the environment once and frozen. Component settings are
handed to the action constructors so that no action reads module state.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field


def _env_int(name: str, default: int) -> int:
    return int(os.getenv(name, str(default)))


def _env_float(name: str, default: float) -> float:
    return float(os.getenv(name, str(default)))


@dataclass(frozen=True)
class OperatorConfig:
    """Process-wide settings."""

    metrics_port: int = 8080
    max_workers: int = 4
    resync_interval: float = 300.0
    reconcile_timeout: float = 60.0
    max_passes: int = 10
    k8s_rate_limit: float = 10.0

    @classmethod
    def from_env(cls) -> "OperatorConfig":
        return cls(
            metrics_port=_env_int("METRICS_PORT", 8080),
            max_workers=_env_int("MAX_WORKERS", 4),
            resync_interval=_env_float("RESYNC_INTERVAL_SECONDS", 300.0),
            reconcile_timeout=_env_float("RECONCILE_TIMEOUT_SECONDS", 60.0),
            max_passes=_env_int("MAX_PASSES_PER_INVOCATION", 10),
            k8s_rate_limit=_env_float("K8S_RATE_LIMIT_PER_SECOND", 10.0),
        )


@dataclass(frozen=True)
class ComponentConfig:
    """Names and images one action set works with.

    Attributes:
        component: value of the app.kubernetes.io/component label
        deployment: main workload name
        conditions: component conditions that make up Ready
        images: workload image per role
        extra: additional component-specific names
    """

    component: str
    deployment: str
    conditions: tuple[str, ...]
    images: dict[str, str] = field(default_factory=dict)
    extra: dict[str, str] = field(default_factory=dict)

    def image(self, role: str) -> str:
        return self.images[role]

    def name(self, key: str) -> str:
        return self.extra[key]


def _image(env: str, default: str) -> str:
    return os.getenv(env, default)


def trillian_config() -> ComponentConfig:
    return ComponentConfig(
        component="trillian",
        deployment="trillian-logserver",
        conditions=("DbAvailable", "ServerAvailable", "SignerAvailable"),
        images={
            "db": _image("RELATED_IMAGE_TRILLIAN_DB", "registry.redhat.io/rhtas/trillian-database-rhel9:latest"),
            "logserver": _image(
                "RELATED_IMAGE_TRILLIAN_LOG_SERVER", "registry.redhat.io/rhtas/trillian-logserver-rhel9:latest"
            ),
            "logsigner": _image(
                "RELATED_IMAGE_TRILLIAN_LOG_SIGNER", "registry.redhat.io/rhtas/trillian-logsigner-rhel9:latest"
            ),
        },
        extra={
            "db_deployment": "trillian-db",
            "db_host": "trillian-mysql",
            "logserver_deployment": "trillian-logserver",
            "logsigner_deployment": "trillian-logsigner",
            "db_condition": "DbAvailable",
            "server_condition": "ServerAvailable",
            "signer_condition": "SignerAvailable",
        },
    )


def fulcio_config() -> ComponentConfig:
    return ComponentConfig(
        component="fulcio",
        deployment="fulcio-server",
        conditions=("FulcioCertAvailable", "ServerConfigAvailable", "ServerAvailable"),
        images={"server": _image("RELATED_IMAGE_FULCIO_SERVER", "registry.redhat.io/rhtas/fulcio-rhel9:latest")},
        extra={
            "cert_condition": "FulcioCertAvailable",
            "config_condition": "ServerConfigAvailable",
            "server_condition": "ServerAvailable",
            "config_map": "fulcio-server-config",
        },
    )


def ctlog_config() -> ComponentConfig:
    return ComponentConfig(
        component="ctlog",
        deployment="ctlog",
        conditions=(
            "FulcioCertAvailable",
            "SignerAvailable",
            "PublicKeyAvailable",
            "TreeAvailable",
            "ServerConfigAvailable",
            "ServerAvailable",
        ),
        images={
            "server": _image("RELATED_IMAGE_CTLOG", "registry.redhat.io/rhtas/certificate-transparency-rhel9:latest"),
            "createtree": _image("RELATED_IMAGE_CREATETREE", "registry.redhat.io/rhtas/createtree-rhel9:latest"),
        },
        extra={
            "root_condition": "FulcioCertAvailable",
            "signer_condition": "SignerAvailable",
            "public_key_condition": "PublicKeyAvailable",
            "tree_condition": "TreeAvailable",
            "config_condition": "ServerConfigAvailable",
            "server_condition": "ServerAvailable",
            "trillian_service": "trillian-logserver",
        },
    )


def tuf_config() -> ComponentConfig:
    return ComponentConfig(
        component="tuf",
        deployment="tuf",
        conditions=("RepositoryAvailable", "ServerAvailable"),
        images={"server": _image("RELATED_IMAGE_TUF", "registry.redhat.io/rhtas/tuffer-rhel9:latest")},
        extra={
            "repository_condition": "RepositoryAvailable",
            "server_condition": "ServerAvailable",
        },
    )


def securesign_config() -> ComponentConfig:
    return ComponentConfig(
        component="securesign",
        deployment="",
        conditions=("TrillianAvailable", "FulcioAvailable", "CTlogAvailable", "TufAvailable"),
    )
