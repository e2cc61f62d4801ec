"""CT log server configuration secret."""

from __future__ import annotations

from typing import Any

from ...action.base import condition
from ...action.context import ReconcileContext
from ...action.result import Result
from ...constants import API_GROUP, REASON_FAILURE, REASON_READY, STATUS_TRUE
from ...state import State, current_state
from ...utils.conditions import is_true, set_condition
from ...utils.crypto import generate_password, load_private_key, private_key_pem, public_key_der
from ...utils.errors import ConfigurationError, DependencyNotReadyError
from ...utils.secrets import (
    annotations_match,
    cleanup_orphans,
    create_secret,
    get_secret,
    make_secret,
    read_selector,
    secret_value,
)
from ..common import ComponentAction
from ..templates import owner_reference, resource_labels
from .keys import read_signer_key
from .tree import trillian_address

CONFIG_RESOURCE = "ctlog-server-config"
CONFIG_KEY = "config"
KEYS_DIR = "/ctfe-keys"
LOG_PREFIX = "trusted-artifact-signer"
CONFIG_PASSWORD_LENGTH = 8

ANNOTATION_TREE_ID = f"{API_GROUP}/treeID"
ANNOTATION_TRILLIAN_URL = f"{API_GROUP}/trillianUrl"
ANNOTATION_ROOT_CERTIFICATES = f"{API_GROUP}/rootCertificates"
ANNOTATION_PRIVATE_KEY_REF = f"{API_GROUP}/privateKeyRef"
ANNOTATION_PUBLIC_KEY_REF = f"{API_GROUP}/publicKeyRef"


def _quote(value: str | bytes) -> str:
    """Quote a string or bytes value as a protobuf text-format literal."""
    if isinstance(value, str):
        value = value.encode("utf-8")
    out = []
    for byte in value:
        char = chr(byte)
        if char in ('"', "\\", "'"):
            out.append("\\" + char)
        elif 0x20 <= byte < 0x7F:
            out.append(char)
        else:
            out.append(f"\\{byte:03o}")
    return '"' + "".join(out) + '"'


def render_log_config(
    tree_id: int,
    trillian_url: str,
    root_count: int,
    password: str,
    public_der: bytes,
    prefix: str = LOG_PREFIX,
) -> str:
    """Render a LogMultiConfig in protobuf text format.

    Root certificates are expected at ``/ctfe-keys/fulcio-<n>`` and the
    encrypted private key at ``/ctfe-keys/private``.
    """
    lines = [
        "log_configs: {",
        "  config: {",
        f"    log_id: {tree_id}",
        f"    prefix: {_quote(prefix)}",
    ]
    lines += [f"    roots_pem_file: {_quote(f'{KEYS_DIR}/fulcio-{i}')}" for i in range(root_count)]
    lines += [
        "    private_key: {",
        "      [type.googleapis.com/keyspb.PEMKeyFile]: {",
        f"        path: {_quote(f'{KEYS_DIR}/private')}",
        f"        password: {_quote(password)}",
        "      }",
        "    }",
        "    public_key: {",
        f"      der: {_quote(public_der)}",
        "    }",
        '    log_backend_name: "trillian"',
        '    ext_key_usages: "CodeSigning"',
        "  }",
        "}",
        "backends: {",
        "  backend: {",
        '    name: "trillian"',
        f"    backend_spec: {_quote(trillian_url)}",
        "  }",
        "}",
    ]
    return "\n".join(lines) + "\n"


class ServerConfig(ComponentAction):
    """Build the log config secret from the resolved tree, keys and roots.

    A user supplied ``spec.serverConfigRef`` is used as-is once it is known
    to contain the ``config`` key.
    """

    name = "server-config"

    def ownership_labels(self, instance: dict[str, Any]) -> dict[str, str]:
        return resource_labels(
            self.config.component, self.config.deployment, instance["metadata"]["name"], CONFIG_RESOURCE
        )

    def trillian_url(self, instance: dict[str, Any]) -> str:
        return trillian_address(instance, self.config.name("trillian_service"))

    def expected_annotations(self, instance: dict[str, Any]) -> dict[str, str]:
        status = instance.get("status") or {}
        roots = ",".join(f"{r['name']}/{r['key']}" for r in status.get("rootCertificates") or [])
        private_ref = status.get("privateKeyRef") or {}
        public_ref = status.get("publicKeyRef") or {}
        return {
            ANNOTATION_TREE_ID: str(status.get("treeID", "")),
            ANNOTATION_TRILLIAN_URL: self.trillian_url(instance),
            ANNOTATION_ROOT_CERTIFICATES: roots,
            ANNOTATION_PRIVATE_KEY_REF: f"{private_ref.get('name', '')}/{private_ref.get('key', '')}",
            ANNOTATION_PUBLIC_KEY_REF: f"{public_ref.get('name', '')}/{public_ref.get('key', '')}",
        }

    def can_handle(self, ctx: ReconcileContext, instance: dict[str, Any]) -> bool:
        status = instance.get("status") or {}
        if current_state(status) < State.CREATING:
            return False
        if not status.get("serverConfigRef") or not is_true(status, self.config.name("config_condition")):
            return True
        wanted = (instance.get("spec") or {}).get("serverConfigRef")
        if wanted and wanted != status["serverConfigRef"]:
            return True
        current = get_secret(ctx, instance["metadata"]["namespace"], status["serverConfigRef"]["name"])
        if current is None:
            return True
        if wanted:
            return False
        return not annotations_match(current, self.expected_annotations(instance))

    def handle(self, ctx: ReconcileContext, instance: dict[str, Any]) -> Result:
        config_condition = self.config.name("config_condition")
        namespace = instance["metadata"]["namespace"]
        status = instance.setdefault("status", {})
        wanted = (instance.get("spec") or {}).get("serverConfigRef")

        if wanted:
            secret = get_secret(ctx, namespace, wanted["name"])
            if secret is None:
                return self.wait_for(ctx, instance, config_condition, f"Waiting for secret {wanted['name']}")
            if secret_value(secret, CONFIG_KEY) is None:
                err = ConfigurationError(f"Server config secret {wanted['name']} is missing the '{CONFIG_KEY}' key")
                return self.error(ctx, err, instance, condition(config_condition, False, REASON_FAILURE, str(err)))
            # Generated configs are no longer used
            _, deleted = cleanup_orphans(
                ctx, namespace, self.ownership_labels(instance), component=self.config.component
            )
            if deleted:
                self.log_info(instance, "Removed generated server config secrets", deleted=deleted)
            status["serverConfigRef"] = {"name": wanted["name"]}
            set_condition(status, config_condition, STATUS_TRUE, REASON_READY, "Using custom server config")
            return self.status_update(ctx, instance)

        try:
            data = self._config_data(ctx, instance)
        except DependencyNotReadyError as e:
            return self.wait_for(ctx, instance, config_condition, str(e))
        except ConfigurationError as e:
            return self.error(ctx, e, instance, condition(config_condition, False, REASON_FAILURE, str(e)))

        expected = self.expected_annotations(instance)
        survivor, deleted = cleanup_orphans(
            ctx,
            namespace,
            self.ownership_labels(instance),
            matcher=lambda s: annotations_match(s, expected),
            component=self.config.component,
        )
        if deleted:
            self.log_info(instance, "Removed stale server config secrets", deleted=deleted)
        if survivor is None:
            survivor = create_secret(
                ctx,
                make_secret(
                    namespace,
                    data,
                    generate_name=f"ctlog-config-{instance['metadata']['name']}-",
                    labels=self.ownership_labels(instance),
                    annotations=expected,
                    owner_references=[owner_reference(instance)],
                ),
                component=self.config.component,
            )
            ctx.event(instance, "ServerConfigCreated", f"Server config {survivor['metadata']['name']} created")

        status["serverConfigRef"] = {"name": survivor["metadata"]["name"]}
        set_condition(status, config_condition, STATUS_TRUE, REASON_READY, "Server config created")
        return self.status_update(ctx, instance)

    def _config_data(self, ctx: ReconcileContext, instance: dict[str, Any]) -> dict[str, str | bytes]:
        status = instance.get("status") or {}
        if status.get("treeID") is None:
            raise DependencyNotReadyError("Waiting for tree")
        if not status.get("rootCertificates"):
            raise DependencyNotReadyError("Waiting for Fulcio root certificate")
        pem, password = read_signer_key(ctx, instance)
        try:
            key = load_private_key(pem, password)
        except (ValueError, TypeError) as e:
            raise ConfigurationError(f"Unable to load signer key: {e}") from e
        if not password:
            # The log only reads encrypted keys
            password = generate_password(CONFIG_PASSWORD_LENGTH)
            pem = private_key_pem(key, password)

        namespace = instance["metadata"]["namespace"]
        roots = [read_selector(ctx, namespace, ref) for ref in status["rootCertificates"]]
        data: dict[str, str | bytes] = {
            CONFIG_KEY: render_log_config(
                status["treeID"], self.trillian_url(instance), len(roots), password, public_key_der(key)
            ),
            "private": pem,
            "password": password,
        }
        for i, root in enumerate(roots):
            data[f"fulcio-{i}"] = root
        return data
