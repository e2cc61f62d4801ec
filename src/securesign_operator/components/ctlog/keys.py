"""CTlog signer key and public key resolution."""

from __future__ import annotations

from typing import Any

from ...action.base import condition
from ...action.context import ReconcileContext
from ...action.result import Result
from ...constants import (
    COND_READY,
    CORE_V1,
    EVENT_REASON_KEY_ROTATED,
    EVENT_REASON_SECRET_CREATED,
    KIND_SECRET,
    LABEL_APP_INSTANCE,
    LABEL_CTLOG_PUBLIC_KEY,
    LABEL_RESOURCE,
    REASON_FAILURE,
    REASON_PENDING,
    REASON_READY,
    STATUS_FALSE,
    STATUS_TRUE,
)
from ...utils.conditions import find_condition, is_true, set_condition
from ...utils.crypto import (
    generate_ec_key,
    generate_password,
    load_private_key,
    private_key_pem,
    public_key_pem,
    same_public_key,
)
from ...utils.errors import ConfigurationError, DependencyNotReadyError
from ...utils.secrets import cleanup_orphans, create_secret, make_secret, read_selector, secret_value
from ..common import ComponentAction
from ..templates import owner_reference, resource_labels

SIGNER_PASSWORD_LENGTH = 20
KEYS_RESOURCE = "ctlog-keys"
PUBLIC_KEY_RESOURCE = "ctlog-pub"

KEY_PRIVATE = "private"
KEY_PUBLIC = "public"
KEY_PASSWORD = "password"


def spec_of(instance: dict[str, Any]) -> dict[str, Any]:
    return instance.get("spec") or {}


def status_of(instance: dict[str, Any]) -> dict[str, Any]:
    return instance.get("status") or {}


def _holds_public_key(secret: dict[str, Any], public: bytes) -> bool:
    value = secret_value(secret, KEY_PUBLIC)
    return value is not None and same_public_key(value, public)


def read_signer_key(ctx: ReconcileContext, instance: dict[str, Any]) -> tuple[bytes, str | None]:
    """Read the private key PEM and password the status points at.

    Raises:
        DependencyNotReadyError: the key secret is not there (yet)
    """
    status = status_of(instance)
    namespace = instance["metadata"]["namespace"]
    if not status.get("privateKeyRef"):
        raise DependencyNotReadyError("Waiting for signer key")
    pem = read_selector(ctx, namespace, status["privateKeyRef"])
    password = None
    if status.get("privateKeyPasswordRef"):
        password = read_selector(ctx, namespace, status["privateKeyPasswordRef"]).decode("utf-8")
    return pem, password


class _KeyAction(ComponentAction):
    resource = ""

    def ownership_labels(self, instance: dict[str, Any]) -> dict[str, str]:
        return resource_labels(self.config.component, self.config.deployment, instance["metadata"]["name"], self.resource)

    def generated(self, instance: dict[str, Any], secret: dict[str, Any]) -> bool:
        labels = secret["metadata"].get("labels") or {}
        return labels.get(LABEL_RESOURCE) == self.resource and labels.get(LABEL_APP_INSTANCE) == instance["metadata"]["name"]

    def invalidate(self, instance: dict[str, Any], message: str, *names: str) -> None:
        status = instance.setdefault("status", {})
        for name in names:
            set_condition(status, self.config.name(name), STATUS_FALSE, REASON_PENDING, message)


class GenerateSigner(_KeyAction):
    """Adopt ``spec.privateKeyRef`` or generate a password protected P-256 key."""

    name = "generate-signer"
    resource = KEYS_RESOURCE

    def can_handle(self, ctx: ReconcileContext, instance: dict[str, Any]) -> bool:
        status = status_of(instance)
        if find_condition(status, COND_READY) is None:
            return False
        if not status.get("privateKeyRef") or not is_true(status, self.config.name("signer_condition")):
            return True
        spec = spec_of(instance)
        for field in ("privateKeyRef", "privateKeyPasswordRef"):
            if spec.get(field) and spec[field] != status.get(field):
                return True
        secret = ctx.find(CORE_V1, KIND_SECRET, instance["metadata"]["namespace"], status["privateKeyRef"]["name"])
        if secret is None:
            return True
        # Dropping spec.privateKeyRef switches back to a generated key
        return not spec.get("privateKeyRef") and not self.generated(instance, secret)

    def handle(self, ctx: ReconcileContext, instance: dict[str, Any]) -> Result:
        signer_condition = self.config.name("signer_condition")
        namespace = instance["metadata"]["namespace"]
        spec = spec_of(instance)
        status = instance.setdefault("status", {})
        previous = (status.get("privateKeyRef"), status.get("privateKeyPasswordRef"))

        if spec.get("privateKeyRef"):
            try:
                read_selector(ctx, namespace, spec["privateKeyRef"])
                if spec.get("privateKeyPasswordRef"):
                    read_selector(ctx, namespace, spec["privateKeyPasswordRef"])
            except DependencyNotReadyError as e:
                return self.wait_for(ctx, instance, signer_condition, str(e))
            status["privateKeyRef"] = spec["privateKeyRef"]
            if spec.get("privateKeyPasswordRef"):
                status["privateKeyPasswordRef"] = spec["privateKeyPasswordRef"]
            else:
                status.pop("privateKeyPasswordRef", None)
            _, deleted = cleanup_orphans(ctx, namespace, self.ownership_labels(instance), component=self.config.component)
            if deleted:
                self.log_info(instance, "Removed generated signer keys", deleted=deleted)
            message = f"Using signer key from secret {spec['privateKeyRef']['name']}"
        else:
            keep = (status.get("privateKeyRef") or {}).get("name")
            survivor, deleted = cleanup_orphans(
                ctx,
                namespace,
                self.ownership_labels(instance),
                keep=keep,
                matcher=lambda s: True,
                component=self.config.component,
            )
            if deleted:
                self.log_info(instance, "Removed stale signer keys", deleted=deleted)
            secret = survivor if survivor is not None else self._create(ctx, instance)
            name = secret["metadata"]["name"]
            status["privateKeyRef"] = {"name": name, "key": KEY_PRIVATE}
            status["privateKeyPasswordRef"] = spec.get("privateKeyPasswordRef") or {"name": name, "key": KEY_PASSWORD}
            message = f"Using generated signer key {name}"

        if previous != (status.get("privateKeyRef"), status.get("privateKeyPasswordRef")):
            self.invalidate(instance, "Signer key changed", "config_condition", "public_key_condition")
            if previous[0]:
                ctx.event(instance, EVENT_REASON_KEY_ROTATED, message)
        set_condition(status, signer_condition, STATUS_TRUE, REASON_READY, message)
        self.log_info(instance, message)
        return self.status_update(ctx, instance)

    def _create(self, ctx: ReconcileContext, instance: dict[str, Any]) -> dict[str, Any]:
        password = generate_password(SIGNER_PASSWORD_LENGTH)
        key = generate_ec_key("p256")
        secret = make_secret(
            instance["metadata"]["namespace"],
            {KEY_PRIVATE: private_key_pem(key, password), KEY_PASSWORD: password},
            generate_name=f"ctlog-{instance['metadata']['name']}-keys-",
            labels=self.ownership_labels(instance),
            owner_references=[owner_reference(instance)],
        )
        created = create_secret(ctx, secret, component=self.config.component)
        ctx.event(instance, EVENT_REASON_SECRET_CREATED, f"Signer key {created['metadata']['name']} created")
        return created


class ResolvePubKey(_KeyAction):
    """Publish the signer's public key in a discoverable secret."""

    name = "resolve-public-key"
    resource = PUBLIC_KEY_RESOURCE

    def can_handle(self, ctx: ReconcileContext, instance: dict[str, Any]) -> bool:
        status = status_of(instance)
        if find_condition(status, COND_READY) is None:
            return False
        if not status.get("publicKeyRef") or not is_true(status, self.config.name("public_key_condition")):
            return True
        wanted = spec_of(instance).get("publicKeyRef")
        return bool(wanted) and wanted != status["publicKeyRef"]

    def handle(self, ctx: ReconcileContext, instance: dict[str, Any]) -> Result:
        condition_name = self.config.name("public_key_condition")
        namespace = instance["metadata"]["namespace"]
        status = instance.setdefault("status", {})
        previous = status.get("publicKeyRef")

        wanted = spec_of(instance).get("publicKeyRef")
        if wanted:
            try:
                read_selector(ctx, namespace, wanted)
            except DependencyNotReadyError as e:
                return self.wait_for(ctx, instance, condition_name, str(e))
            status["publicKeyRef"] = wanted
        else:
            try:
                pem, password = read_signer_key(ctx, instance)
            except DependencyNotReadyError as e:
                return self.wait_for(ctx, instance, condition_name, str(e))
            try:
                public = public_key_pem(load_private_key(pem, password))
            except (ValueError, TypeError) as e:
                err = ConfigurationError(f"Unable to load signer key: {e}")
                return self.error(ctx, err, instance, condition(condition_name, False, REASON_FAILURE, str(err)))

            survivor, deleted = cleanup_orphans(
                ctx,
                namespace,
                self.ownership_labels(instance),
                matcher=lambda s: _holds_public_key(s, public),
                component=self.config.component,
            )
            if deleted:
                self.log_info(instance, "Removed stale public key secrets", deleted=deleted)
            secret = survivor if survivor is not None else self._create(ctx, instance, public)
            status["publicKeyRef"] = {"name": secret["metadata"]["name"], "key": KEY_PUBLIC}

        if previous != status["publicKeyRef"]:
            self.invalidate(instance, "Public key changed", "config_condition")
        set_condition(status, condition_name, STATUS_TRUE, REASON_READY, "Public key resolved")
        return self.status_update(ctx, instance)

    def _create(self, ctx: ReconcileContext, instance: dict[str, Any], public: bytes) -> dict[str, Any]:
        labels = self.ownership_labels(instance)
        labels[LABEL_CTLOG_PUBLIC_KEY] = KEY_PUBLIC
        secret = make_secret(
            instance["metadata"]["namespace"],
            {KEY_PUBLIC: public},
            generate_name=f"ctlog-{instance['metadata']['name']}-pub-",
            labels=labels,
            owner_references=[owner_reference(instance)],
        )
        created = create_secret(ctx, secret, component=self.config.component)
        ctx.event(instance, EVENT_REASON_SECRET_CREATED, f"Public key secret {created['metadata']['name']} created")
        return created
