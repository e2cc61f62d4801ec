"""Signing CA key material for Fulcio."""

from __future__ import annotations

import copy
from typing import Any

from cryptography.hazmat.primitives.asymmetric import ec

from ...action.base import condition
from ...action.context import ReconcileContext
from ...action.ensure import deep_derivative
from ...action.result import Result
from ...constants import (
    API_GROUP,
    COND_READY,
    CORE_V1,
    EVENT_REASON_KEY_ROTATED,
    EVENT_REASON_SECRET_CREATED,
    KIND_SECRET,
    LABEL_APP_INSTANCE,
    LABEL_FULCIO_CA,
    LABEL_RESOURCE,
    REASON_FAILURE,
    REASON_PENDING,
    REASON_READY,
    STATUS_FALSE,
    STATUS_TRUE,
)
from ...utils.conditions import find_condition, is_true, set_condition
from ...utils.crypto import (
    create_ca_certificate,
    generate_ec_key,
    generate_password,
    load_private_key,
    private_key_pem,
    public_key_pem,
)
from ...utils.errors import ConfigurationError, DependencyNotReadyError
from ...utils.secrets import annotations_match, cleanup_orphans, create_secret, make_secret, read_selector
from ..common import ComponentAction
from ..templates import owner_reference, resource_labels

CERT_RESOURCE = "fulcio-cert"
CERT_PASSWORD_LENGTH = 8

KEY_PRIVATE = "private"
KEY_PUBLIC = "public"
KEY_PASSWORD = "password"
KEY_CERT = "cert"

ANNOTATION_COMMON_NAME = f"{API_GROUP}/commonName"
ANNOTATION_ORGANIZATION_NAME = f"{API_GROUP}/organizationName"
ANNOTATION_ORGANIZATION_EMAIL = f"{API_GROUP}/organizationEmail"
ANNOTATION_PRIVATE_KEY_REF = f"{API_GROUP}/privateKeyRef"
ANNOTATION_PASSWORD_KEY_REF = f"{API_GROUP}/passwordKeyRef"

REF_FIELDS = ("privateKeyRef", "privateKeyPasswordRef", "caRef")


def spec_certificate(instance: dict[str, Any]) -> dict[str, Any]:
    return (instance.get("spec") or {}).get("certificate") or {}


def status_certificate(instance: dict[str, Any]) -> dict[str, Any]:
    return (instance.get("status") or {}).get("certificate") or {}


def default_common_name(config_deployment: str, namespace: str) -> str:
    return f"{config_deployment}.{namespace}.svc.local"


class HandleCert(ComponentAction):
    """Adopt the user's CA material or generate a self-signed CA.

    The resolved references are recorded in ``status.certificate``. Exactly
    one generated certificate secret is kept per instance; older ones are
    removed once the status points at the survivor.
    """

    name = "handle-cert"

    def desired_certificate(self, instance: dict[str, Any]) -> dict[str, Any]:
        cert = copy.deepcopy(spec_certificate(instance))
        if not cert.get("commonName"):
            cert["commonName"] = default_common_name(self.config.deployment, instance["metadata"]["namespace"])
        return cert

    def expected_annotations(self, instance: dict[str, Any]) -> dict[str, str]:
        cert = self.desired_certificate(instance)
        annotations = {
            ANNOTATION_COMMON_NAME: cert.get("commonName", ""),
            ANNOTATION_ORGANIZATION_NAME: cert.get("organizationName", ""),
            ANNOTATION_ORGANIZATION_EMAIL: cert.get("organizationEmail", ""),
        }
        if cert.get("privateKeyRef"):
            annotations[ANNOTATION_PRIVATE_KEY_REF] = cert["privateKeyRef"]["name"]
        if cert.get("privateKeyPasswordRef"):
            annotations[ANNOTATION_PASSWORD_KEY_REF] = cert["privateKeyPasswordRef"]["name"]
        return annotations

    def ownership_labels(self, instance: dict[str, Any]) -> dict[str, str]:
        return resource_labels(
            self.config.component, self.config.deployment, instance["metadata"]["name"], CERT_RESOURCE
        )

    def _generated(self, instance: dict[str, Any], secret: dict[str, Any]) -> bool:
        labels = secret["metadata"].get("labels") or {}
        return (
            labels.get(LABEL_RESOURCE) == CERT_RESOURCE
            and labels.get(LABEL_APP_INSTANCE) == instance["metadata"]["name"]
        )

    def can_handle(self, ctx: ReconcileContext, instance: dict[str, Any]) -> bool:
        status = instance.get("status")
        if find_condition(status, COND_READY) is None:
            return False
        if not is_true(status, self.config.name("cert_condition")):
            return True
        current = status_certificate(instance)
        if not deep_derivative(self.desired_certificate(instance), current):
            return True
        wanted = spec_certificate(instance)
        namespace = instance["metadata"]["namespace"]
        for field in REF_FIELDS:
            ref = current.get(field)
            if not ref:
                continue
            secret = ctx.find(CORE_V1, KIND_SECRET, namespace, ref["name"])
            if secret is None:
                return True
            # A reference dropped from spec falls back to generated material
            if not wanted.get(field) and not self._generated(instance, secret):
                return True
        return False

    def handle(self, ctx: ReconcileContext, instance: dict[str, Any]) -> Result:
        cert_condition = self.config.name("cert_condition")
        namespace = instance["metadata"]["namespace"]
        wanted = self.desired_certificate(instance)

        if wanted.get("caRef") and not wanted.get("privateKeyRef"):
            err = ConfigurationError("privateKeyRef is required when caRef is set")
            return self.error(ctx, err, instance, condition(cert_condition, False, REASON_FAILURE, str(err)))

        resolved = copy.deepcopy(wanted)
        try:
            user_key = self._read_user_key(ctx, namespace, wanted)
            if wanted.get("caRef"):
                read_selector(ctx, namespace, wanted["caRef"])
                # Generated certificates are no longer used
                _, deleted = cleanup_orphans(
                    ctx, namespace, self.ownership_labels(instance), component=self.config.component
                )
                if deleted:
                    self.log_info(instance, "Removed generated certificate secrets", deleted=deleted)
                message = "Using CA certificate from caRef"
            else:
                secret, message = self._generated_secret(ctx, instance, wanted, user_key)
                name = secret["metadata"]["name"]
                if not wanted.get("privateKeyRef"):
                    resolved["privateKeyRef"] = {"name": name, "key": KEY_PRIVATE}
                    resolved["privateKeyPasswordRef"] = {"name": name, "key": KEY_PASSWORD}
                resolved["caRef"] = {"name": name, "key": KEY_CERT}
        except DependencyNotReadyError as e:
            return self.wait_for(ctx, instance, cert_condition, str(e))
        except ConfigurationError as e:
            return self.error(ctx, e, instance, condition(cert_condition, False, REASON_FAILURE, str(e)))

        status = instance.setdefault("status", {})
        previous = status.get("certificate")
        status["certificate"] = resolved
        set_condition(status, cert_condition, STATUS_TRUE, REASON_READY, message)
        if previous and previous != resolved:
            # The server has to be configured again for the new CA
            set_condition(
                status, self.config.name("config_condition"), STATUS_FALSE, REASON_PENDING, "CA material changed"
            )
            ctx.event(instance, EVENT_REASON_KEY_ROTATED, "Fulcio CA material changed")
        self.log_info(instance, message)
        return self.status_update(ctx, instance)

    def _read_user_key(
        self, ctx: ReconcileContext, namespace: str, wanted: dict[str, Any]
    ) -> ec.EllipticCurvePrivateKey | None:
        """Load the user's private key, validating that it can be decrypted."""
        if not wanted.get("privateKeyRef"):
            return None
        pem = read_selector(ctx, namespace, wanted["privateKeyRef"])
        password = None
        if wanted.get("privateKeyPasswordRef"):
            password = read_selector(ctx, namespace, wanted["privateKeyPasswordRef"]).decode("utf-8")
        try:
            key = load_private_key(pem, password)
        except (ValueError, TypeError) as e:
            raise ConfigurationError(f"Unable to load private key: {e}") from e
        return key

    def _generated_secret(
        self,
        ctx: ReconcileContext,
        instance: dict[str, Any],
        wanted: dict[str, Any],
        user_key: ec.EllipticCurvePrivateKey | None,
    ) -> tuple[dict[str, Any], str]:
        namespace = instance["metadata"]["namespace"]
        expected = self.expected_annotations(instance)
        survivor, deleted = cleanup_orphans(
            ctx,
            namespace,
            self.ownership_labels(instance),
            matcher=lambda s: annotations_match(s, expected),
            component=self.config.component,
        )
        if deleted:
            self.log_info(instance, "Removed stale certificate secrets", deleted=deleted)
        if survivor is not None:
            return survivor, f"Using certificate secret {survivor['metadata']['name']}"

        data: dict[str, str | bytes] = {}
        if user_key is not None:
            key = user_key
        else:
            key = generate_ec_key("p384")
            password = generate_password(CERT_PASSWORD_LENGTH)
            data[KEY_PRIVATE] = private_key_pem(key, password)
            data[KEY_PASSWORD] = password
        data[KEY_PUBLIC] = public_key_pem(key)
        data[KEY_CERT] = create_ca_certificate(
            key, wanted.get("commonName", ""), wanted.get("organizationName"), wanted.get("organizationEmail")
        )

        labels = self.ownership_labels(instance)
        labels[LABEL_FULCIO_CA] = KEY_CERT
        secret = make_secret(
            namespace,
            data,
            generate_name=f"fulcio-cert-{instance['metadata']['name']}-",
            labels=labels,
            annotations=expected,
            owner_references=[owner_reference(instance)],
        )
        created = create_secret(ctx, secret, component=self.config.component)
        name = created["metadata"]["name"]
        ctx.event(instance, EVENT_REASON_SECRET_CREATED, f"Fulcio certificate secret {name} created")
        return created, f"Generated certificate secret {name}"
