"""Utilities for managing Kubernetes secrets."""

from __future__ import annotations

import base64
import copy
import logging
from typing import TYPE_CHECKING, Any, Callable

from .. import metrics
from ..constants import CORE_V1, KIND_SECRET
from .errors import DependencyNotReadyError, NotFoundError

if TYPE_CHECKING:
    from ..action.context import ReconcileContext

logger = logging.getLogger(__name__)


def _encode(value: str | bytes) -> str:
    if isinstance(value, str):
        value = value.encode("utf-8")
    return base64.b64encode(value).decode("ascii")


def make_secret(
    namespace: str,
    data: dict[str, str | bytes],
    name: str | None = None,
    generate_name: str | None = None,
    labels: dict[str, str] | None = None,
    annotations: dict[str, str] | None = None,
    owner_references: list[dict[str, Any]] | None = None,
) -> dict[str, Any]:
    """Build an Opaque secret object.

    Args:
        namespace: Namespace for the secret
        data: Secret data, base64 encoded here
        name: Fixed name
        generate_name: Name prefix when the store should pick the name
        labels: Secret labels
        annotations: Secret annotations
        owner_references: Owner references for the secret

    Returns:
        Secret dict ready for creation
    """
    metadata: dict[str, Any] = {"namespace": namespace}
    if name:
        metadata["name"] = name
    else:
        metadata["generateName"] = generate_name
    if labels:
        metadata["labels"] = dict(labels)
    if annotations:
        metadata["annotations"] = dict(annotations)
    if owner_references:
        metadata["ownerReferences"] = copy.deepcopy(owner_references)
    return {
        "apiVersion": CORE_V1,
        "kind": KIND_SECRET,
        "metadata": metadata,
        "type": "Opaque",
        "data": {k: _encode(v) for k, v in data.items()},
    }


def secret_value(secret: dict[str, Any], key: str) -> bytes | None:
    """Return the decoded value of a secret key, or None if absent."""
    value = (secret.get("data") or {}).get(key)
    if value is None:
        string_value = (secret.get("stringData") or {}).get(key)
        return string_value.encode("utf-8") if string_value is not None else None
    return base64.b64decode(value)


def get_secret(ctx: ReconcileContext, namespace: str, name: str) -> dict[str, Any] | None:
    return ctx.find(CORE_V1, KIND_SECRET, namespace, name)


def read_selector(ctx: ReconcileContext, namespace: str, selector: dict[str, Any]) -> bytes:
    """Read the value a SecretKeySelector points at.

    Raises:
        DependencyNotReadyError: secret or key does not exist (yet)
    """
    name, key = selector.get("name"), selector.get("key")
    secret = get_secret(ctx, namespace, name)
    if secret is None:
        raise DependencyNotReadyError(f"Waiting for secret {name}")
    value = secret_value(secret, key)
    if value is None:
        raise DependencyNotReadyError(f"Key '{key}' not found in secret '{name}'")
    return value


def list_secrets(ctx: ReconcileContext, namespace: str, labels: dict[str, str | None]) -> list[dict[str, Any]]:
    """List secrets matching all labels, oldest first."""
    items = ctx.list(CORE_V1, KIND_SECRET, namespace, labels)
    return sorted(
        items,
        key=lambda s: (s["metadata"].get("creationTimestamp") or "", s["metadata"].get("name", "")),
    )


def find_secret_by_label(ctx: ReconcileContext, namespace: str, label: str) -> dict[str, Any] | None:
    """Return the secret carrying a discovery label (any value), oldest first."""
    items = list_secrets(ctx, namespace, {label: None})
    return items[0] if items else None


def create_secret(ctx: ReconcileContext, secret: dict[str, Any], component: str = "unknown") -> dict[str, Any]:
    created = ctx.create(secret)
    metrics.secret_operations_total.labels(component=component, operation="create").inc()
    logger.info("Created secret %s/%s", created["metadata"].get("namespace"), created["metadata"].get("name"))
    return created


def delete_secret(ctx: ReconcileContext, namespace: str, name: str, component: str = "unknown") -> bool:
    """Delete a secret, treating an already missing one as success.

    Returns:
        True if the secret was deleted by this call
    """
    try:
        ctx.delete(CORE_V1, KIND_SECRET, namespace, name)
    except NotFoundError:
        return False
    metrics.secret_operations_total.labels(component=component, operation="delete").inc()
    logger.info("Deleted secret %s/%s", namespace, name)
    return True


def annotations_match(secret: dict[str, Any], expected: dict[str, str]) -> bool:
    annotations = secret["metadata"].get("annotations") or {}
    return all(annotations.get(k) == v for k, v in expected.items())


def cleanup_orphans(
    ctx: ReconcileContext,
    namespace: str,
    labels: dict[str, str],
    keep: str | None = None,
    matcher: Callable[[dict[str, Any]], bool] | None = None,
    component: str = "unknown",
) -> tuple[dict[str, Any] | None, list[str]]:
    """Keep exactly one generated secret for a slot and delete the others.

    Only secrets accepted by ``matcher`` may survive. Among them the secret
    named ``keep`` wins, otherwise the oldest one. Every other secret
    carrying the ownership ``labels`` is deleted. Running it again on a converged slot
    deletes nothing.

    Args:
        ctx: Reconcile context
        namespace: Namespace to search
        labels: Ownership labels identifying the slot
        keep: Name of the secret currently referenced by status
        matcher: Predicate for secrets eligible to survive
        component: Component label for metrics

    Returns:
        The surviving secret (or None) and the names of deleted secrets
    """
    survivor: dict[str, Any] | None = None
    candidates = list_secrets(ctx, namespace, labels)
    eligible = [s for s in candidates if matcher is None or matcher(s)]
    if keep:
        survivor = next((s for s in eligible if s["metadata"]["name"] == keep), None)
    if survivor is None and matcher is not None and eligible:
        survivor = eligible[0]

    deleted = []
    for secret in candidates:
        name = secret["metadata"]["name"]
        if survivor is not None and name == survivor["metadata"]["name"]:
            continue
        if delete_secret(ctx, namespace, name, component=component):
            deleted.append(name)
    return survivor, deleted
