"""Idempotent create-or-update of managed sub-resources."""

from __future__ import annotations

import copy
import logging
from typing import Any, Callable

from ..constants import ANNOTATION_PAUSE_RECONCILIATION
from .context import ReconcileContext

logger = logging.getLogger(__name__)

EnsureOption = Callable[[dict[str, Any], dict[str, Any]], None]


def deep_derivative(desired: Any, existing: Any) -> bool:
    """Whether ``existing`` already satisfies everything set in ``desired``.

    Unset desired values (None, empty dict, empty string) are ignored so that
    server-side defaults never count as a difference. An empty desired list
    asks for an empty or absent list. Other lists must have the same length
    and match element-wise under the same rule.
    """
    if desired is None:
        return True
    if isinstance(desired, dict):
        if not desired:
            return True
        if not isinstance(existing, dict):
            return False
        return all(deep_derivative(value, existing.get(key)) for key, value in desired.items())
    if isinstance(desired, (list, tuple)):
        if not desired:
            return not existing
        if not isinstance(existing, (list, tuple)) or len(desired) != len(existing):
            return False
        return all(deep_derivative(d, e) for d, e in zip(desired, existing))
    if desired == "":
        return True
    return desired == existing


def _get_path(obj: dict[str, Any], path: str) -> Any:
    current: Any = obj
    for part in path.split("."):
        if not isinstance(current, dict):
            return None
        current = current.get(part)
    return current


def _set_path(obj: dict[str, Any], path: str, value: Any) -> None:
    parts = path.split(".")
    current = obj
    for part in parts[:-1]:
        current = current.setdefault(part, {})
    current[parts[-1]] = copy.deepcopy(value)


def ensure_field(path: str) -> EnsureOption:
    """Copy a desired field onto the existing object when it is not derivative."""

    def option(existing: dict[str, Any], desired: dict[str, Any]) -> None:
        wanted = _get_path(desired, path)
        if not deep_derivative(wanted, _get_path(existing, path)):
            _set_path(existing, path, wanted)

    return option


def ensure_spec() -> EnsureOption:
    return ensure_field("spec")


def ensure_data() -> EnsureOption:
    return ensure_field("data")


def _ensure_metadata_map(field: str, managed: tuple[str, ...]) -> EnsureOption:
    def option(existing: dict[str, Any], desired: dict[str, Any]) -> None:
        wanted = desired.get("metadata", {}).get(field) or {}
        meta = existing.setdefault("metadata", {})
        current = dict(meta.get(field) or {})
        keys = managed or tuple(wanted)
        for key in keys:
            if key in wanted:
                current[key] = wanted[key]
            else:
                current.pop(key, None)
        if current != (meta.get(field) or {}):
            meta[field] = current

    return option


def ensure_labels(*managed: str) -> EnsureOption:
    """Keep the managed label keys (all desired keys when none given) in sync."""
    return _ensure_metadata_map("labels", managed)


def ensure_annotations(*managed: str) -> EnsureOption:
    """Keep the managed annotation keys (all desired keys when none given) in sync."""
    return _ensure_metadata_map("annotations", managed)


def ensure_owner_references() -> EnsureOption:
    def option(existing: dict[str, Any], desired: dict[str, Any]) -> None:
        wanted = desired.get("metadata", {}).get("ownerReferences") or []
        meta = existing.setdefault("metadata", {})
        current = list(meta.get("ownerReferences") or [])
        for ref in wanted:
            if not any(c.get("uid") == ref.get("uid") for c in current):
                current.append(copy.deepcopy(ref))
        if current != (meta.get("ownerReferences") or []):
            meta["ownerReferences"] = current

    return option


def is_paused(obj: dict[str, Any]) -> bool:
    annotations = obj.get("metadata", {}).get("annotations") or {}
    return annotations.get(ANNOTATION_PAUSE_RECONCILIATION, "").lower() == "true"


def ensure(ctx: ReconcileContext, desired: dict[str, Any], *options: EnsureOption) -> bool:
    """Create ``desired`` or bring the existing object in line with it.

    Args:
        ctx: Reconcile context
        desired: Complete object to create when absent
        *options: Field comparisons to apply to an existing object, defaults
            to comparing ``spec``

    Returns:
        True if a write happened

    Raises:
        ConflictError: the existing object changed since it was read
        InvalidError: the store rejected the object
    """
    meta = desired["metadata"]
    existing = ctx.find(desired["apiVersion"], desired["kind"], meta["namespace"], meta["name"])
    if existing is None:
        ctx.create(desired)
        return True

    if is_paused(existing):
        logger.info("Reconciliation paused for %s %s/%s", desired["kind"], meta["namespace"], meta["name"])
        return False

    updated = copy.deepcopy(existing)
    for option in options or (ensure_spec(),):
        option(updated, desired)

    if updated == existing:
        return False

    ctx.update(updated)
    return True
