"""Utilities for managing Kubernetes conditions."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from ..constants import COND_READY, STATUS_FALSE, STATUS_TRUE


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def update_condition(
    conditions: list[dict[str, Any]],
    condition_type: str,
    status: str,
    reason: str,
    message: str,
    observed_generation: int | None = None,
) -> list[dict[str, Any]]:
    """Update or add a condition to the conditions list.

    Args:
        conditions: List of existing conditions
        condition_type: Type of condition
        status: Status of condition ("True", "False", "Unknown")
        reason: Reason for the condition
        message: Human-readable message
        observed_generation: Generation when condition was observed

    Returns:
        Updated list of conditions
    """
    now = _now()

    existing_idx = None
    for idx, cond in enumerate(conditions):
        if cond.get("type") == condition_type:
            existing_idx = idx
            break

    new_condition = {
        "type": condition_type,
        "status": status,
        "reason": reason,
        "message": message,
        "lastTransitionTime": now,
    }

    if observed_generation is not None:
        new_condition["observedGeneration"] = observed_generation

    if existing_idx is not None:
        existing = conditions[existing_idx]
        # Only update lastTransitionTime if status changed
        if existing.get("status") == status:
            new_condition["lastTransitionTime"] = existing.get("lastTransitionTime", now)
        conditions[existing_idx] = new_condition
    else:
        conditions.append(new_condition)

    return conditions


def set_condition(
    status: dict[str, Any],
    condition_type: str,
    condition_status: str | bool,
    reason: str,
    message: str = "",
    observed_generation: int | None = None,
) -> dict[str, Any]:
    """Upsert a condition on a status dict.

    Args:
        status: Resource status, mutated in place
        condition_type: Type of condition
        condition_status: "True"/"False"/"Unknown" or a bool
        reason: Reason token
        message: Human-readable message
        observed_generation: Generation when condition was observed

    Returns:
        The stored condition
    """
    if isinstance(condition_status, bool):
        condition_status = STATUS_TRUE if condition_status else STATUS_FALSE
    conditions = status.setdefault("conditions", [])
    update_condition(conditions, condition_type, condition_status, reason, message, observed_generation)
    return find_condition(status, condition_type)  # type: ignore[return-value]


def find_condition(status: dict[str, Any] | None, condition_type: str) -> dict[str, Any] | None:
    """Return the condition with the given type, or None."""
    for cond in (status or {}).get("conditions") or []:
        if cond.get("type") == condition_type:
            return cond
    return None


def remove_condition(status: dict[str, Any], condition_type: str) -> None:
    """Drop a condition from the status."""
    conditions = status.get("conditions") or []
    status["conditions"] = [c for c in conditions if c.get("type") != condition_type]


def is_true(status: dict[str, Any] | None, condition_type: str) -> bool:
    cond = find_condition(status, condition_type)
    return cond is not None and cond.get("status") == STATUS_TRUE


def is_false(status: dict[str, Any] | None, condition_type: str) -> bool:
    cond = find_condition(status, condition_type)
    return cond is not None and cond.get("status") == STATUS_FALSE


def get_reason(status: dict[str, Any] | None, condition_type: str) -> str | None:
    cond = find_condition(status, condition_type)
    return cond.get("reason") if cond else None


def is_ready(instance: dict[str, Any]) -> bool:
    """Whether a managed resource reports Ready=True."""
    return is_true(instance.get("status"), COND_READY)
