"""Lifecycle state derived from the Ready condition.

The conditions list is the only persisted record of progress. ``State`` and
``derive_phase`` are read-only projections of it.
"""

from __future__ import annotations

import enum
from typing import Any, Iterable

from .constants import (
    COND_READY,
    REASON_CREATING,
    REASON_FAILURE,
    REASON_INITIALIZE,
    REASON_PENDING,
    REASON_READY,
    STATUS_TRUE,
)
from .utils.conditions import find_condition


class State(enum.IntEnum):
    """Ordered lifecycle states."""

    NONE = -1
    PENDING = 0
    CREATING = 1
    INITIALIZE = 2
    READY = 3

    @classmethod
    def from_reason(cls, reason: str | None) -> "State":
        return _REASON_STATES.get(reason or "", cls.NONE)


_REASON_STATES = {
    REASON_PENDING: State.PENDING,
    REASON_FAILURE: State.PENDING,
    REASON_CREATING: State.CREATING,
    REASON_INITIALIZE: State.INITIALIZE,
    REASON_READY: State.READY,
}

# Ordering used when folding component conditions into one, worst first
REASON_ORDER = {
    REASON_FAILURE: 0,
    REASON_PENDING: 1,
    REASON_CREATING: 2,
    REASON_INITIALIZE: 3,
    REASON_READY: 4,
}

PHASE_PENDING = "Pending"
PHASE_CREATING = "Creating"
PHASE_INITIALIZING = "Initializing"
PHASE_READY = "Ready"
PHASE_ERROR = "Error"


def current_state(status: dict[str, Any] | None) -> State:
    """Return the lifecycle state recorded in the Ready condition."""
    cond = find_condition(status, COND_READY)
    if cond is None:
        return State.NONE
    return State.from_reason(cond.get("reason"))


def derive_phase(status: dict[str, Any] | None) -> str:
    """Human-readable phase computed from conditions. Never persisted."""
    cond = find_condition(status, COND_READY)
    if cond is None:
        return PHASE_PENDING
    if cond.get("status") == STATUS_TRUE:
        return PHASE_READY
    reason = cond.get("reason")
    if reason == REASON_FAILURE:
        return PHASE_ERROR
    return {
        State.CREATING: PHASE_CREATING,
        State.INITIALIZE: PHASE_INITIALIZING,
    }.get(State.from_reason(reason), PHASE_PENDING)


def aggregate(status: dict[str, Any] | None, names: Iterable[str]) -> tuple[bool, str, str]:
    """Fold component conditions into (all_true, worst_reason, message).

    Missing conditions count as Pending.
    """
    worst: tuple[int, str, str] | None = None
    all_true = True
    for name in names:
        cond = find_condition(status, name)
        if cond is None:
            all_true = False
            candidate = (REASON_ORDER[REASON_PENDING], REASON_PENDING, f"{name} not reported")
        else:
            if cond.get("status") != STATUS_TRUE:
                all_true = False
            reason = cond.get("reason")
            if reason not in REASON_ORDER:
                reason = REASON_PENDING
            if cond.get("status") == STATUS_TRUE:
                order = REASON_ORDER[REASON_READY]
            else:
                order = REASON_ORDER[reason]
            candidate = (order, reason, cond.get("message") or "")
        if worst is None or candidate[0] < worst[0]:
            worst = candidate
    if worst is None or all_true:
        return True, REASON_READY, ""
    return False, worst[1], worst[2]
