"""Outcomes an action can produce."""

from __future__ import annotations

from dataclasses import dataclass

DEFAULT_REQUEUE_AFTER = 5.0


class Result:
    """Base class for action outcomes."""

    stops_pipeline = True


@dataclass(frozen=True)
class Continue(Result):
    """Proceed with the next action in the same pass."""

    stops_pipeline = False


@dataclass(frozen=True)
class Requeue(Result):
    """Stop the pass and run again after ``after`` seconds (0 is immediate)."""

    after: float = DEFAULT_REQUEUE_AFTER


@dataclass(frozen=True)
class StatusUpdate(Result):
    """Status was persisted; run again to pick up the next step."""


@dataclass(frozen=True)
class Fail(Result):
    """Stop the pass with an error.

    Terminal failures need a spec change and are not retried until the next
    watch event or resync.
    """

    error: Exception
    terminal: bool = False


@dataclass(frozen=True)
class Return(Result):
    """Stop the pass without scheduling another one."""
