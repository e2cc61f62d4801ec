"""Action pipeline: results, the ensure primitive and the executor."""

from .base import Action, BaseAction
from .context import ReconcileContext
from .pipeline import execute
from .result import Continue, Fail, Requeue, Result, Return, StatusUpdate

__all__ = [
    "Action",
    "BaseAction",
    "ReconcileContext",
    "execute",
    "Result",
    "Continue",
    "Requeue",
    "StatusUpdate",
    "Fail",
    "Return",
]
