"""Utility functions for the Securesign Operator."""

from .conditions import find_condition, is_true, set_condition, update_condition
from .errors import sanitize_exception
from .events import emit_event
from .secrets import get_secret, secret_value

__all__ = [
    "update_condition",
    "set_condition",
    "find_condition",
    "is_true",
    "sanitize_exception",
    "emit_event",
    "get_secret",
    "secret_value",
]
