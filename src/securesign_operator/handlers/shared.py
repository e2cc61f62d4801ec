"""Shared utilities for handlers."""

from __future__ import annotations

from typing import Callable

from ..action.base import Action
from ..config import ComponentConfig, OperatorConfig
from ..store import KubernetesStore
from ..utils.events import EventRecorder
from .base import ReconcileHandler

# Read once at import, the kopf timers are registered with its resync interval
operator_config = OperatorConfig.from_env()

# One store for every kind, its API discovery happens on first use
_store = KubernetesStore()
_recorder = EventRecorder()


def make_handler(
    kind: str,
    build_actions: Callable[[ComponentConfig], list[Action]],
    component_config: ComponentConfig,
) -> ReconcileHandler:
    """Build the reconcile handler of one kind on the shared store."""
    return ReconcileHandler(
        kind,
        build_actions(component_config),
        _store,
        _recorder,
        operator_config,
    )
