"""Handler for Trillian CRD."""

from __future__ import annotations

from typing import Any

import kopf

from ..components.trillian import build_actions
from ..config import trillian_config
from ..constants import API_GROUP_VERSION, KIND_TRILLIAN
from .shared import make_handler, operator_config

# Global handler instance
_handler = make_handler(KIND_TRILLIAN, build_actions, trillian_config())


@kopf.on.create(API_GROUP_VERSION, KIND_TRILLIAN)
@kopf.on.update(API_GROUP_VERSION, KIND_TRILLIAN)
@kopf.on.resume(API_GROUP_VERSION, KIND_TRILLIAN)
@kopf.timer(API_GROUP_VERSION, KIND_TRILLIAN, interval=operator_config.resync_interval)
def handle_trillian(body: kopf.Body, **kwargs: Any) -> None:
    """Handle Trillian resource reconciliation."""
    _handler.reconcile(body)


@kopf.on.delete(API_GROUP_VERSION, KIND_TRILLIAN, optional=True)
def handle_trillian_delete(body: kopf.Body, **kwargs: Any) -> None:
    """Owned objects are garbage collected through their owner references."""
    _handler.forget(body)
