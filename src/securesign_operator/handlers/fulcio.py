"""Handler for Fulcio CRD."""

from __future__ import annotations

from typing import Any

import kopf

from ..components.fulcio import build_actions
from ..config import fulcio_config
from ..constants import API_GROUP_VERSION, KIND_FULCIO
from .shared import make_handler, operator_config

# Global handler instance
_handler = make_handler(KIND_FULCIO, build_actions, fulcio_config())


@kopf.on.create(API_GROUP_VERSION, KIND_FULCIO)
@kopf.on.update(API_GROUP_VERSION, KIND_FULCIO)
@kopf.on.resume(API_GROUP_VERSION, KIND_FULCIO)
@kopf.timer(API_GROUP_VERSION, KIND_FULCIO, interval=operator_config.resync_interval)
def handle_fulcio(body: kopf.Body, **kwargs: Any) -> None:
    """Handle Fulcio resource reconciliation."""
    _handler.reconcile(body)


@kopf.on.delete(API_GROUP_VERSION, KIND_FULCIO, optional=True)
def handle_fulcio_delete(body: kopf.Body, **kwargs: Any) -> None:
    """Owned objects are garbage collected through their owner references."""
    _handler.forget(body)
