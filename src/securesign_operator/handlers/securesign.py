"""Handler for Securesign CRD."""

from __future__ import annotations

from typing import Any

import kopf

from ..components.securesign import build_actions
from ..config import securesign_config
from ..constants import API_GROUP_VERSION, KIND_SECURESIGN
from .shared import make_handler, operator_config

# Global handler instance
_handler = make_handler(KIND_SECURESIGN, build_actions, securesign_config())


@kopf.on.create(API_GROUP_VERSION, KIND_SECURESIGN)
@kopf.on.update(API_GROUP_VERSION, KIND_SECURESIGN)
@kopf.on.resume(API_GROUP_VERSION, KIND_SECURESIGN)
@kopf.timer(API_GROUP_VERSION, KIND_SECURESIGN, interval=operator_config.resync_interval)
def handle_securesign(body: kopf.Body, **kwargs: Any) -> None:
    """Handle Securesign resource reconciliation."""
    _handler.reconcile(body)


@kopf.on.delete(API_GROUP_VERSION, KIND_SECURESIGN, optional=True)
def handle_securesign_delete(body: kopf.Body, **kwargs: Any) -> None:
    """Owned objects are garbage collected through their owner references."""
    _handler.forget(body)
