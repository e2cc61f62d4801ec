"""Handler for Tuf CRD."""

from __future__ import annotations

from typing import Any

import kopf

from ..components.tuf import build_actions
from ..config import tuf_config
from ..constants import API_GROUP_VERSION, KIND_TUF
from .shared import make_handler, operator_config

# Global handler instance
_handler = make_handler(KIND_TUF, build_actions, tuf_config())


@kopf.on.create(API_GROUP_VERSION, KIND_TUF)
@kopf.on.update(API_GROUP_VERSION, KIND_TUF)
@kopf.on.resume(API_GROUP_VERSION, KIND_TUF)
@kopf.timer(API_GROUP_VERSION, KIND_TUF, interval=operator_config.resync_interval)
def handle_tuf(body: kopf.Body, **kwargs: Any) -> None:
    """Handle Tuf resource reconciliation."""
    _handler.reconcile(body)


@kopf.on.delete(API_GROUP_VERSION, KIND_TUF, optional=True)
def handle_tuf_delete(body: kopf.Body, **kwargs: Any) -> None:
    """Owned objects are garbage collected through their owner references."""
    _handler.forget(body)
