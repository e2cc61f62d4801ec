"""Handler for CTlog CRD."""

from __future__ import annotations

from typing import Any

import kopf

from ..components.ctlog import build_actions
from ..config import ctlog_config
from ..constants import API_GROUP_VERSION, KIND_CTLOG
from .shared import make_handler, operator_config

# Global handler instance
_handler = make_handler(KIND_CTLOG, build_actions, ctlog_config())


@kopf.on.create(API_GROUP_VERSION, KIND_CTLOG)
@kopf.on.update(API_GROUP_VERSION, KIND_CTLOG)
@kopf.on.resume(API_GROUP_VERSION, KIND_CTLOG)
@kopf.timer(API_GROUP_VERSION, KIND_CTLOG, interval=operator_config.resync_interval)
def handle_ctlog(body: kopf.Body, **kwargs: Any) -> None:
    """Handle CTlog resource reconciliation."""
    _handler.reconcile(body)


@kopf.on.delete(API_GROUP_VERSION, KIND_CTLOG, optional=True)
def handle_ctlog_delete(body: kopf.Body, **kwargs: Any) -> None:
    """Owned objects are garbage collected through their owner references."""
    _handler.forget(body)
