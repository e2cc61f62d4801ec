"""Main entry point for the Securesign Operator.

Run with ``kopf run -m securesign_operator.main``.
"""

from __future__ import annotations

import logging
import os
from typing import Any

import kopf

from . import handlers  # noqa: F401
from . import health
from . import logging as structured_logging
from .handlers.shared import operator_config
from .tracing import initialize_tracing


@kopf.on.startup()
def configure(settings: kopf.OperatorSettings, **_: Any) -> None:
    """Configure the operator."""
    # Set up structured JSON logging
    level = getattr(logging, os.getenv("LOG_LEVEL", "INFO").upper(), logging.INFO)
    structured_logging.setup_structured_logging(level)
    initialize_tracing()

    # Use AnnotationsProgressStorage to avoid conflicts with status updates
    settings.persistence.progress_storage = kopf.AnnotationsProgressStorage()
    settings.persistence.diffbase_storage = kopf.AnnotationsDiffBaseStorage()

    settings.posting.level = logging.WARNING
    settings.networking.request_timeout = 30.0
    settings.execution.max_workers = operator_config.max_workers

    health.start_server(operator_config.metrics_port)
    health.mark_ready()


@kopf.on.cleanup()
def shutdown(**_: Any) -> None:
    health.mark_not_ready()
