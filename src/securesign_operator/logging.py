"""Structured logging configuration for the Securesign Operator.

Every resource event is written as one JSON object per line so that log
pipelines can index the kind, name and namespace of the reconciled object.
"""

import json
import logging
import sys
from typing import Any, Mapping

from .constants import MANAGED_BY
from .utils.context import get_correlation_id
from .utils.errors import sanitize_error_message

REDACTED = "***REDACTED***"

# Secret data keys written by the component pipelines
SECRET_FIELDS = frozenset({"password", "root-password", "private", "privateKey", "token"})


def setup_structured_logging(level: int = logging.INFO) -> None:
    """Send bare messages to stdout; the payload is already JSON."""
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )
    # The kubernetes client logs request bodies at debug level
    logging.getLogger("kubernetes").setLevel(max(level, logging.INFO))


def redact(fields: Mapping[str, Any]) -> dict[str, Any]:
    """Copy of ``fields`` with secret values masked, nested mappings included."""
    clean: dict[str, Any] = {}
    for key, value in fields.items():
        if key in SECRET_FIELDS:
            clean[key] = REDACTED
        elif isinstance(value, Mapping):
            clean[key] = redact(value)
        else:
            clean[key] = value
    return clean


def log_resource_event(
    logger: logging.Logger,
    kind: str,
    meta: Mapping[str, Any],
    event: str,
    reason: str,
    message: str,
    level: int = logging.INFO,
    **fields: Any,
) -> None:
    """Log one event about a managed resource."""
    record = {
        "controller": MANAGED_BY,
        "resource": kind,
        "name": meta.get("name", "unknown"),
        "namespace": meta.get("namespace", "default"),
        "uid": meta.get("uid", "unknown"),
        "event": event,
        "reason": reason,
        "message": sanitize_error_message(message),
    }
    corr_id = get_correlation_id()
    if corr_id:
        record["correlation_id"] = corr_id
    record.update(redact(fields))
    logger.log(level, json.dumps(record, default=str))
