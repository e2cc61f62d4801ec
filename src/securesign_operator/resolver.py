"""Cross-resource dependency resolution.

Components never notify each other. A dependent reads its siblings'
conditions through this module and requeues until they are ready.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from .constants import API_GROUP_VERSION, LABEL_APP_INSTANCE
from .utils.conditions import is_ready

if TYPE_CHECKING:
    from .action.context import ReconcileContext

logger = logging.getLogger(__name__)


class Availability(enum.Enum):
    MISSING = "missing"
    AMBIGUOUS = "ambiguous"
    NOT_READY = "not-ready"
    READY = "ready"


@dataclass(frozen=True)
class Lookup:
    """Outcome of a sibling lookup."""

    availability: Availability
    instance: dict[str, Any] | None = None

    @property
    def ready(self) -> bool:
        return self.availability is Availability.READY

    def describe(self, kind: str) -> str:
        if self.availability is Availability.MISSING:
            return f"No {kind} found"
        if self.availability is Availability.AMBIGUOUS:
            return f"More than one {kind} found"
        if self.availability is Availability.NOT_READY:
            name = (self.instance or {}).get("metadata", {}).get("name", "")
            return f"Waiting for {kind} {name} to be ready"
        return f"{kind} is ready"


def group_selector(instance: dict[str, Any]) -> dict[str, str]:
    """Selector for the siblings created together with ``instance``.

    Resources created by the composite share its instance label; a resource
    created on its own looks at the whole namespace.
    """
    labels = instance.get("metadata", {}).get("labels") or {}
    if LABEL_APP_INSTANCE in labels:
        return {LABEL_APP_INSTANCE: labels[LABEL_APP_INSTANCE]}
    return {}


def lookup(
    ctx: ReconcileContext,
    namespace: str,
    selector: dict[str, str],
    kind: str,
    api_version: str = API_GROUP_VERSION,
) -> Lookup:
    """Find the single sibling of ``kind`` matching ``selector``."""
    items = ctx.list(api_version, kind, namespace, selector)
    if not items:
        return Lookup(Availability.MISSING)
    if len(items) > 1:
        return Lookup(Availability.AMBIGUOUS)
    sibling = items[0]
    if not is_ready(sibling):
        return Lookup(Availability.NOT_READY, sibling)
    return Lookup(Availability.READY, sibling)


def ready(
    ctx: ReconcileContext,
    namespace: str,
    selector: dict[str, str],
    kind: str,
    expected: int = 1,
    api_version: str = API_GROUP_VERSION,
) -> bool:
    """True only if exactly ``expected`` siblings exist and all are Ready."""
    items = ctx.list(api_version, kind, namespace, selector)
    if len(items) != expected:
        logger.debug("Expected %d %s in %s, found %d", expected, kind, namespace, len(items))
        return False
    return all(is_ready(item) for item in items)
