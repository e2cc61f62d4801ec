"""Per-pass reconcile context."""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Protocol

from ..utils.errors import CancelledError


class ObjectStore(Protocol):
    """Operations the action sets need from the object store."""

    def get(self, api_version: str, kind: str, namespace: str, name: str) -> dict[str, Any]: ...

    def find(self, api_version: str, kind: str, namespace: str, name: str) -> dict[str, Any] | None: ...

    def list(
        self, api_version: str, kind: str, namespace: str, labels: dict[str, str | None] | None = None
    ) -> list[dict[str, Any]]: ...

    def create(self, obj: dict[str, Any]) -> dict[str, Any]: ...

    def update(self, obj: dict[str, Any]) -> dict[str, Any]: ...

    def update_status(self, obj: dict[str, Any]) -> dict[str, Any]: ...

    def delete(self, api_version: str, kind: str, namespace: str, name: str) -> None: ...


class EventSink(Protocol):
    def event(self, instance: dict[str, Any], reason: str, message: str, type_: str = "Normal") -> None: ...


@dataclass
class ReconcileContext:
    """Carries the store, the event sink and the pass deadline.

    Every store operation goes through the context so that a cancelled or
    expired pass stops before its next blocking call.
    """

    store: ObjectStore
    recorder: EventSink
    deadline: float | None = None
    cancelled: threading.Event = field(default_factory=threading.Event)
    logger: logging.Logger = field(default_factory=lambda: logging.getLogger("securesign_operator.action"))

    @classmethod
    def with_timeout(cls, store: ObjectStore, recorder: EventSink, timeout: float | None) -> "ReconcileContext":
        deadline = time.monotonic() + timeout if timeout else None
        return cls(store=store, recorder=recorder, deadline=deadline)

    def cancel(self) -> None:
        self.cancelled.set()

    def check(self) -> None:
        """Raise CancelledError if the pass must stop."""
        if self.cancelled.is_set():
            raise CancelledError("reconcile pass cancelled")
        if self.deadline is not None and time.monotonic() > self.deadline:
            raise CancelledError("reconcile pass deadline exceeded")

    def get(self, api_version: str, kind: str, namespace: str, name: str) -> dict[str, Any]:
        self.check()
        return self.store.get(api_version, kind, namespace, name)

    def find(self, api_version: str, kind: str, namespace: str, name: str) -> dict[str, Any] | None:
        self.check()
        return self.store.find(api_version, kind, namespace, name)

    def list(
        self, api_version: str, kind: str, namespace: str, labels: dict[str, str | None] | None = None
    ) -> list[dict[str, Any]]:
        self.check()
        return self.store.list(api_version, kind, namespace, labels)

    def create(self, obj: dict[str, Any]) -> dict[str, Any]:
        self.check()
        return self.store.create(obj)

    def update(self, obj: dict[str, Any]) -> dict[str, Any]:
        self.check()
        return self.store.update(obj)

    def update_status(self, obj: dict[str, Any]) -> dict[str, Any]:
        self.check()
        return self.store.update_status(obj)

    def delete(self, api_version: str, kind: str, namespace: str, name: str) -> None:
        self.check()
        self.store.delete(api_version, kind, namespace, name)

    def event(self, instance: dict[str, Any], reason: str, message: str, type_: str = "Normal") -> None:
        self.recorder.event(instance, reason, message, type_)
