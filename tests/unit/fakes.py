"""In-memory object store and event sink for action tests."""

from __future__ import annotations

import copy
import itertools
from datetime import datetime, timedelta, timezone
from typing import Any

from securesign_operator.action.context import ReconcileContext
from securesign_operator.action.pipeline import execute
from securesign_operator.action.result import StatusUpdate
from securesign_operator.constants import API_GROUP_VERSION, COND_READY
from securesign_operator.utils.conditions import set_condition
from securesign_operator.utils.errors import AlreadyExistsError, ConflictError, NotFoundError

EPOCH = datetime(2024, 1, 1, tzinfo=timezone.utc)

Key = tuple[str, str, str, str]


class FakeStore:
    """Dict-backed store with resource versions, generateName and label selection.

    ``writes`` records every create, update, status update and delete as
    ``(operation, kind, name)``.
    """

    def __init__(self) -> None:
        self.objects: dict[Key, dict[str, Any]] = {}
        self.writes: list[tuple[str, str, str]] = []
        self.status_conflicts = 0
        self._versions = itertools.count(1)
        self._names = itertools.count(1)
        self._clock = itertools.count()

    @staticmethod
    def _key(api_version: str, kind: str, namespace: str, name: str) -> Key:
        return api_version, kind, namespace, name

    def _stamp(self, obj: dict[str, Any]) -> None:
        obj["metadata"]["resourceVersion"] = str(next(self._versions))

    # ObjectStore

    def get(self, api_version: str, kind: str, namespace: str, name: str) -> dict[str, Any]:
        obj = self.objects.get(self._key(api_version, kind, namespace, name))
        if obj is None:
            raise NotFoundError(f"{kind} {namespace}/{name} not found", status=404)
        return copy.deepcopy(obj)

    def find(self, api_version: str, kind: str, namespace: str, name: str) -> dict[str, Any] | None:
        try:
            return self.get(api_version, kind, namespace, name)
        except NotFoundError:
            return None

    def list(
        self, api_version: str, kind: str, namespace: str, labels: dict[str, str | None] | None = None
    ) -> list[dict[str, Any]]:
        items = []
        for (av, k, ns, _), obj in self.objects.items():
            if (av, k, ns) != (api_version, kind, namespace):
                continue
            obj_labels = obj["metadata"].get("labels") or {}
            wanted = (labels or {}).items()
            if all(k in obj_labels and (v is None or obj_labels[k] == v) for k, v in wanted):
                items.append(copy.deepcopy(obj))
        return items

    def create(self, obj: dict[str, Any]) -> dict[str, Any]:
        obj = copy.deepcopy(obj)
        meta = obj["metadata"]
        if not meta.get("name"):
            meta["name"] = f"{meta['generateName']}{next(self._names):05d}"
        key = self._key(obj["apiVersion"], obj["kind"], meta["namespace"], meta["name"])
        if key in self.objects:
            raise AlreadyExistsError(f"{obj['kind']} {meta['name']} already exists", status=409)
        meta["uid"] = f"uid-{meta['name']}"
        meta["generation"] = 1
        meta["creationTimestamp"] = (EPOCH + timedelta(seconds=next(self._clock))).isoformat()
        self._stamp(obj)
        self.objects[key] = obj
        self.writes.append(("create", obj["kind"], meta["name"]))
        return copy.deepcopy(obj)

    def _existing(self, obj: dict[str, Any]) -> tuple[Key, dict[str, Any]]:
        meta = obj["metadata"]
        key = self._key(obj["apiVersion"], obj["kind"], meta["namespace"], meta["name"])
        existing = self.objects.get(key)
        if existing is None:
            raise NotFoundError(f"{obj['kind']} {meta['name']} not found", status=404)
        version = meta.get("resourceVersion")
        if version is not None and version != existing["metadata"]["resourceVersion"]:
            raise ConflictError(f"{obj['kind']} {meta['name']} was modified", status=409)
        return key, existing

    def update(self, obj: dict[str, Any]) -> dict[str, Any]:
        key, existing = self._existing(obj)
        updated = copy.deepcopy(obj)
        if "status" in existing:
            updated["status"] = copy.deepcopy(existing["status"])
        else:
            updated.pop("status", None)
        generation = existing["metadata"].get("generation", 1)
        if updated.get("spec") != existing.get("spec"):
            generation += 1
        updated["metadata"]["generation"] = generation
        self._stamp(updated)
        self.objects[key] = updated
        self.writes.append(("update", obj["kind"], obj["metadata"]["name"]))
        return copy.deepcopy(updated)

    def update_status(self, obj: dict[str, Any]) -> dict[str, Any]:
        if self.status_conflicts:
            self.status_conflicts -= 1
            raise ConflictError("status was modified", status=409)
        key, existing = self._existing(obj)
        existing["status"] = copy.deepcopy(obj.get("status") or {})
        self._stamp(existing)
        self.writes.append(("update_status", obj["kind"], obj["metadata"]["name"]))
        return copy.deepcopy(existing)

    def delete(self, api_version: str, kind: str, namespace: str, name: str) -> None:
        key = self._key(api_version, kind, namespace, name)
        if key not in self.objects:
            raise NotFoundError(f"{kind} {namespace}/{name} not found", status=404)
        del self.objects[key]
        self.writes.append(("delete", kind, name))

    # Test helpers

    def add(self, obj: dict[str, Any]) -> dict[str, Any]:
        """Create an object without recording it as a write."""
        created = self.create(obj)
        self.writes.pop()
        return created

    def of_kind(self, kind: str, namespace: str = "default") -> list[dict[str, Any]]:
        return [copy.deepcopy(o) for (_, k, ns, _), o in self.objects.items() if k == kind and ns == namespace]

    def mark_deployments_available(self, namespace: str = "default") -> None:
        """Play the deployment controller: every deployment becomes available."""
        for obj in self.objects.values():
            if obj["kind"] == "Deployment" and obj["metadata"]["namespace"] == namespace:
                obj["status"] = {
                    "observedGeneration": obj["metadata"]["generation"],
                    "conditions": [{"type": "Available", "status": "True"}],
                }

    def set_ready(self, kind: str, name: str, ready: bool = True, namespace: str = "default") -> None:
        """Force the Ready condition of a managed resource."""
        obj = self.objects[self._key(API_GROUP_VERSION, kind, namespace, name)]
        status = obj.setdefault("status", {})
        set_condition(status, COND_READY, ready, "Ready" if ready else "Pending", "")
        self._stamp(obj)


class FakeRecorder:
    """Collects events as ``(reason, message, type)``."""

    def __init__(self) -> None:
        self.events: list[tuple[str, str, str]] = []

    def event(self, instance: dict[str, Any], reason: str, message: str, type_: str = "Normal") -> None:
        self.events.append((reason, message, type_))

    def reasons(self) -> list[str]:
        return [reason for reason, _, _ in self.events]


def resource(
    kind: str,
    name: str = "test",
    namespace: str = "default",
    spec: dict[str, Any] | None = None,
    labels: dict[str, str] | None = None,
) -> dict[str, Any]:
    meta: dict[str, Any] = {"name": name, "namespace": namespace}
    if labels:
        meta["labels"] = dict(labels)
    return {"apiVersion": API_GROUP_VERSION, "kind": kind, "metadata": meta, "spec": spec or {}}


def run_passes(
    store: FakeStore,
    recorder: FakeRecorder,
    actions: list[Any],
    kind: str,
    name: str = "test",
    namespace: str = "default",
    limit: int = 30,
) -> Any:
    """Run passes until one does not end in a status update, like the handler does."""
    result = None
    for _ in range(limit):
        instance = store.get(API_GROUP_VERSION, kind, namespace, name)
        result = execute(ReconcileContext(store=store, recorder=recorder), actions, instance)
        if not isinstance(result, StatusUpdate):
            return result
    return result
