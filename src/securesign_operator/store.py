"""Object store backed by the Kubernetes API.

Objects are handled as plain dicts in their JSON form. Every write that
updates an existing object is conditional on ``metadata.resourceVersion``.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable

from kubernetes import client, config
from kubernetes.client.exceptions import ApiException
from kubernetes.dynamic import DynamicClient

from . import metrics
from .utils.errors import AlreadyExistsError, ConflictError, InvalidError, NotFoundError
from .utils.rate_limit import rate_limit_k8s

logger = logging.getLogger(__name__)


def get_api_client() -> client.ApiClient:
    """Load in-cluster configuration, falling back to the local kubeconfig."""
    try:
        config.load_incluster_config()
    except config.ConfigException:
        config.load_kube_config()
    return client.ApiClient()


def label_selector(labels: dict[str, str | None] | None) -> str:
    """Render a label selector; a None value only requires the key to exist."""
    return ",".join(k if v is None else f"{k}={v}" for k, v in sorted((labels or {}).items()))


def _translate(e: ApiException, operation: str, what: str) -> Exception:
    if e.status == 404:
        return NotFoundError(f"{what} not found", status=404)
    if e.status == 409:
        if operation == "create":
            return AlreadyExistsError(f"{what} already exists", status=409)
        return ConflictError(f"{what} was modified concurrently", status=409)
    if e.status in (400, 422):
        return InvalidError(f"{what} rejected: {e.reason}", status=e.status)
    return e


class KubernetesStore:
    """CRUD and label queries over typed cluster resources."""

    def __init__(self, api_client: client.ApiClient | None = None):
        self._api_client = api_client
        self._dynamic: DynamicClient | None = None

    @property
    def dynamic(self) -> DynamicClient:
        # Discovery hits the API server, so it is deferred to first use
        if self._dynamic is None:
            self._dynamic = DynamicClient(self._api_client or get_api_client())
        return self._dynamic

    def _resource(self, api_version: str, kind: str) -> Any:
        return self.dynamic.resources.get(api_version=api_version, kind=kind)

    def _call(self, operation: str, kind: str, what: str, fn: Callable[[], Any]) -> Any:
        start_time = time.time()
        result = "success"
        try:
            return rate_limit_k8s(fn)()
        except ApiException as e:
            result = "not_found" if e.status == 404 else "error"
            raise _translate(e, operation, what) from e
        finally:
            metrics.api_call_total.labels(api_type="k8s", operation=f"{operation}_{kind.lower()}", result=result).inc()
            metrics.api_call_duration_seconds.labels(api_type="k8s", operation=f"{operation}_{kind.lower()}").observe(
                time.time() - start_time
            )

    def get(self, api_version: str, kind: str, namespace: str, name: str) -> dict[str, Any]:
        resource = self._resource(api_version, kind)
        obj = self._call(
            "get", kind, f"{kind} {namespace}/{name}", lambda: resource.get(name=name, namespace=namespace)
        )
        return obj.to_dict()

    def find(self, api_version: str, kind: str, namespace: str, name: str) -> dict[str, Any] | None:
        try:
            return self.get(api_version, kind, namespace, name)
        except NotFoundError:
            return None

    def list(
        self,
        api_version: str,
        kind: str,
        namespace: str,
        labels: dict[str, str | None] | None = None,
    ) -> list[dict[str, Any]]:
        resource = self._resource(api_version, kind)
        selector = label_selector(labels)
        result = self._call(
            "list",
            kind,
            f"{kind} in {namespace}",
            lambda: resource.get(namespace=namespace, label_selector=selector or None),
        )
        items = result.to_dict().get("items") or []
        for item in items:
            # List responses omit per-item apiVersion/kind
            item.setdefault("apiVersion", api_version)
            item.setdefault("kind", kind)
        return items

    def create(self, obj: dict[str, Any]) -> dict[str, Any]:
        meta = obj.get("metadata", {})
        resource = self._resource(obj["apiVersion"], obj["kind"])
        what = f"{obj['kind']} {meta.get('namespace')}/{meta.get('name') or meta.get('generateName', '')}"
        created = self._call(
            "create", obj["kind"], what, lambda: resource.create(body=obj, namespace=meta.get("namespace"))
        )
        return created.to_dict()

    def update(self, obj: dict[str, Any]) -> dict[str, Any]:
        meta = obj["metadata"]
        resource = self._resource(obj["apiVersion"], obj["kind"])
        what = f"{obj['kind']} {meta.get('namespace')}/{meta['name']}"
        updated = self._call(
            "update", obj["kind"], what, lambda: resource.replace(body=obj, namespace=meta.get("namespace"))
        )
        return updated.to_dict()

    def update_status(self, obj: dict[str, Any]) -> dict[str, Any]:
        meta = obj["metadata"]
        resource = self._resource(obj["apiVersion"], obj["kind"])
        what = f"{obj['kind']} {meta.get('namespace')}/{meta['name']} status"
        updated = self._call(
            "update_status",
            obj["kind"],
            what,
            lambda: resource.status.replace(body=obj, namespace=meta.get("namespace")),
        )
        return updated.to_dict()

    def delete(self, api_version: str, kind: str, namespace: str, name: str) -> None:
        resource = self._resource(api_version, kind)
        self._call(
            "delete", kind, f"{kind} {namespace}/{name}", lambda: resource.delete(name=name, namespace=namespace)
        )
