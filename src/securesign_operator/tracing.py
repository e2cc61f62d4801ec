"""OpenTelemetry tracing support for the Securesign Operator.

Tracing is optional: without the ``tracing`` extra, or with
``OTEL_TRACES_ENABLED`` unset, every span helper is a no-op.
"""

from __future__ import annotations

import logging
import os
from contextlib import contextmanager
from typing import Any, Iterator

try:
    from opentelemetry import trace
    from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
    from opentelemetry.sdk.resources import Resource
    from opentelemetry.sdk.trace import TracerProvider
    from opentelemetry.sdk.trace.export import BatchSpanProcessor

    TRACING_AVAILABLE = True
except ImportError:
    TRACING_AVAILABLE = False

logger = logging.getLogger(__name__)

_tracer: Any = None

# Span attribute values must be primitives
_PRIMITIVES = (str, bool, int, float)


def initialize_tracing(service_name: str = "securesign-operator") -> None:
    """Install the OTLP exporter when tracing is enabled.

    Environment Variables:
        OTEL_TRACES_ENABLED: "true" to export spans (default: false)
        OTEL_EXPORTER_OTLP_ENDPOINT: collector endpoint (default: http://localhost:4317)
        OTEL_SERVICE_NAME: overrides ``service_name``
        POD_NAMESPACE: recorded as ``service.namespace``
    """
    global _tracer

    if not TRACING_AVAILABLE or os.getenv("OTEL_TRACES_ENABLED", "false").lower() != "true":
        return

    service_name = os.getenv("OTEL_SERVICE_NAME", service_name)
    resource_attributes = {"service.name": service_name}
    namespace = os.getenv("POD_NAMESPACE")
    if namespace:
        resource_attributes["service.namespace"] = namespace

    try:
        provider = TracerProvider(resource=Resource.create(resource_attributes))
        endpoint = os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT", "http://localhost:4317")
        provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=endpoint)))
        trace.set_tracer_provider(provider)
    except Exception as e:
        # Reconciliation must go on without an exporter
        logger.warning("Failed to initialize tracing: %s", e)
        return
    _tracer = trace.get_tracer(service_name)
    logger.info("Tracing enabled, exporting to %s", endpoint)


def _span_attributes(kind: str | None, attributes: dict[str, Any] | None) -> dict[str, Any]:
    attrs = {"rhtas.kind": kind} if kind else {}
    for key, value in (attributes or {}).items():
        if value is None:
            continue
        attrs[f"rhtas.{key}"] = value if isinstance(value, _PRIMITIVES) else str(value)
    return attrs


@contextmanager
def trace_span(
    name: str,
    kind: str | None = None,
    attributes: dict[str, Any] | None = None,
) -> Iterator[Any]:
    """Open a span named ``name`` around a pass or an action.

    Args:
        name: Span name, e.g. ``reconcile.pass`` or ``action.handle-cert``
        kind: Managed kind being reconciled
        attributes: Extra attributes, prefixed with ``rhtas.``

    Yields:
        The span, or None when tracing is off
    """
    if _tracer is None:
        yield None
        return

    # The SDK records the exception and sets an error status on the way out
    with _tracer.start_as_current_span(name, attributes=_span_attributes(kind, attributes)) as span:
        yield span
