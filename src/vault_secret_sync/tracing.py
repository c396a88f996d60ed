"""Optional OpenTelemetry tracing of reconciliation cycles and sync tasks."""

from __future__ import annotations

import logging
import os
from contextlib import contextmanager
from typing import Any, Iterator, Mapping

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.trace import Span, Status, StatusCode, Tracer

from . import __version__
from .constants import APP_NAME

logger = logging.getLogger(__name__)

_tracer: Tracer | None = None


def initialize_tracing(environ: Mapping[str, str] | None = None) -> bool:
    """Install an OTLP exporter when ``OTEL_TRACES_ENABLED=true``.

    ``OTEL_EXPORTER_OTLP_ENDPOINT`` (default http://localhost:4317) and
    ``OTEL_SERVICE_NAME`` (default vault-secret-sync) are honoured.

    Returns:
        True if tracing is active
    """
    global _tracer

    env = os.environ if environ is None else environ
    if env.get("OTEL_TRACES_ENABLED", "false").lower() != "true":
        return False

    service_name = env.get("OTEL_SERVICE_NAME", APP_NAME)
    endpoint = env.get("OTEL_EXPORTER_OTLP_ENDPOINT", "http://localhost:4317")
    try:
        provider = TracerProvider(
            resource=Resource.create({"service.name": service_name, "service.version": __version__})
        )
        provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=endpoint)))
        trace.set_tracer_provider(provider)
    except Exception as e:
        # The sync keeps running untraced
        logger.warning(f"Failed to initialize tracing: {e}")
        return False

    _tracer = trace.get_tracer(service_name)
    logger.info(f"Exporting traces to {endpoint} as {service_name}")
    return True


@contextmanager
def trace_span(name: str, attributes: dict[str, Any] | None = None) -> Iterator[Span | None]:
    """Run a block inside a span; yields None when tracing is off."""
    if _tracer is None:
        yield None
        return

    with _tracer.start_as_current_span(name, attributes=attributes or {}) as span:
        yield span


def set_span_status(ok: bool, description: str | None = None) -> None:
    """Mark the current span as succeeded or failed."""
    span = trace.get_current_span()
    if span.is_recording():
        span.set_status(Status(StatusCode.OK) if ok else Status(StatusCode.ERROR, description))
