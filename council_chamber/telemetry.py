"""OpenTelemetry configuration for the Council Chamber.

Tracing is exported only when OTEL_EXPORTER_OTLP_ENDPOINT is configured.
Without a configured provider the OpenTelemetry API hands out non-recording
spans, so instrumented code runs unchanged either way.
"""

import logging
import os
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode

from . import __version__

logger = logging.getLogger(__name__)

OTEL_EXPORTER_OTLP_ENDPOINT = os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT")
OTEL_SERVICE_NAME = os.getenv("OTEL_SERVICE_NAME", "council-chamber")

_telemetry_enabled = False


def is_telemetry_enabled() -> bool:
    """Check if OpenTelemetry export is enabled."""
    return _telemetry_enabled


def setup_telemetry() -> bool:
    """Initialize OpenTelemetry tracing.

    Configures the tracer provider with an OTLP exporter if
    OTEL_EXPORTER_OTLP_ENDPOINT is set.

    Returns:
        True if telemetry was successfully configured, False otherwise.
    """
    global _telemetry_enabled

    if not OTEL_EXPORTER_OTLP_ENDPOINT:
        logger.info(
            "OpenTelemetry disabled: OTEL_EXPORTER_OTLP_ENDPOINT not configured"
        )
        return False

    try:
        from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import (
            OTLPSpanExporter,
        )
        from opentelemetry.sdk.resources import Resource
        from opentelemetry.sdk.trace import TracerProvider
        from opentelemetry.sdk.trace.export import BatchSpanProcessor

        resource = Resource.create(
            {
                "service.name": OTEL_SERVICE_NAME,
                "service.version": __version__,
            }
        )
        provider = TracerProvider(resource=resource)
        provider.add_span_processor(
            BatchSpanProcessor(OTLPSpanExporter(endpoint=OTEL_EXPORTER_OTLP_ENDPOINT))
        )
        trace.set_tracer_provider(provider)
        _telemetry_enabled = True

        logger.info(
            "OpenTelemetry initialized. Endpoint: %s, Service: %s",
            OTEL_EXPORTER_OTLP_ENDPOINT,
            OTEL_SERVICE_NAME,
        )
        return True

    except Exception as e:
        logger.warning("Failed to initialize OpenTelemetry: %s", e)
        return False


def get_tracer() -> trace.Tracer:
    """Get the tracer for council spans."""
    return trace.get_tracer("council_chamber")


def mark_span_error(span: Any, message: str, exception: Exception | None = None) -> None:
    """Flag a span as failed, recording the exception when one is available."""
    if not _telemetry_enabled:
        return
    if exception is not None:
        span.record_exception(exception)
    span.set_status(Status(StatusCode.ERROR, message))


def instrument_fastapi(app: Any) -> None:
    """Instrument a FastAPI application with OpenTelemetry.

    Args:
        app: The FastAPI application instance.
    """
    if not _telemetry_enabled:
        logger.debug("Skipping FastAPI instrumentation: telemetry disabled")
        return

    try:
        from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor

        FastAPIInstrumentor.instrument_app(app)
        logger.info("FastAPI instrumentation enabled")
    except Exception as e:
        logger.warning("Failed to instrument FastAPI: %s", e)


def instrument_httpx() -> None:
    """Instrument the httpx client with OpenTelemetry."""
    if not _telemetry_enabled:
        logger.debug("Skipping httpx instrumentation: telemetry disabled")
        return

    try:
        from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor

        HTTPXClientInstrumentor().instrument()
        logger.info("httpx instrumentation enabled")
    except Exception as e:
        logger.warning("Failed to instrument httpx: %s", e)


@contextmanager
def trace_span(
    name: str,
    attributes: dict[str, Any] | None = None,
) -> Iterator[Any]:
    """Create a traced span as a context manager.

    Args:
        name: The name of the span.
        attributes: Optional attributes to set on the span.

    Yields:
        The span object.
    """
    with get_tracer().start_as_current_span(name, attributes=attributes) as span:
        yield span
