"""OpenTelemetry tracing for bucketstore.

Tracing is off unless BUCKETSTORE_OTEL_ENABLED is set. When on, spans go to
one of:

- an in-memory exporter (BUCKETSTORE_OTEL_TEST_CAPTURE=1), read back with
  get_test_spans()
- stdout (BUCKETSTORE_OTEL_EXPORTER=console)
- an OTLP/gRPC collector (BUCKETSTORE_OTEL_EXPORTER=otlp, the default),
  addressed through the standard OTEL_EXPORTER_OTLP_* variables

BUCKETSTORE_OTEL_SERVICE_NAME overrides the service.name resource.
With BUCKETSTORE_REQUIRE_OTEL=1 a failed setup aborts startup instead of
running untraced.

Span attributes never carry request bodies, raw keys or absolute paths.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from opentelemetry import trace

from bucketstore import __version__

if TYPE_CHECKING:
    from opentelemetry.sdk.trace import ReadableSpan, TracerProvider
    from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter

logger = logging.getLogger(__name__)

_EXPORTERS = frozenset({"otlp", "console"})


class TracingConfigError(Exception):
    """Tracing is required but could not be set up."""


@dataclass
class _TracingState:
    provider: TracerProvider | None = None
    capture: InMemorySpanExporter | None = None
    configured: bool = False


_state = _TracingState()


def _env_flag(name: str) -> bool:
    return os.environ.get(name, "").strip().lower() in ("1", "true", "yes")


def is_tracing_enabled() -> bool:
    """Return True if BUCKETSTORE_OTEL_ENABLED turns tracing on."""
    return _env_flag("BUCKETSTORE_OTEL_ENABLED")


def _build_provider(capture: bool) -> TracerProvider:
    from opentelemetry.sdk.resources import Resource
    from opentelemetry.sdk.trace import TracerProvider
    from opentelemetry.sdk.trace.export import BatchSpanProcessor, SimpleSpanProcessor

    exporter = os.environ.get("BUCKETSTORE_OTEL_EXPORTER", "otlp").strip().lower()
    if not capture and exporter not in _EXPORTERS:
        raise ValueError(f"unknown exporter {exporter!r}")

    service_name = os.environ.get("BUCKETSTORE_OTEL_SERVICE_NAME", "").strip() or "bucketstore"
    provider = TracerProvider(
        resource=Resource.create({"service.name": service_name, "service.version": __version__})
    )

    if capture:
        from opentelemetry.sdk.trace.export.in_memory_span_exporter import (
            InMemorySpanExporter,
        )

        _state.capture = InMemorySpanExporter()
        provider.add_span_processor(SimpleSpanProcessor(_state.capture))
        exporter = "in-memory"
    elif exporter == "console":
        from opentelemetry.sdk.trace.export import ConsoleSpanExporter

        provider.add_span_processor(SimpleSpanProcessor(ConsoleSpanExporter()))
    else:
        from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter

        provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter()))

    trace.set_tracer_provider(provider)
    logger.info("OpenTelemetry tracing configured: service=%s exporter=%s", service_name, exporter)
    return provider


def configure_tracing() -> bool:
    """Install the tracer provider once per process.

    Returns:
        True if spans are being exported, False if tracing is off or its
        setup failed.

    Raises:
        TracingConfigError: If setup failed and BUCKETSTORE_REQUIRE_OTEL is set.
    """
    if not is_tracing_enabled():
        logger.debug("OpenTelemetry tracing disabled")
        return False

    capture = _env_flag("BUCKETSTORE_OTEL_TEST_CAPTURE")
    # The global provider cannot be replaced, so capture keeps its first exporter.
    if capture and _state.capture is not None:
        return True
    if _state.configured:
        return _state.provider is not None

    _state.configured = True
    try:
        _state.provider = _build_provider(capture)
    except Exception as e:
        logger.error("Failed to configure OpenTelemetry tracing: %s", e)
        if _env_flag("BUCKETSTORE_REQUIRE_OTEL"):
            raise TracingConfigError(f"Tracing is required but configuration failed: {e}") from e
        return False
    return True


def instrument_fastapi(app: Any) -> None:
    """Attach server spans to a FastAPI app; /_health is not traced."""
    if not is_tracing_enabled():
        return

    try:
        from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
    except ImportError:
        logger.warning("opentelemetry-instrumentation-fastapi is not installed")
        return

    FastAPIInstrumentor.instrument_app(app, excluded_urls="_health")


def get_current_trace_id() -> str | None:
    """Return the active trace id as 32 hex digits, or None outside a span."""
    ctx = trace.get_current_span().get_span_context()
    if not ctx.is_valid:
        return None
    return format(ctx.trace_id, "032x")


def set_span_attributes(attributes: dict[str, Any]) -> None:
    """Set string attributes on the current span, skipping None values."""
    span = trace.get_current_span()
    if not span.is_recording():
        return
    for key, value in attributes.items():
        if value is not None:
            span.set_attribute(key, str(value))


def get_test_spans() -> list[ReadableSpan]:
    """Return spans captured by the in-memory exporter."""
    if _state.capture is None:
        return []
    return list(_state.capture.get_finished_spans())


def clear_test_spans() -> None:
    if _state.capture is not None:
        _state.capture.clear()


def reset_tracing() -> None:
    """Forget configuration so the next configure_tracing() runs again.

    The installed provider and capture exporter survive; only their spans
    are dropped.
    """
    clear_test_spans()
    _state.configured = False
