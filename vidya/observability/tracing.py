"""OpenTelemetry tracing and metric helpers for Vidya.

Spans wrap message handling, translation, retrieval and index builds.
Until ``setup_telemetry`` runs, helpers use the global no-op tracer and
meter, so library code can be traced unconditionally.
"""

from __future__ import annotations

import asyncio
import functools
import logging
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any, Callable

from opentelemetry import metrics, trace
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import MetricReader, PeriodicExportingMetricReader
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter
from opentelemetry.sdk.trace.sampling import TraceIdRatioBased

if TYPE_CHECKING:
    from collections.abc import Iterator

logger = logging.getLogger(__name__)

_tracer: trace.Tracer | None = None
_meter: metrics.Meter | None = None
_tracer_provider: TracerProvider | None = None
_meter_provider: MeterProvider | None = None


def setup_telemetry(
    service_name: str = "vidya",
    environment: str = "development",
    otlp_endpoint: str | None = None,
    enable_console_export: bool = False,
    sample_rate: float = 1.0,
) -> tuple[trace.Tracer, metrics.Meter]:
    """Setup OpenTelemetry tracing and metrics.

    Args:
        service_name: Name of the service
        environment: Environment (development, production)
        otlp_endpoint: OTLP collector endpoint (e.g., http://localhost:4317)
        enable_console_export: Export spans to console for debugging
        sample_rate: Sampling rate (0.0 to 1.0, 1.0 = all traces)

    Returns:
        Tuple of (tracer, meter)
    """
    global _tracer, _meter, _tracer_provider, _meter_provider

    resource = Resource.create(
        {
            "service.name": service_name,
            "service.namespace": "vidya",
            "deployment.environment": environment,
        }
    )

    tracer_provider = TracerProvider(resource=resource, sampler=TraceIdRatioBased(sample_rate))

    metric_readers: list[MetricReader] = []
    if otlp_endpoint:
        from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import OTLPMetricExporter
        from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter

        tracer_provider.add_span_processor(
            BatchSpanProcessor(OTLPSpanExporter(endpoint=otlp_endpoint, insecure=True))
        )
        metric_readers.append(
            PeriodicExportingMetricReader(OTLPMetricExporter(endpoint=otlp_endpoint, insecure=True))
        )
        logger.info(f"✅ OTLP trace and metric export enabled: {otlp_endpoint}")

    if enable_console_export:
        tracer_provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))
        logger.info("✅ Console span export enabled")

    meter_provider = MeterProvider(resource=resource, metric_readers=metric_readers)

    # Private providers: the global ones can only be set once per process
    _tracer_provider = tracer_provider
    _meter_provider = meter_provider
    _tracer = tracer_provider.get_tracer("vidya")
    _meter = meter_provider.get_meter("vidya")

    logger.info(f"✅ Telemetry initialized: {service_name} ({environment})")
    logger.info(f"   Sampling rate: {sample_rate:.0%}")

    return _tracer, _meter


def get_tracer() -> trace.Tracer:
    """Get the configured tracer, or the global one before setup."""
    if _tracer is None:
        return trace.get_tracer("vidya")
    return _tracer


def get_meter() -> metrics.Meter:
    """Get the configured meter, or the global one before setup."""
    if _meter is None:
        return metrics.get_meter("vidya")
    return _meter


@contextmanager
def trace_operation(
    operation_name: str,
    attributes: dict[str, str] | None = None,
) -> Iterator[trace.Span]:
    """Context manager for tracing an operation.

    Example:
        with trace_operation("index.build", {"corpus": "faq"}):
            index = build()
    """
    with get_tracer().start_as_current_span(operation_name, attributes=attributes or {}) as span:
        try:
            yield span
            span.set_status(trace.StatusCode.OK)
        except Exception as e:
            span.record_exception(e)
            span.set_status(trace.StatusCode.ERROR, str(e))
            raise


def add_span_attributes(attributes: dict[str, str | int | float | bool]) -> None:
    """Add attributes to the current span."""
    current_span = trace.get_current_span()
    if current_span and current_span.is_recording():
        current_span.set_attributes(attributes)


def record_counter(
    name: str,
    value: int = 1,
    attributes: dict[str, str] | None = None,
) -> None:
    """Record a counter metric.

    Args:
        name: Metric name
        value: Counter increment
        attributes: Metric attributes
    """
    counter = get_meter().create_counter(name, description=f"Counter for {name}")
    counter.add(value, attributes or {})


def record_histogram(
    name: str,
    value: float,
    attributes: dict[str, str] | None = None,
) -> None:
    """Record a histogram metric (distribution).

    Args:
        name: Metric name
        value: Histogram value
        attributes: Metric attributes
    """
    histogram = get_meter().create_histogram(name, description=f"Histogram for {name}")
    histogram.record(value, attributes or {})


def traced(
    operation_name: str | None = None,
    attributes: dict[str, str] | None = None,
) -> Callable:
    """Decorator to trace a sync or async function.

    Example:
        @traced("translation.translate")
        async def translate(text: str) -> str:
            ...
    """

    def decorator(func: Callable) -> Callable:
        name = operation_name or f"{func.__module__}.{func.__name__}"

        @functools.wraps(func)
        async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
            with trace_operation(name, attributes) as span:
                span.set_attribute("function.name", func.__name__)
                return await func(*args, **kwargs)

        @functools.wraps(func)
        def sync_wrapper(*args: Any, **kwargs: Any) -> Any:
            with trace_operation(name, attributes) as span:
                span.set_attribute("function.name", func.__name__)
                return func(*args, **kwargs)

        if asyncio.iscoroutinefunction(func):
            return async_wrapper
        return sync_wrapper

    return decorator


def shutdown_telemetry() -> None:
    """Flush and shut down providers created by ``setup_telemetry``."""
    global _tracer, _meter, _tracer_provider, _meter_provider

    logger.info("Shutting down telemetry...")
    if _tracer_provider is not None:
        _tracer_provider.shutdown()
    if _meter_provider is not None:
        _meter_provider.shutdown()

    _tracer = None
    _meter = None
    _tracer_provider = None
    _meter_provider = None
    logger.info("✅ Telemetry shutdown complete")
