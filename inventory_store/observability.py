from __future__ import annotations

import time
from collections.abc import Iterator
from contextlib import contextmanager

from prometheus_client import CollectorRegistry, Counter, Histogram, generate_latest

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor


REGISTRY = CollectorRegistry()

OPERATION_LATENCY = Histogram(
    "storage_operation_latency_ms",
    "Storage operation latency in milliseconds",
    ["operation", "entity"],
    buckets=(1, 5, 10, 25, 50, 100, 250, 500, 1000, 2500, 5000),
    registry=REGISTRY,
)
OPERATION_ERROR_TOTAL = Counter(
    "storage_operation_error_total",
    "Storage operation errors",
    ["operation", "entity", "error"],
    registry=REGISTRY,
)


@contextmanager
def track_operation(operation: str, entity: str) -> Iterator[None]:
    start = time.perf_counter()
    try:
        yield
    except Exception as ex:
        OPERATION_ERROR_TOTAL.labels(operation, entity, type(ex).__name__).inc()
        raise
    finally:
        OPERATION_LATENCY.labels(operation, entity).observe((time.perf_counter() - start) * 1000)


_TRACER_PROVIDER: TracerProvider | None = None


def setup_tracing(service_name: str) -> TracerProvider:
    """Install the OTLP tracer provider once per process; later calls return the installed one."""
    global _TRACER_PROVIDER
    if _TRACER_PROVIDER is None:
        provider = TracerProvider(resource=Resource.create({"service.name": service_name}))
        provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter()))
        trace.set_tracer_provider(provider)
        _TRACER_PROVIDER = provider
    return _TRACER_PROVIDER


def instrument_sqlalchemy(engine) -> bool:
    # The instrumentor is a process-wide singleton: only the first engine gets traced.
    instrumentor = SQLAlchemyInstrumentor()
    if instrumentor.is_instrumented_by_opentelemetry:
        return False
    instrumentor.instrument(engine=engine.sync_engine)
    return True


def metrics_payload() -> bytes:
    return generate_latest(REGISTRY)
