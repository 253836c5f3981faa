from __future__ import annotations

import pytest


def test_track_operation_records_latency() -> None:
    from inventory_store.observability import REGISTRY, track_operation

    labels = {"operation": "get", "entity": "LatencyProbe"}
    before = REGISTRY.get_sample_value("storage_operation_latency_ms_count", labels) or 0
    with track_operation("get", "LatencyProbe"):
        pass
    assert REGISTRY.get_sample_value("storage_operation_latency_ms_count", labels) == before + 1


def test_track_operation_counts_errors_and_reraises() -> None:
    from inventory_store.errors import NotFoundError
    from inventory_store.observability import REGISTRY, track_operation

    labels = {"operation": "update", "entity": "ErrorProbe", "error": "NotFoundError"}
    before = REGISTRY.get_sample_value("storage_operation_error_total", labels) or 0
    with pytest.raises(NotFoundError):
        with track_operation("update", "ErrorProbe"):
            raise NotFoundError("update", "ErrorProbe", 1)
    assert REGISTRY.get_sample_value("storage_operation_error_total", labels) == before + 1


def test_metrics_payload_exposes_storage_metrics() -> None:
    from inventory_store.observability import metrics_payload, track_operation

    with track_operation("count", "PayloadProbe"):
        pass
    payload = metrics_payload().decode()
    assert "storage_operation_latency_ms_bucket" in payload
    assert 'entity="PayloadProbe"' in payload


def test_setup_tracing_installs_the_provider_once(monkeypatch) -> None:
    import inventory_store.observability as observability

    installed = []
    monkeypatch.setattr(observability, "_TRACER_PROVIDER", None)
    monkeypatch.setattr(observability.trace, "set_tracer_provider", installed.append)

    first = observability.setup_tracing(service_name="inventory-store")
    second = observability.setup_tracing(service_name="inventory-store")
    try:
        assert first is second
        assert installed == [first]
    finally:
        first.shutdown()


def test_instrument_sqlalchemy_skips_when_already_instrumented(monkeypatch) -> None:
    from types import SimpleNamespace

    import inventory_store.observability as observability

    class _Instrumentor:
        engines: list = []

        @property
        def is_instrumented_by_opentelemetry(self) -> bool:
            return bool(self.engines)

        def instrument(self, engine) -> None:
            self.engines.append(engine)

    monkeypatch.setattr(observability, "SQLAlchemyInstrumentor", _Instrumentor)
    first = SimpleNamespace(sync_engine="first")
    second = SimpleNamespace(sync_engine="second")

    assert observability.instrument_sqlalchemy(first) is True
    assert observability.instrument_sqlalchemy(second) is False
    assert _Instrumentor.engines == ["first"]
