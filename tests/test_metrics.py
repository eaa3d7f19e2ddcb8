import pytest

from revalidator.metrics import MetricsRegistry, PrometheusExporter, register_default_metrics
from revalidator.metrics.definitions import (
    DEFAULT_METRIC_DEFINITIONS,
    FIELD_VALIDATIONS_TOTAL,
    REVALIDATION_DURATION_SECONDS,
    REVALIDATIONS_TOTAL,
)


def test_register_default_metrics_creates_every_definition():
    registry = register_default_metrics(MetricsRegistry())

    names = {metric.name for metric in registry.metrics()}

    assert names == {definition.name for definition in DEFAULT_METRIC_DEFINITIONS}


def test_counter_tracks_labelled_values():
    registry = register_default_metrics(MetricsRegistry())
    counter = registry.counter(REVALIDATIONS_TOTAL)

    counter.inc(labels={"outcome": "cached"})
    counter.inc(2, labels={"outcome": "cached"})
    counter.inc(labels={"outcome": "full"})

    assert counter.value(labels={"outcome": "cached"}) == 3
    assert counter.value(labels={"outcome": "partial"}) == 0


def test_counter_rejects_wrong_labels_and_decrements():
    counter = register_default_metrics(MetricsRegistry()).counter(FIELD_VALIDATIONS_TOTAL)

    with pytest.raises(ValueError):
        counter.inc()
    with pytest.raises(ValueError):
        counter.inc(-1, labels={"field": "summary"})


def test_registry_rejects_type_mismatch():
    registry = register_default_metrics(MetricsRegistry())

    with pytest.raises(TypeError):
        registry.distribution(REVALIDATIONS_TOTAL)


def test_time_distribution_observes_duration():
    registry = register_default_metrics(MetricsRegistry())

    with registry.time_distribution(REVALIDATION_DURATION_SECONDS):
        pass

    stats = registry.distribution(REVALIDATION_DURATION_SECONDS).snapshot()[()]
    assert stats["count"] == 1.0
    assert stats["sum"] >= 0.0


def test_prometheus_payload_renders_counters_and_summaries():
    registry = register_default_metrics(MetricsRegistry())
    registry.counter(FIELD_VALIDATIONS_TOTAL).inc(labels={"field": "summary"})
    registry.distribution(REVALIDATION_DURATION_SECONDS).observe(0.5)

    payload = PrometheusExporter(registry).build_payload()

    assert f"# TYPE {FIELD_VALIDATIONS_TOTAL} counter" in payload
    assert f'{FIELD_VALIDATIONS_TOTAL}{{field="summary"}} 1.0' in payload
    assert f"# TYPE {REVALIDATION_DURATION_SECONDS} summary" in payload
    assert f"{REVALIDATION_DURATION_SECONDS}_count 1.0" in payload
    assert f"{REVALIDATION_DURATION_SECONDS}_sum 0.5" in payload
    assert payload.endswith("\n")


def test_empty_registry_renders_empty_payload():
    assert PrometheusExporter(MetricsRegistry()).build_payload() == ""
