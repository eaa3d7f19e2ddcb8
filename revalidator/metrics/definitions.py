"""Metrics emitted by the revalidation service."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple


@dataclass(frozen=True)
class MetricDefinition:
    name: str
    metric_type: str
    description: str
    label_names: Tuple[str, ...] = ()


REVALIDATIONS_TOTAL = "ticket_revalidations_total"
REVALIDATION_FAILURES_TOTAL = "ticket_revalidation_failures_total"
REVALIDATION_DURATION_SECONDS = "ticket_revalidation_duration_seconds"
FIELD_VALIDATIONS_TOTAL = "field_validations_total"
FIELD_VALIDATION_FAILURES_TOTAL = "field_validation_failures_total"
HISTORY_WRITE_CONFLICTS_TOTAL = "validation_history_write_conflicts_total"

DEFAULT_METRIC_DEFINITIONS: Tuple[MetricDefinition, ...] = (
    MetricDefinition(
        name=REVALIDATIONS_TOTAL,
        metric_type="counter",
        description="Completed ticket revalidations by outcome.",
        label_names=("outcome",),
    ),
    MetricDefinition(
        name=REVALIDATION_FAILURES_TOTAL,
        metric_type="counter",
        description="Ticket revalidations that raised an error.",
    ),
    MetricDefinition(
        name=REVALIDATION_DURATION_SECONDS,
        metric_type="distribution",
        description="Duration of ticket revalidations in seconds.",
    ),
    MetricDefinition(
        name=FIELD_VALIDATIONS_TOTAL,
        metric_type="counter",
        description="Field validator invocations.",
        label_names=("field",),
    ),
    MetricDefinition(
        name=FIELD_VALIDATION_FAILURES_TOTAL,
        metric_type="counter",
        description="Field validator invocations degraded to a sentinel result.",
        label_names=("field",),
    ),
    MetricDefinition(
        name=HISTORY_WRITE_CONFLICTS_TOTAL,
        metric_type="counter",
        description="Validation history writes rejected by a newer stored revision.",
    ),
)
