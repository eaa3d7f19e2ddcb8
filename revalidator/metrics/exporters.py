"""Serialise registry contents for external monitoring systems."""
from __future__ import annotations

import logging

from .base import CounterMetric
from .registry import MetricsRegistry

logger = logging.getLogger(__name__)


def _format_labels(label_names: tuple[str, ...], values: tuple[str, ...]) -> str:
    if not values:
        return ""
    pairs = [f'{name}="{value}"' for name, value in zip(label_names, values)]
    return "{" + ",".join(pairs) + "}"


class PrometheusExporter:
    """Render metrics in the Prometheus text exposition format."""

    def __init__(self, registry: MetricsRegistry) -> None:
        self.registry = registry

    def build_payload(self) -> str:
        lines: list[str] = []
        for metric in self.registry.metrics():
            is_counter = isinstance(metric, CounterMetric)
            lines.append(f"# HELP {metric.name} {metric.description}")
            lines.append(f"# TYPE {metric.name} {'counter' if is_counter else 'summary'}")
            for labels, values in sorted(metric.snapshot().items()):
                label_text = _format_labels(metric.label_names, labels)
                if is_counter:
                    lines.append(f"{metric.name}{label_text} {values['value']}")
                else:
                    lines.append(f"{metric.name}_count{label_text} {values['count']}")
                    lines.append(f"{metric.name}_sum{label_text} {values['sum']}")
        payload = "\n".join(lines) + ("\n" if lines else "")
        logger.debug("Generated metrics payload with %d lines", len(lines))
        return payload
