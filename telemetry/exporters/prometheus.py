"""
Prometheus text exposition of the batcher's checkpoint set.

Rendering follows `prometheus_client`: counter samples are named
`<name>_total` and values print as floats (`16.0`). Only histogram `le`
labels are formatted here.
"""

import math
from typing import Iterator, List, Optional

from prometheus_client import CollectorRegistry, generate_latest
from prometheus_client.core import Metric
from prometheus_client.utils import floatToGoString

from shared.logging import get_logger
from ..aggregation.aggregators import AggregatorKind, HistogramValue
from ..aggregation.batcher import Batcher
from ..sdk.metric import MetricRecord

NO_METRICS = "# no registered metrics"
MISSING_DESCRIPTION = "description missing"


def format_boundary(boundary: float) -> str:
    """``le`` label value; integral boundaries render without a fraction."""
    if math.isfinite(boundary) and float(boundary).is_integer():
        return str(int(boundary))
    return floatToGoString(boundary)


class CheckpointCollector:
    """Adapts a batcher's checkpoints to ``prometheus_client`` metric families."""

    def __init__(self, batcher: Batcher, prefix: Optional[str] = None):
        self.batcher = batcher
        self.prefix = prefix

    def collect(self) -> Iterator[Metric]:
        for name, records in self.batcher.checkpoint_set().items():
            family = self._to_family(self._metric_name(name), records)
            if family is not None:
                yield family

    def _metric_name(self, name: str) -> str:
        return f"{self.prefix}_{name}" if self.prefix else name

    def _to_family(self, name: str, records: List[MetricRecord]) -> Optional[Metric]:
        first = records[0]
        description = first.descriptor.description or MISSING_DESCRIPTION

        if first.aggregator_kind == AggregatorKind.HISTOGRAM:
            family = Metric(name, description, "histogram")
            for record in records:
                self._add_histogram(family, name, record)
            return family

        if first.aggregator_kind == AggregatorKind.SUM:
            # The exposition appends `_total` to the family name of counters
            if name.endswith("_total"):
                name = name[:-6]
            family = Metric(name, description, "counter")
            sample_name = f"{name}_total"
        else:
            family = Metric(name, description, "gauge")
            sample_name = name

        for record in records:
            if record.point.value is None:
                continue
            family.add_sample(sample_name, dict(record.labels), record.point.value, record.point.timestamp)

        return family if family.samples else None

    def _add_histogram(self, family: Metric, name: str, record: MetricRecord) -> None:
        value: HistogramValue = record.point.value
        timestamp = record.point.timestamp
        labels = dict(record.labels)

        for boundary, count in value.cumulative_counts():
            family.add_sample(
                f"{name}_bucket",
                {**labels, "le": format_boundary(boundary)},
                count,
                timestamp
            )
        family.add_sample(f"{name}_count", labels, value.count, timestamp)
        family.add_sample(f"{name}_sum", labels, value.sum, timestamp)


class PrometheusExporter:
    """Serializes checkpoints in the Prometheus text format."""

    def __init__(self, batcher: Batcher, prefix: Optional[str] = None):
        self.batcher = batcher
        self.registry = CollectorRegistry(auto_describe=False)
        self.collector = CheckpointCollector(batcher, prefix)
        self.registry.register(self.collector)
        self.logger = get_logger("telemetry.exporter.prometheus")

    def export_metrics(self) -> str:
        """Export the current checkpoint set."""
        if not self.batcher.has_metric:
            return NO_METRICS

        output = generate_latest(self.registry).decode("utf-8")
        self.logger.debug("Metrics exported", families=len(self.batcher.checkpoint_set()))
        return output
