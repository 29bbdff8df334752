"""
Aggregator selection and checkpoint bookkeeping.
"""

from typing import Dict, List, Tuple

from ..sdk.metric import LabelsKey, MetricDescriptor, MetricKind, MetricRecord, label_fingerprint
from .aggregators import (
    Aggregator,
    AggregatorKind,
    HistogramAggregator,
    LastValueAggregator,
    SumAggregator,
)

_DEFAULT_KINDS = {
    MetricKind.COUNTER: AggregatorKind.SUM,
    MetricKind.SUM_OBSERVER: AggregatorKind.SUM,
    MetricKind.UP_DOWN_COUNTER: AggregatorKind.UP_DOWN_SUM,
    MetricKind.UP_DOWN_SUM_OBSERVER: AggregatorKind.UP_DOWN_SUM,
}


def select_aggregator_kind(has_boundaries: bool, metric_kind: MetricKind) -> AggregatorKind:
    """Decide how a metric is aggregated.

    Declared boundaries always win. Value recorders without boundaries keep the
    last value. Everything else follows the per-kind default: additive kinds are
    summed, the rest keep the last value.
    """
    if has_boundaries:
        return AggregatorKind.HISTOGRAM
    if metric_kind == MetricKind.VALUE_RECORDER:
        return AggregatorKind.LAST_VALUE
    return _DEFAULT_KINDS.get(metric_kind, AggregatorKind.LAST_VALUE)


class Batcher:
    """Builds aggregators for descriptors and keeps the checkpoint set for export."""

    def __init__(self):
        self._records: Dict[Tuple[str, LabelsKey], MetricRecord] = {}

    def aggregator_for(self, descriptor: MetricDescriptor) -> Aggregator:
        kind = select_aggregator_kind(descriptor.boundaries is not None, descriptor.metric_kind)

        if kind == AggregatorKind.HISTOGRAM:
            return HistogramAggregator(descriptor.boundaries)
        if kind == AggregatorKind.LAST_VALUE:
            return LastValueAggregator()
        return SumAggregator(kind)

    def process(self, record: MetricRecord) -> None:
        """Store the latest checkpoint for the record's metric and label set."""
        key = (record.descriptor.name, label_fingerprint(record.labels))
        self._records[key] = record

    @property
    def has_metric(self) -> bool:
        return bool(self._records)

    def checkpoint_set(self) -> Dict[str, List[MetricRecord]]:
        """Checkpoints grouped by metric name, in first-seen order."""
        checkpoints: Dict[str, List[MetricRecord]] = {}
        for (name, _), record in self._records.items():
            checkpoints.setdefault(name, []).append(record)
        return checkpoints

    def forget(self, name: str) -> None:
        """Drop all checkpoints of a metric."""
        for key in [key for key in self._records if key[0] == name]:
            del self._records[key]
