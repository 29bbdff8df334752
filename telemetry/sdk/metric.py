"""
Metric kinds, descriptors and records exchanged between meter, batcher and exporter.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional, Tuple

from ..aggregation.aggregators import AggregatorKind, Point

Labels = Dict[str, str]
LabelsKey = Tuple[Tuple[str, str], ...]


class MetricKind(str, Enum):
    """Instrument kinds."""
    COUNTER = "counter"
    UP_DOWN_COUNTER = "up_down_counter"
    VALUE_RECORDER = "value_recorder"
    SUM_OBSERVER = "sum_observer"
    UP_DOWN_SUM_OBSERVER = "up_down_sum_observer"
    VALUE_OBSERVER = "value_observer"
    BATCH_OBSERVER = "batch_observer"


@dataclass(frozen=True)
class MetricDescriptor:
    """Everything the batcher needs to pick an aggregator for a metric."""
    name: str
    metric_kind: MetricKind
    description: str = ""
    unit: str = ""
    boundaries: Optional[Tuple[float, ...]] = None


@dataclass(frozen=True)
class MetricRecord:
    """Checkpoint of one label set of one metric."""
    descriptor: MetricDescriptor
    labels: Labels
    aggregator_kind: AggregatorKind
    point: Point


def normalize_labels(labels: Optional[Labels]) -> Labels:
    """Label set with keys and values converted to strings."""
    return {str(key): str(value) for key, value in (labels or {}).items()}


def label_fingerprint(labels: Optional[Labels]) -> LabelsKey:
    """Canonical key for a label set: sorted key/value pairs."""
    return tuple(sorted(normalize_labels(labels).items()))
