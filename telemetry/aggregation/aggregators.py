"""
Aggregators accumulating observations for one bound instrument.

Each aggregator is owned by exactly one label set of one metric. ``update`` and
``to_point`` are synchronous and not internally synchronized.
"""

import math
import time
from bisect import bisect_left
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Sequence, Tuple, Union

from shared.errors import InvalidArgumentError, PreconditionViolationError
from shared.logging import get_logger

logger = get_logger("telemetry.aggregators")


class AggregatorKind(str, Enum):
    """Closed set of aggregation strategies."""
    HISTOGRAM = "histogram"
    LAST_VALUE = "last_value"
    SUM = "sum"
    UP_DOWN_SUM = "up_down_sum"


@dataclass(frozen=True)
class HistogramValue:
    """Snapshot of a histogram distribution."""
    boundaries: Tuple[float, ...]
    counts: Tuple[int, ...]
    sum: float
    count: int

    def cumulative_counts(self) -> List[Tuple[float, int]]:
        """(upper bound, cumulative count) pairs, ending with ``+inf``."""
        result = []
        running = 0
        for boundary, count in zip(self.boundaries + (math.inf,), self.counts):
            running += count
            result.append((boundary, running))
        return result


@dataclass(frozen=True)
class Point:
    """Checkpoint of an aggregator; ``timestamp`` is epoch seconds of the last update."""
    value: Union[HistogramValue, float, None]
    timestamp: float


def require_finite(value: float) -> None:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
        raise InvalidArgumentError(
            f"Metric values must be finite numbers, got {value!r}",
            {"value": repr(value)}
        )


class HistogramAggregator:
    """Histogram using inclusive upper bounds: a value equal to a boundary
    falls into that boundary's bucket.

    Counts are cumulative for the lifetime of the aggregator.
    """

    kind = AggregatorKind.HISTOGRAM

    def __init__(self, boundaries: Sequence[float]):
        if not boundaries:
            raise PreconditionViolationError(
                "HistogramAggregator should be created with boundaries.",
                {"boundaries": repr(boundaries)}
            )

        # Bucket lookup relies on ascending order
        self._boundaries = tuple(sorted(boundaries))
        self._counts = [0] * (len(self._boundaries) + 1)
        self._sum = 0.0
        self._count = 0
        self._last_update_time = time.time()

    @property
    def boundaries(self) -> Tuple[float, ...]:
        return self._boundaries

    @property
    def count(self) -> int:
        return self._count

    def update(self, value: float) -> None:
        require_finite(value)

        self._last_update_time = time.time()
        self._count += 1
        self._sum += value
        # First boundary >= value, or the overflow slot past the last boundary
        self._counts[bisect_left(self._boundaries, value)] += 1

    def to_point(self) -> Point:
        return Point(
            value=HistogramValue(
                boundaries=self._boundaries,
                counts=tuple(self._counts),
                sum=self._sum,
                count=self._count,
            ),
            timestamp=self._last_update_time,
        )


class LastValueAggregator:
    """Keeps only the most recently observed value."""

    kind = AggregatorKind.LAST_VALUE

    def __init__(self):
        self._value: Optional[float] = None
        self._last_update_time = time.time()

    def update(self, value: float) -> None:
        require_finite(value)

        self._value = value
        self._last_update_time = time.time()

    def to_point(self) -> Point:
        return Point(value=self._value, timestamp=self._last_update_time)


class SumAggregator:
    """Running sum. ``SUM`` only accepts non-negative increments."""

    def __init__(self, kind: AggregatorKind = AggregatorKind.SUM):
        if kind not in (AggregatorKind.SUM, AggregatorKind.UP_DOWN_SUM):
            raise PreconditionViolationError(
                f"SumAggregator cannot aggregate as {kind.value}",
                {"kind": kind.value}
            )
        self.kind = kind
        self._value = 0
        self._last_update_time = time.time()

    @property
    def monotonic(self) -> bool:
        return self.kind == AggregatorKind.SUM

    def update(self, value: float) -> None:
        require_finite(value)

        if self.monotonic and value < 0:
            logger.warning("Monotonic sum cannot descend, dropping value", value=value)
            return

        self._value += value
        self._last_update_time = time.time()

    def to_point(self) -> Point:
        return Point(value=self._value, timestamp=self._last_update_time)


Aggregator = Union[HistogramAggregator, LastValueAggregator, SumAggregator]
