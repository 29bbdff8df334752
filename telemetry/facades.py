"""
Ergonomic wrappers around SDK instruments.

Update styles (sum-like ``add``/``inc``/``dec``, value-like ``record`` and
``start_timer``) are plain functions over anything ``Updatable`` and are
attached to the facade classes as methods.
"""

import time
from typing import Any, Callable, Optional, Protocol, Sequence, Union

from .sdk.meter import BatchObserverResult, Instrument, Observation, ObserverResult
from .sdk.metric import Labels


class Updatable(Protocol):
    def update(self, value: float, labels: Optional[Labels] = None) -> float:
        ...


class Observable(Protocol):
    def observe(self, value: float, labels: Optional[Labels] = None) -> float:
        ...


def merge_labels(a: Optional[Labels] = None, b: Optional[Labels] = None) -> Optional[Labels]:
    if a and b:
        return {**a, **b}
    return a or b


def record_as_sum(target: Updatable, value: float = 1, labels: Optional[Labels] = None) -> float:
    return target.update(value, labels)


def record_as_negated_sum(target: Updatable, value: float = 1, labels: Optional[Labels] = None) -> float:
    target.update(value * -1, labels)
    return value


def record_as_value(target: Updatable, value: float, labels: Optional[Labels] = None) -> float:
    return target.update(value, labels)


def is_observation_list(value: Any) -> bool:
    """True for a list or tuple of observations; a single observation is not one."""
    return isinstance(value, list) or (isinstance(value, tuple) and not isinstance(value, Observation))


def start_timer(
    target: Updatable,
    start_labels: Optional[Labels] = None
) -> Callable[..., float]:
    """Start a stopwatch; calling the result records the elapsed seconds."""
    started = time.perf_counter()

    def stop(end_labels: Optional[Labels] = None) -> float:
        return target.update(time.perf_counter() - started, merge_labels(start_labels, end_labels))

    return stop


class Metric:
    """Facade over an SDK instrument carrying default labels."""

    def __init__(self, name: str, instrument: Instrument, labels: Optional[Labels] = None):
        self.name = name
        self._instrument = instrument
        self._labels = labels

    def get_labels(self, labels: Optional[Labels] = None) -> Labels:
        return {**(self._labels or {}), **(labels or {})}

    def bind(self, labels: Optional[Labels] = None) -> "Metric":
        """Facade whose default labels additionally include ``labels``."""
        if not labels:
            return self
        return type(self)(self.name, self._instrument, self.get_labels(labels))

    def unbind(self, labels: Optional[Labels] = None) -> None:
        self._instrument.unbind(self.get_labels(labels))

    def clear(self) -> None:
        self._instrument.clear()


class ObservableMetric(Metric):
    """Metric that applies values to the bound instrument of its label set."""

    def update(self, value: float, labels: Optional[Labels] = None) -> float:
        self._instrument.update(value, self.get_labels(labels))
        return value

    def observe(self, value: float, labels: Optional[Labels] = None) -> float:
        return self.update(value, labels)

    def observation(self, value: float) -> Observation:
        return Observation(value=value, observer=self)


class CounterMetric(ObservableMetric):
    add = record_as_sum
    inc = record_as_sum


class UpDownCounterMetric(ObservableMetric):
    add = record_as_sum
    inc = record_as_sum
    dec = record_as_negated_sum


class ValueRecorderMetric(ObservableMetric):
    record = record_as_value
    start_timer = start_timer


class ValueObserverMetric(ObservableMetric):
    record = record_as_value
    start_timer = start_timer


class SumObserverMetric(ObservableMetric):
    add = record_as_sum
    inc = record_as_sum


class UpDownSumObserverMetric(ObservableMetric):
    add = record_as_sum
    inc = record_as_sum
    dec = record_as_negated_sum


class BatchObserverMetric(Metric):
    pass


class BaseValueObserver:
    """Handed to observer callbacks; applies observations for this collection."""

    def __init__(self, result: ObserverResult, labels: Optional[Labels] = None):
        self._result = result
        self._labels = labels

    def update(self, value: float, labels: Optional[Labels] = None) -> float:
        return self.observe(value, labels)

    def observe(self, value: float, labels: Optional[Labels] = None) -> float:
        self._result.observe(value, {**(self._labels or {}), **(labels or {})})
        return value


class ValueObserver(BaseValueObserver):
    record = record_as_value
    start_timer = start_timer


class SumObserver(BaseValueObserver):
    add = record_as_sum
    inc = record_as_sum


class UpDownSumObserver(BaseValueObserver):
    add = record_as_sum
    inc = record_as_sum
    dec = record_as_negated_sum


class BatchObserver:
    """Handed to batch observer callbacks.

    Accepts ``observe(observations, labels)`` as well as
    ``observe(labels, observations)``; calls with neither argument being a
    list of observations are ignored.
    """

    def __init__(self, result: BatchObserverResult, labels: Optional[Labels] = None):
        self._result = result
        self._labels = labels

    def observe(
        self,
        a: Union[Sequence[Observation], Labels, None],
        b: Union[Sequence[Observation], Labels, None] = None
    ) -> None:
        if is_observation_list(a):
            self._result.observe(self._merge(b), a)
        elif is_observation_list(b):
            self._result.observe(self._merge(a), b)

    def _merge(self, labels: Any) -> Labels:
        return {**(self._labels or {}), **(labels if isinstance(labels, dict) else {})}
