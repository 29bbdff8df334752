"""
Telemetry entry point: typed metric constructors over a meter, with
Prometheus text export.
"""

from numbers import Real
from typing import Any, Callable, Dict, List, Optional, TypeVar, Union

from shared.config import TelemetryConfig, get_config
from shared.errors import InvalidArgumentError, MetricAlreadyRegisteredError
from shared.logging import get_logger, set_telemetry_name

from . import facades
from .aggregation.boundaries import BoundariesConfig, create as create_boundaries, exponential, linear
from .aggregation.batcher import Batcher
from .exporters.prometheus import PrometheusExporter
from .lifecycle import Lifecycle, maybe_await
from .names import make_name, validate_name
from .sdk.controller import CollectionController
from .sdk.meter import BatchObserverResult, Meter, ObserverResult
from .sdk.metric import Labels

M = TypeVar("M", bound=facades.Metric)

ValueObserverCallback = Callable[[Any], Any]
BatchObserverCallback = Callable[[facades.BatchObserver], Any]


def _noop(observer: Any) -> None:
    return None


def _report_value(value: Any, observer: facades.BaseValueObserver) -> None:
    if isinstance(value, Real) and not isinstance(value, bool):
        observer.observe(value)


def _report_observations(value: Any, observer: facades.BatchObserver) -> None:
    # Observe at least once so the collection never waits for this callback
    observer.observe(list(value) if facades.is_observation_list(value) else [])


def _observer_callback(
    callback: ValueObserverCallback,
    observer_class: type,
    labels: Optional[Labels]
) -> Callable[[ObserverResult], Any]:
    async def observe(result: ObserverResult) -> None:
        observer = observer_class(result, labels)
        _report_value(await maybe_await(callback(observer)), observer)

    return observe


def _batch_callback(
    callback: BatchObserverCallback,
    labels: Optional[Labels]
) -> Callable[[BatchObserverResult], Any]:
    async def observe(result: BatchObserverResult) -> None:
        observer = facades.BatchObserver(result, labels)
        _report_observations(await maybe_await(callback(observer)), observer)

    return observe


def _require_callback(callback: Any) -> None:
    if not callable(callback):
        raise InvalidArgumentError("Callback must be a function", {"callback": repr(callback)})


class Telemetry(Lifecycle):
    """Creates metrics, collects them periodically and exports them as Prometheus text."""

    def __init__(
        self,
        name: Optional[str] = None,
        prefix: Optional[str] = None,
        labels: Optional[Labels] = None,
        interval: Optional[float] = None,
        config: Optional[TelemetryConfig] = None
    ):
        super().__init__()

        overrides = {
            key: value for key, value in {
                "name": name,
                "prefix": prefix,
                "labels": labels,
                "interval_seconds": interval,
            }.items() if value is not None
        }
        self.config = config.model_copy(update=overrides) if config else get_config(**overrides)
        self.logger = get_logger("telemetry")

        self.batcher = Batcher()
        self.meter = Meter(self.config.name, self.batcher, self.config.batch_observer_timeout_seconds)
        self.exporter = PrometheusExporter(self.batcher, self.config.prefix or None)
        self.controller = CollectionController(self.collect, self.config.interval_seconds)

        self._labels: Optional[Labels] = self.config.labels or None
        self._metrics: Dict[str, facades.Metric] = {}

        self.on_close(lambda _: self.controller.stop())

    @property
    def name(self) -> str:
        return self.config.name

    async def start(self) -> "Telemetry":
        """Load plugins and start periodic collection."""
        await self.ready()
        await self.controller.start()
        self.logger.info("Telemetry started", telemetry=self.name, metrics=len(self._metrics))
        return self

    async def collect(self) -> str:
        """Collect every metric and return the Prometheus exposition."""
        set_telemetry_name(self.name)
        await self.meter.collect()
        return self.export_metrics()

    def export_metrics(self) -> str:
        """Exposition of the last collection."""
        return self.exporter.export_metrics()

    def linear_boundaries(self, start: float, count: int, width: Optional[float] = None) -> List[float]:
        return linear(start, count, width)

    def exponential_boundaries(self, start: float, count: int, factor: Optional[float] = None) -> List[float]:
        return exponential(start, count, factor)

    def get_boundaries(self, config: BoundariesConfig = None) -> Optional[List[float]]:
        return create_boundaries(config)

    def get_labels(self, labels: Optional[Labels] = None) -> Labels:
        return {**(self._labels or {}), **(labels or {})}

    def validate_name(self, name: str) -> str:
        validate_name(name)
        if self.has(name):
            raise MetricAlreadyRegisteredError(name)
        return name

    def make_name(self, *parts: Union[str, None, bool]) -> str:
        return make_name(*parts)

    def has(self, name: str) -> bool:
        return name in self._metrics

    def get(self, name: str, factory: Optional[Callable[["Telemetry", str], M]] = None) -> Optional[M]:
        """Registered metric ``name``, created by ``factory`` if missing and given."""
        metric = self._metrics.get(name)
        if metric is None and factory is not None:
            metric = factory(self, name)
            if self._metrics.get(metric.name) is not metric:
                self._set_metric(metric)
        return metric

    def _set_metric(self, metric: M) -> M:
        self._metrics[metric.name] = metric
        self.logger.debug("Metric created", metric=metric.name, kind=type(metric).__name__)
        return metric

    def _options(
        self,
        name: str,
        prefix: Optional[str],
        labels: Optional[Labels],
        description: Optional[str],
        unit: Optional[str]
    ) -> Dict[str, Any]:
        if description is None and unit:
            description = f"in {unit}"
        return {
            "name": self.validate_name(self.make_name(prefix, name)),
            "labels": self.get_labels(labels),
            "description": description or "",
            "unit": unit or "",
        }

    def create_counter(
        self,
        name: str,
        *,
        prefix: Optional[str] = None,
        description: Optional[str] = None,
        unit: Optional[str] = None,
        labels: Optional[Labels] = None
    ) -> facades.CounterMetric:
        """Choose this kind of metric when the value is a quantity, the sum is of
        primary interest, and the event count and value distribution are not.
        It is restricted to non-negative increments.

        Example uses: bytes received, requests completed, accounts created,
        checkpoints run, 5xx errors.
        """
        options = self._options(name, prefix, labels, description, unit)
        instrument = self.meter.create_counter(options["name"], options["description"], options["unit"])
        return self._set_metric(facades.CounterMetric(options["name"], instrument, options["labels"]))

    def create_up_down_counter(
        self,
        name: str,
        *,
        prefix: Optional[str] = None,
        description: Optional[str] = None,
        unit: Optional[str] = None,
        labels: Optional[Labels] = None
    ) -> facades.UpDownCounterMetric:
        """Like a counter, but supports negative increments.

        Useful for the amount of resources in use or any quantity that rises and
        falls during a request: active requests, memory in use, queue size,
        semaphore operations.
        """
        options = self._options(name, prefix, labels, description, unit)
        instrument = self.meter.create_up_down_counter(options["name"], options["description"], options["unit"])
        return self._set_metric(facades.UpDownCounterMetric(options["name"], instrument, options["labels"]))

    def create_value_recorder(
        self,
        name: str,
        *,
        prefix: Optional[str] = None,
        description: Optional[str] = None,
        unit: Optional[str] = None,
        labels: Optional[Labels] = None,
        boundaries: BoundariesConfig = None
    ) -> facades.ValueRecorderMetric:
        """Non-additive synchronous instrument for any number, positive or negative.

        With ``boundaries`` the values form a histogram, otherwise only the last
        recorded value is kept.
        """
        options = self._options(name, prefix, labels, description, unit)
        instrument = self.meter.create_value_recorder(
            options["name"],
            options["description"],
            options["unit"],
            self.get_boundaries(boundaries),
        )
        return self._set_metric(facades.ValueRecorderMetric(options["name"], instrument, options["labels"]))

    def create_value_observer(
        self,
        name: str,
        callback: Optional[ValueObserverCallback] = None,
        *,
        prefix: Optional[str] = None,
        description: Optional[str] = None,
        unit: Optional[str] = None,
        labels: Optional[Labels] = None,
        boundaries: BoundariesConfig = None
    ) -> facades.ValueObserverMetric:
        """Choose this kind of metric when only the last value is important.

        The callback can be sync or async; a numeric return value is observed.
        """
        callback = callback or _noop
        _require_callback(callback)

        options = self._options(name, prefix, labels, description, unit)
        instrument = self.meter.create_value_observer(
            options["name"],
            _observer_callback(callback, facades.ValueObserver, options["labels"]),
            options["description"],
            options["unit"],
            self.get_boundaries(boundaries),
        )
        return self._set_metric(facades.ValueObserverMetric(options["name"], instrument, options["labels"]))

    def create_sum_observer(
        self,
        name: str,
        callback: Optional[ValueObserverCallback] = None,
        *,
        prefix: Optional[str] = None,
        description: Optional[str] = None,
        unit: Optional[str] = None,
        labels: Optional[Labels] = None
    ) -> facades.SumObserverMetric:
        """Choose this kind of metric when collecting a sum that never decreases."""
        callback = callback or _noop
        _require_callback(callback)

        options = self._options(name, prefix, labels, description, unit)
        instrument = self.meter.create_sum_observer(
            options["name"],
            _observer_callback(callback, facades.SumObserver, options["labels"]),
            options["description"],
            options["unit"],
        )
        return self._set_metric(facades.SumObserverMetric(options["name"], instrument, options["labels"]))

    def create_up_down_sum_observer(
        self,
        name: str,
        callback: Optional[ValueObserverCallback] = None,
        *,
        prefix: Optional[str] = None,
        description: Optional[str] = None,
        unit: Optional[str] = None,
        labels: Optional[Labels] = None
    ) -> facades.UpDownSumObserverMetric:
        """Choose this kind of metric for a sum that starts at zero and rises or
        falls throughout the process lifetime."""
        callback = callback or _noop
        _require_callback(callback)

        options = self._options(name, prefix, labels, description, unit)
        instrument = self.meter.create_up_down_sum_observer(
            options["name"],
            _observer_callback(callback, facades.UpDownSumObserver, options["labels"]),
            options["description"],
            options["unit"],
        )
        return self._set_metric(facades.UpDownSumObserverMetric(options["name"], instrument, options["labels"]))

    def create_batch_observer(
        self,
        name: str,
        callback: BatchObserverCallback,
        *,
        prefix: Optional[str] = None,
        description: Optional[str] = None,
        unit: Optional[str] = None,
        labels: Optional[Labels] = None,
        timeout: Optional[float] = None
    ) -> facades.BatchObserverMetric:
        """Update several metrics from the result of a single, possibly async,
        calculation. ``timeout`` bounds how long a collection waits for it."""
        _require_callback(callback)

        options = self._options(name, prefix, labels, description, unit)
        instrument = self.meter.create_batch_observer(
            options["name"],
            _batch_callback(callback, options["labels"]),
            options["description"],
            options["unit"],
            timeout,
        )
        return self._set_metric(facades.BatchObserverMetric(options["name"], instrument, options["labels"]))

