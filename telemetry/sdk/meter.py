"""
Instrument registration, label binding and collection.

Each instrument owns an arena of bound instruments keyed by the canonical
fingerprint of their label set. Every bound instrument owns exactly one
aggregator chosen by the batcher from the instrument's descriptor.
"""

import asyncio
import inspect
from typing import Any, Awaitable, Callable, Dict, Iterable, List, NamedTuple, Optional, Sequence, Union

from shared.errors import MetricAlreadyRegisteredError
from shared.logging import get_logger

from ..aggregation.aggregators import Aggregator, require_finite
from ..aggregation.batcher import Batcher
from .metric import (
    Labels,
    LabelsKey,
    MetricDescriptor,
    MetricKind,
    MetricRecord,
    label_fingerprint,
    normalize_labels,
)

logger = get_logger("telemetry.meter")

DEFAULT_BATCH_TIMEOUT_SECONDS = 0.5


class Observation(NamedTuple):
    """A value to be applied to ``observer`` by a batch observer."""
    value: float
    observer: Any


class BoundInstrument:
    """An instrument bound to one label set."""

    def __init__(self, descriptor: MetricDescriptor, labels: Labels, aggregator: Aggregator):
        self.descriptor = descriptor
        self.labels = labels
        self.aggregator = aggregator

    def update(self, value: float) -> None:
        self.aggregator.update(value)

    def get_metric_record(self) -> MetricRecord:
        return MetricRecord(
            descriptor=self.descriptor,
            labels=self.labels,
            aggregator_kind=self.aggregator.kind,
            point=self.aggregator.to_point(),
        )


class Instrument:
    """Unbound metric shared by all of its label sets."""

    def __init__(self, descriptor: MetricDescriptor, batcher: Batcher):
        self.descriptor = descriptor
        self._batcher = batcher
        self._bound: Dict[LabelsKey, BoundInstrument] = {}

    @property
    def name(self) -> str:
        return self.descriptor.name

    def bind(self, labels: Optional[Labels] = None) -> BoundInstrument:
        key = label_fingerprint(labels)
        bound = self._bound.get(key)
        if bound is None:
            bound = BoundInstrument(
                self.descriptor,
                normalize_labels(labels),
                self._batcher.aggregator_for(self.descriptor),
            )
            self._bound[key] = bound
        return bound

    def update(self, value: float, labels: Optional[Labels] = None) -> None:
        """Apply ``value`` to the label set; rejected values create no series."""
        require_finite(value)
        self.bind(labels).update(value)

    def unbind(self, labels: Optional[Labels] = None) -> None:
        self._bound.pop(label_fingerprint(labels), None)

    def clear(self) -> None:
        self._bound.clear()

    def get_metric_records(self) -> List[MetricRecord]:
        return [bound.get_metric_record() for bound in self._bound.values()]


class ObserverResult:
    """Handed to observer callbacks; observations are applied immediately."""

    def __init__(self, instrument: Instrument):
        self._instrument = instrument

    def observe(self, value: float, labels: Optional[Labels] = None) -> None:
        self._instrument.update(value, labels)


class BatchObserverResult:
    """Handed to batch observer callbacks."""

    def __init__(self):
        self.observed = False

    def observe(self, labels: Optional[Labels], observations: Iterable[Observation]) -> None:
        self.observed = True
        for observation in observations:
            observation.observer.update(observation.value, labels)


ObserverCallback = Callable[[ObserverResult], Union[None, Awaitable[Any]]]
BatchObserverCallback = Callable[[BatchObserverResult], Union[None, Awaitable[Any]]]


class ObserverInstrument(Instrument):
    """Asynchronous instrument whose callback runs on every collection."""

    def __init__(self, descriptor: MetricDescriptor, batcher: Batcher, callback: ObserverCallback):
        super().__init__(descriptor, batcher)
        self.callback = callback

    async def observe(self) -> None:
        await _invoke(self.callback, ObserverResult(self))


class BatchObserverInstrument(Instrument):
    """Updates several instruments from one callback, bounded by ``timeout`` seconds."""

    def __init__(
        self,
        descriptor: MetricDescriptor,
        batcher: Batcher,
        callback: BatchObserverCallback,
        timeout: float = DEFAULT_BATCH_TIMEOUT_SECONDS
    ):
        super().__init__(descriptor, batcher)
        self.callback = callback
        self.timeout = timeout

    async def observe(self) -> None:
        result = BatchObserverResult()
        try:
            await asyncio.wait_for(_invoke(self.callback, result), self.timeout)
        except asyncio.TimeoutError:
            logger.warning(
                "Batch observer timed out",
                metric=self.name,
                timeout=self.timeout,
                observed=result.observed
            )


async def _invoke(callback: Callable[[Any], Any], result: Any) -> Any:
    outcome = callback(result)
    if inspect.isawaitable(outcome):
        outcome = await outcome
    return outcome


class Meter:
    """Creates instruments and collects them into the batcher."""

    def __init__(
        self,
        name: str,
        batcher: Batcher,
        batch_timeout: float = DEFAULT_BATCH_TIMEOUT_SECONDS
    ):
        self.name = name
        self.batcher = batcher
        self.batch_timeout = batch_timeout
        self._instruments: Dict[str, Instrument] = {}

    def _descriptor(
        self,
        name: str,
        kind: MetricKind,
        description: str = "",
        unit: str = "",
        boundaries: Optional[Sequence[float]] = None
    ) -> MetricDescriptor:
        if name in self._instruments:
            raise MetricAlreadyRegisteredError(name)
        return MetricDescriptor(
            name=name,
            metric_kind=kind,
            description=description or "",
            unit=unit or "",
            boundaries=tuple(boundaries) if boundaries is not None else None,
        )

    def _register(self, instrument: Instrument) -> Instrument:
        self._instruments[instrument.name] = instrument
        logger.debug(
            "Instrument registered",
            metric=instrument.name,
            kind=instrument.descriptor.metric_kind.value,
            boundaries=instrument.descriptor.boundaries
        )
        return instrument

    def create_counter(self, name: str, description: str = "", unit: str = "") -> Instrument:
        descriptor = self._descriptor(name, MetricKind.COUNTER, description, unit)
        return self._register(Instrument(descriptor, self.batcher))

    def create_up_down_counter(self, name: str, description: str = "", unit: str = "") -> Instrument:
        descriptor = self._descriptor(name, MetricKind.UP_DOWN_COUNTER, description, unit)
        return self._register(Instrument(descriptor, self.batcher))

    def create_value_recorder(
        self,
        name: str,
        description: str = "",
        unit: str = "",
        boundaries: Optional[Sequence[float]] = None
    ) -> Instrument:
        descriptor = self._descriptor(name, MetricKind.VALUE_RECORDER, description, unit, boundaries)
        return self._register(Instrument(descriptor, self.batcher))

    def create_value_observer(
        self,
        name: str,
        callback: ObserverCallback,
        description: str = "",
        unit: str = "",
        boundaries: Optional[Sequence[float]] = None
    ) -> ObserverInstrument:
        descriptor = self._descriptor(name, MetricKind.VALUE_OBSERVER, description, unit, boundaries)
        return self._register(ObserverInstrument(descriptor, self.batcher, callback))

    def create_sum_observer(
        self,
        name: str,
        callback: ObserverCallback,
        description: str = "",
        unit: str = ""
    ) -> ObserverInstrument:
        descriptor = self._descriptor(name, MetricKind.SUM_OBSERVER, description, unit)
        return self._register(ObserverInstrument(descriptor, self.batcher, callback))

    def create_up_down_sum_observer(
        self,
        name: str,
        callback: ObserverCallback,
        description: str = "",
        unit: str = ""
    ) -> ObserverInstrument:
        descriptor = self._descriptor(name, MetricKind.UP_DOWN_SUM_OBSERVER, description, unit)
        return self._register(ObserverInstrument(descriptor, self.batcher, callback))

    def create_batch_observer(
        self,
        name: str,
        callback: BatchObserverCallback,
        description: str = "",
        unit: str = "",
        timeout: Optional[float] = None
    ) -> BatchObserverInstrument:
        descriptor = self._descriptor(name, MetricKind.BATCH_OBSERVER, description, unit)
        return self._register(BatchObserverInstrument(
            descriptor,
            self.batcher,
            callback,
            timeout if timeout is not None else self.batch_timeout,
        ))

    def get_instrument(self, name: str) -> Optional[Instrument]:
        return self._instruments.get(name)

    async def _observe(self, instrument: Union[ObserverInstrument, BatchObserverInstrument]) -> None:
        try:
            await instrument.observe()
        except Exception as e:
            logger.error("Observer callback failed", metric=instrument.name, error=str(e), exc_info=True)

    async def collect(self) -> None:
        """Run every observer callback, then checkpoint all instruments into the batcher."""
        observers = [
            instrument for instrument in self._instruments.values()
            if isinstance(instrument, (ObserverInstrument, BatchObserverInstrument))
        ]
        await asyncio.gather(*(self._observe(observer) for observer in observers))

        for instrument in list(self._instruments.values()):
            self.batcher.forget(instrument.name)
            for record in instrument.get_metric_records():
                self.batcher.process(record)

        logger.debug("Collection finished", meter=self.name, instruments=len(self._instruments))
