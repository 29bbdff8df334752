"""
Histogram bucket boundary generation.

Boundaries are the inclusive upper edges of histogram buckets, excluding the
implicit ``+Inf`` bucket. Generated values are rounded to ``ROUND_DIGITS``
decimal places so that e.g. ``0.1 + 0.2`` yields ``0.3``.
"""

import math
from numbers import Real
from typing import Any, Callable, List, Literal, Mapping, Optional, Sequence, Union

from pydantic import BaseModel, ConfigDict, ValidationError

from shared.errors import InvalidArgumentError, InvalidConfigurationError

ROUND_DIGITS = 9

Boundaries = List[float]


class LinearBoundariesConfig(BaseModel):
    """``count`` boundaries starting at ``start``, each ``width`` apart."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    start: Optional[float] = None
    count: int
    type: Optional[Literal["linear"]] = None
    width: Optional[float] = None


class ExponentialBoundariesConfig(BaseModel):
    """``count`` boundaries starting at ``start``, each ``factor`` times the previous."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    start: float = 1
    count: int
    type: Optional[Literal["exponential"]] = None
    factor: Optional[float] = None


BoundariesConfig = Union[
    None,
    Sequence[float],
    Callable[[], Any],
    Mapping[str, Any],
    LinearBoundariesConfig,
    ExponentialBoundariesConfig,
]


def _is_number(value: Any) -> bool:
    return isinstance(value, Real) and not isinstance(value, bool)


def _round(value: float) -> float:
    return round(value, ROUND_DIGITS)


def generate(start: float, count: int, next_value: Callable[[float, int], float]) -> Boundaries:
    """Generate ``count`` boundaries, each computed from the previous one."""
    failed = []
    if not _is_number(start) or not math.isfinite(start):
        failed.append("start must be a finite number")
    if not isinstance(count, int) or isinstance(count, bool) or count < 1:
        failed.append("count must be a positive integer")
    if not callable(next_value):
        failed.append("next_value must be callable")
    if failed:
        raise InvalidArgumentError(
            "Invalid boundaries arguments: " + "; ".join(failed),
            {"start": start, "count": count, "failed": failed}
        )

    boundaries = []
    value = start
    for index in range(count):
        if not _is_number(value) or not math.isfinite(value):
            raise InvalidArgumentError(
                f"Boundary {index} must be a finite number, got {value!r}",
                {"index": index, "value": repr(value)}
            )
        boundaries.append(value)
        value = next_value(value, index)

    return boundaries


def linear(start: float, count: int, width: Optional[float] = None) -> Boundaries:
    """Linear boundaries; ``width`` defaults to ``start``."""
    if width is None:
        width = start
    if not _is_number(width) or not math.isfinite(width) or not width > 0:
        raise InvalidArgumentError(
            "Linear boundaries needs a finite width greater than 0",
            {"width": width}
        )

    return generate(start, count, lambda value, _: _round(value + width))


def exponential(start: float, count: int, factor: Optional[float] = None) -> Boundaries:
    """Exponential boundaries; ``factor`` defaults to 2."""
    if factor is None:
        factor = 2
    if not _is_number(start) or not start > 0:
        raise InvalidArgumentError(
            "Exponential boundaries needs a positive start",
            {"start": start}
        )
    if not _is_number(factor) or not math.isfinite(factor) or not factor > 1:
        raise InvalidArgumentError(
            "Exponential boundaries needs a finite factor greater than 1",
            {"factor": factor}
        )

    return generate(start, count, lambda value, _: _round(value * factor))


def _invalid(config: Any, reason: Optional[str] = None) -> InvalidConfigurationError:
    message = f"Invalid bucket config ({type(config).__name__}): {config!r}"
    if reason:
        message = f"{message} - {reason}"
    return InvalidConfigurationError(message, {"type": type(config).__name__, "value": repr(config)})


def _parse_mapping(config: Mapping[str, Any]):
    try:
        if config.get("type") == "linear" or config.get("width") is not None:
            return LinearBoundariesConfig.model_validate(dict(config))
        return ExponentialBoundariesConfig.model_validate(dict(config))
    except ValidationError as e:
        raise _invalid(config, str(e)) from e


def create(config: BoundariesConfig) -> Optional[Boundaries]:
    """Resolve a boundaries configuration into concrete boundaries.

    ``None`` means no histogram. Explicit sequences are used as-is, callables
    are invoked and their result resolved again, mappings and config models
    describe linear or exponential boundaries.
    """
    if config is None:
        return None

    if isinstance(config, (list, tuple)):
        if not config or not all(_is_number(value) and math.isfinite(value) for value in config):
            raise _invalid(config, "expected a non-empty sequence of finite numbers")
        return config if isinstance(config, list) else list(config)

    if isinstance(config, Mapping):
        config = _parse_mapping(config)

    if isinstance(config, LinearBoundariesConfig):
        width = config.width if config.width is not None else 1
        start = config.start if config.start is not None else width
        return linear(start, config.count, width)

    if isinstance(config, ExponentialBoundariesConfig):
        return exponential(config.start, config.count, config.factor)

    if callable(config):
        return create(config())

    raise _invalid(config)
