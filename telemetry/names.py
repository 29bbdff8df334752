"""
Metric name helpers.
"""

import re
from typing import Union

from shared.errors import InvalidArgumentError

# Common subset of the Prometheus ([a-zA-Z_:][a-zA-Z0-9_:]*) and
# OpenTelemetry ([a-zA-Z][a-zA-Z0-9_.-]*) name grammars
NAME_PATTERN = re.compile(r"^[a-zA-Z][a-zA-Z0-9_]*$")


def make_name(*parts: Union[str, None, bool]) -> str:
    """Join the non-empty parts with underscores."""
    return "_".join(part for part in parts if part)


def validate_name(name: str) -> str:
    if not isinstance(name, str):
        raise InvalidArgumentError("Name must be a string", {"name": repr(name)})
    if not NAME_PATTERN.match(name):
        raise InvalidArgumentError(f"Invalid name {name!r}", {"name": name})
    return name
