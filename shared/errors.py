"""
Shared error handling for the telemetry library.

All errors raised here are configuration or programmer errors. They surface
synchronously while a metric is being created and are never retried.
"""

from typing import Dict, Any, Optional
from pydantic import BaseModel
from opentelemetry import trace


class ErrorResponse(BaseModel):
    """Standard error response format."""

    trace_id: Optional[str] = None
    code: str
    message: str
    details: Dict[str, Any] = {}


class TelemetryException(Exception):
    """Base exception for the telemetry library."""

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert to error response."""
        trace_id = None
        current_span = trace.get_current_span()
        if current_span and current_span.is_recording():
            span_context = current_span.get_span_context()
            if span_context.trace_id != 0:
                trace_id = f"{span_context.trace_id:032x}"

        return ErrorResponse(
            trace_id=trace_id,
            code=self.code,
            message=self.message,
            details=self.details
        )


class InvalidArgumentError(TelemetryException):
    """Malformed arguments, e.g. boundary generation parameters or metric names."""

    def __init__(self, message: str = "Invalid argument", details: Optional[Dict[str, Any]] = None):
        super().__init__("INVALID_ARGUMENT", message, details)


class InvalidConfigurationError(TelemetryException):
    """Unrecognized boundaries configuration."""

    def __init__(self, message: str = "Invalid configuration", details: Optional[Dict[str, Any]] = None):
        super().__init__("INVALID_CONFIGURATION", message, details)


class PreconditionViolationError(TelemetryException):
    """An object was constructed without the state it requires."""

    def __init__(self, message: str = "Precondition violated", details: Optional[Dict[str, Any]] = None):
        super().__init__("PRECONDITION_VIOLATION", message, details)


class MetricAlreadyRegisteredError(TelemetryException):
    """A metric with the same name exists already."""

    def __init__(self, name: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            "METRIC_ALREADY_REGISTERED",
            f"A metric with the name {name!r} has already been registered.",
            details or {"name": name}
        )
