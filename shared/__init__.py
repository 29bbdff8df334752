"""
Shared utilities for the telemetry library.

- config: Settings via pydantic-settings
- logging: Structured logging with trace correlation
- errors: Canonical error types and responses

Do not import from the telemetry package into shared/.
"""
