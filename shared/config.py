"""
Shared configuration management for the telemetry library.
"""

from typing import Dict

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class TelemetryConfig(BaseSettings):
    """Telemetry settings, read from ``TELEMETRY_*`` environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="TELEMETRY_",
        env_file=".env",
        case_sensitive=False,
        extra="allow"
    )

    # Environment
    env: str = Field(default="local")
    log_level: str = Field(default="info")

    # Meter
    name: str = Field(default="telemetry")
    prefix: str = Field(default="")
    labels: Dict[str, str] = Field(default_factory=dict)

    # Collection
    interval_seconds: float = Field(default=60.0, gt=0)
    batch_observer_timeout_seconds: float = Field(default=0.5, gt=0)

    # Scrape endpoint
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=9464)


def get_config(**overrides) -> TelemetryConfig:
    """Get telemetry configuration, with explicit overrides taking precedence."""
    return TelemetryConfig(**overrides)
