"""Pydantic models for portsync.

Provides validated configuration models for type safety and runtime validation.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field, IPvAnyAddress, field_validator, model_validator

from portsync.utils.backoff import MAX_TIMEOUT, MIN_TIMEOUT


class LogLevel(str, Enum):
    """Logging levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class GatewayConfig(BaseModel):
    """NAT-PMP gateway configuration."""

    address: IPvAnyAddress | None = Field(
        default=None,
        description="Gateway IP address (NATPMP_GATEWAY)",
    )
    lease_lifetime: int = Field(
        default=360,
        ge=0,
        le=2**32 - 1,
        description="Requested port mapping lifetime in seconds",
    )


class SinkConfig(BaseModel):
    """Deluge Web UI connection configuration."""

    url: str = Field(
        default="http://localhost:8112",
        description="Base URL of the Deluge Web UI",
    )
    password: str = Field(
        default="deluge",
        description="Deluge Web UI password (empty to skip login)",
    )
    noop_log_interval: float = Field(
        default=1800.0,
        ge=0.0,
        description="Minimum seconds between INFO logs for unchanged ports",
    )

    @field_validator("url")
    @classmethod
    def _normalize_url(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            msg = "url must start with http:// or https://"
            raise ValueError(msg)
        return v.rstrip("/")


class ScheduleConfig(BaseModel):
    """Renewal loop timing configuration."""

    min_timeout: float = Field(
        default=MIN_TIMEOUT,
        gt=0.0,
        description="Shortest per-iteration deadline in seconds",
    )
    max_timeout: float = Field(
        default=MAX_TIMEOUT,
        gt=0.0,
        description="Longest per-iteration deadline in seconds",
    )

    @model_validator(mode="after")
    def _check_bounds(self) -> ScheduleConfig:
        if self.max_timeout < self.min_timeout:
            msg = "max_timeout must not be smaller than min_timeout"
            raise ValueError(msg)
        return self


class ObservabilityConfig(BaseModel):
    """Observability configuration."""

    log_level: LogLevel = Field(default=LogLevel.INFO, description="Log level")
    log_file: str | None = Field(None, description="Log file path")
    structured_logging: bool = Field(
        default=False,
        description="Emit JSON log lines on the console",
    )
    log_correlation_id: bool = Field(
        default=True,
        description="Include correlation IDs",
    )


class Config(BaseModel):
    """Main configuration model."""

    gateway: GatewayConfig = Field(
        default_factory=GatewayConfig,
        description="Gateway configuration",
    )
    sink: SinkConfig = Field(
        default_factory=SinkConfig,
        description="Deluge configuration",
    )
    schedule: ScheduleConfig = Field(
        default_factory=ScheduleConfig,
        description="Schedule configuration",
    )
    observability: ObservabilityConfig = Field(
        default_factory=ObservabilityConfig,
        description="Observability configuration",
    )
