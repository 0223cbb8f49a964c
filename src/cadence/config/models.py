"""Configuration models using Pydantic."""

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, field_validator

from cadence.config.paths import get_cadence_home
from cadence.scheduling.cron import is_valid_timezone
from cadence.scheduling.lock import DEFAULT_LOCK_TTL_MS


class ConfigError(Exception):
    """Configuration error."""

    pass


class SchedulerConfig(BaseModel):
    """Configuration for the poll loop.

    Every process that runs a watcher should use the same lock TTL; a
    process whose actions outlive the TTL refreshes its lease while running.
    """

    enabled: bool = True
    poll_interval: float = Field(default=30.0, gt=0)
    lock_ttl_ms: int = Field(default=DEFAULT_LOCK_TTL_MS, gt=0)
    # Default IANA timezone for new cron/once schedules that omit one
    timezone: str | None = None

    @field_validator("timezone")
    @classmethod
    def _check_timezone(cls, value: str | None) -> str | None:
        if value is not None and not is_valid_timezone(value):
            raise ValueError(f"unknown timezone: {value}")
        return value


class LoggingConfig(BaseModel):
    """Configuration for logging."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_to_file: bool = False


class CadenceConfig(BaseModel):
    """Root configuration model."""

    # Directory holding schedules/ (and schedules/locks/)
    root: Path = Field(default_factory=get_cadence_home)
    scheduler: SchedulerConfig = Field(default_factory=SchedulerConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @field_validator("root")
    @classmethod
    def _expand_root(cls, value: Path) -> Path:
        return value.expanduser()
