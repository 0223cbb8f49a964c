"""Configuration module."""

from cadence.config.loader import get_default_config, load_config
from cadence.config.models import (
    CadenceConfig,
    ConfigError,
    LoggingConfig,
    SchedulerConfig,
)
from cadence.config.paths import (
    get_cadence_home,
    get_config_path,
    get_logs_path,
    get_system_timezone,
)

__all__ = [
    "CadenceConfig",
    "ConfigError",
    "LoggingConfig",
    "SchedulerConfig",
    "get_cadence_home",
    "get_config_path",
    "get_default_config",
    "get_logs_path",
    "get_system_timezone",
    "load_config",
]
