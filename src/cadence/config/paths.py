"""Centralized path management for Cadence.

Config, logs and the default schedule root all live under one base
directory, overridable with the CADENCE_HOME environment variable:

    ~/.cadence/
        config.toml
        logs/YYYY-MM-DD.jsonl
        schedules/<id>.json
        schedules/locks/<id>.lock.json
"""

import os
from functools import lru_cache
from pathlib import Path

ENV_VAR = "CADENCE_HOME"


@lru_cache(maxsize=1)
def get_cadence_home() -> Path:
    """Base directory for Cadence state.

    Resolution order:
    1. CADENCE_HOME environment variable (if set)
    2. ~/.cadence
    """
    if env_home := os.environ.get(ENV_VAR):
        return Path(env_home).expanduser().resolve()
    return Path.home() / ".cadence"


def get_config_path() -> Path:
    return get_cadence_home() / "config.toml"


def get_logs_path() -> Path:
    return get_cadence_home() / "logs"


def get_system_timezone() -> str:
    """IANA name of the host timezone, used when a schedule names none.

    Checks TZ, then /etc/timezone, then the /etc/localtime symlink, and
    falls back to UTC.
    """
    if tz := os.environ.get("TZ"):
        return tz.lstrip(":")

    etc_timezone = Path("/etc/timezone")
    if etc_timezone.is_file():
        try:
            if name := etc_timezone.read_text().strip():
                return name
        except OSError:
            pass

    localtime = Path("/etc/localtime")
    if localtime.is_symlink():
        _, sep, name = str(localtime.resolve()).partition("zoneinfo/")
        if sep and name:
            return name

    return "UTC"
