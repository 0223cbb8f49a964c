"""Next-run computation for every schedule kind."""

from __future__ import annotations

import logging
import math
import random
import re
from datetime import datetime
from zoneinfo import ZoneInfo

from cadence.scheduling.cron import is_valid_timezone, next_cron_run
from cadence.scheduling.types import (
    MIN_INTERVAL_MS,
    UNIT_MULTIPLIERS,
    CronSchedule,
    IntervalSchedule,
    OnceSchedule,
    RandomSchedule,
    ScheduleRecord,
    ScheduleSpec,
)

logger = logging.getLogger(__name__)

_OFFSET_PATTERN = re.compile(r"(?:[zZ]|[+-]\d{2}:?\d{2})$")
_LOCAL_DATETIME_PATTERN = re.compile(
    r"^(\d{4})-(\d{2})-(\d{2})(?:[T ](\d{2}):(\d{2})(?::(\d{2}))?)?$"
)


def compute_next_run(
    record: ScheduleRecord | ScheduleSpec,
    from_ms: int,
    *,
    rng: random.Random | None = None,
) -> int | None:
    """Compute the next fire time (epoch ms) strictly after ``from_ms``.

    Args:
        record: The record, or a bare schedule definition.
        from_ms: Reference time in epoch milliseconds.
        rng: Random source for random-interval schedules.

    Returns:
        The next fire time, or None when it cannot be computed (bad input,
        a one-shot time that is not in the future, no cron match).
    """
    spec = record.schedule if isinstance(record, ScheduleRecord) else record

    if isinstance(spec, OnceSchedule):
        at = parse_scheduled_time(spec.at, _valid_timezone(spec.timezone))
        if at is None or at <= from_ms:
            return None
        return at

    if isinstance(spec, CronSchedule):
        return next_cron_run(spec.cron, from_ms, _valid_timezone(spec.timezone))

    if isinstance(spec, IntervalSchedule):
        interval_ms = int(spec.interval * UNIT_MULTIPLIERS[spec.unit])
        # Records written straight to disk skip the creation-time check
        if interval_ms < MIN_INTERVAL_MS:
            return None
        return from_ms + interval_ms

    if isinstance(spec, RandomSchedule):
        return _random_next_run(spec, from_ms, rng or random.Random())

    raise TypeError(f"Unsupported schedule type: {type(spec).__name__}")


def _valid_timezone(name: str | None) -> str | None:
    # Invalid names fall back to host local time instead of failing the read
    return name if name and is_valid_timezone(name) else None


def _random_next_run(
    spec: RandomSchedule, from_ms: int, rng: random.Random
) -> int | None:
    low, high = spec.min_interval, spec.max_interval
    if low <= 0 or high <= 0 or low > high:
        return None
    multiplier = UNIT_MULTIPLIERS[spec.unit]
    if float(low).is_integer() and float(high).is_integer():
        return from_ms + rng.randint(int(low), int(high)) * multiplier
    # Fractional bounds fall back to millisecond granularity
    low_ms, high_ms = math.ceil(low * multiplier), math.floor(high * multiplier)
    if low_ms > high_ms:
        return None
    return from_ms + rng.randint(low_ms, high_ms)


def parse_scheduled_time(value: str, timezone: str | None = None) -> int | None:
    """Parse a one-shot ``at`` value into epoch milliseconds.

    Values with an explicit offset are taken literally. Otherwise a wall-clock
    string is read in ``timezone`` when given, or in host local time.
    """
    if not value:
        return None
    text = value.strip()

    if timezone is None or _OFFSET_PATTERN.search(text):
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            logger.debug("scheduled_time_unparseable", extra={"schedule.at": value})
            return None
        return int(parsed.timestamp() * 1000)

    match = _LOCAL_DATETIME_PATTERN.match(text)
    if not match:
        return None
    year, month, day = (int(match.group(i)) for i in range(1, 4))
    hour, minute, second = (int(match.group(i) or 0) for i in range(4, 7))
    try:
        local = datetime(
            year, month, day, hour, minute, second, tzinfo=ZoneInfo(timezone)
        )
    except ValueError:
        return None
    return int(local.timestamp() * 1000)
