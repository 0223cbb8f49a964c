"""Cron expression evaluation.

Supports the classic 5-field format::

    minute  hour  day-of-month  month  weekday
    0-59    0-23  1-31          1-12   0-6 (0 = Sunday)

Each field accepts ``*``, comma lists, ``a-b`` ranges and ``base/step`` where
base is ``*``, a number or a range. Calendar components are read in the
requested IANA timezone, or in the host's local time when none is given.
All five fields must match; day-of-month and weekday are not OR'ed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, tzinfo
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

logger = logging.getLogger(__name__)

MINUTE_MS = 60_000

# One year of minutes (leap year included) bounds the forward scan so that
# unsatisfiable expressions such as "31 2 30 2 *" terminate.
MAX_SCAN_MINUTES = 366 * 24 * 60

# (low, high) inclusive bounds for minute, hour, day, month, weekday
FIELD_RANGES: tuple[tuple[int, int], ...] = (
    (0, 59),
    (0, 23),
    (1, 31),
    (1, 12),
    (0, 6),
)


@dataclass(frozen=True)
class CronExpression:
    """A parsed cron expression: one set of allowed values per field."""

    source: str
    minutes: frozenset[int]
    hours: frozenset[int]
    days: frozenset[int]
    months: frozenset[int]
    weekdays: frozenset[int]

    def matches_components(
        self, minute: int, hour: int, day: int, month: int, weekday: int
    ) -> bool:
        return (
            minute in self.minutes
            and hour in self.hours
            and day in self.days
            and month in self.months
            and weekday in self.weekdays
        )

    def matches(self, when: datetime) -> bool:
        """Check a calendar moment, using its own wall-clock fields."""
        return self.matches_components(*_components(when))


def parse_cron(expression: str) -> CronExpression | None:
    """Parse a 5-field cron expression.

    Returns None when the expression does not have exactly five fields or
    any field ends up with no valid values.
    """
    if not isinstance(expression, str):
        return None
    fields = expression.split()
    if len(fields) != 5:
        return None

    parsed: list[frozenset[int]] = []
    for text, (low, high) in zip(fields, FIELD_RANGES, strict=True):
        values = _parse_field(text, low, high)
        if not values:
            return None
        parsed.append(values)

    minutes, hours, days, months, weekdays = parsed
    return CronExpression(
        source=expression.strip(),
        minutes=minutes,
        hours=hours,
        days=days,
        months=months,
        weekdays=weekdays,
    )


def _parse_field(text: str, low: int, high: int) -> frozenset[int]:
    values: set[int] = set()
    for part in text.split(","):
        values.update(_parse_part(part, low, high))
    return frozenset(values)


def _parse_part(part: str, low: int, high: int) -> list[int]:
    """Expand one comma-separated item; malformed items expand to nothing."""
    base, sep, step_text = part.partition("/")
    step = 1
    if sep:
        if not step_text.isdecimal() or int(step_text) <= 0:
            return []
        step = int(step_text)

    if base == "*":
        start, end = low, high
    elif "-" in base:
        start_text, _, end_text = base.partition("-")
        if not start_text.isdecimal() or not end_text.isdecimal():
            return []
        start, end = int(start_text), int(end_text)
    elif base.isdecimal():
        start = int(base)
        # "5/15" runs from 5 to the end of the field
        end = high if sep else start
    else:
        return []

    # Out-of-range values are dropped rather than rejected
    return [v for v in range(start, min(end, high) + 1, step) if v >= low]


def resolve_timezone(name: str | None) -> tzinfo | None:
    """Resolve an IANA name, or None for host local time."""
    if not name:
        return None
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError, TypeError):
        logger.warning("invalid_timezone", extra={"schedule.timezone": name})
        return None


def is_valid_timezone(name: str) -> bool:
    if not name or not isinstance(name, str):
        return False
    try:
        ZoneInfo(name)
        return True
    except (ZoneInfoNotFoundError, ValueError, TypeError):
        return False


def _components(when: datetime) -> tuple[int, int, int, int, int]:
    # datetime.weekday() is Monday=0; cron numbers Sunday as 0
    return (when.minute, when.hour, when.day, when.month, (when.weekday() + 1) % 7)


def _local_datetime(epoch_ms: int, tz: tzinfo | None) -> datetime:
    if tz is None:
        return datetime.fromtimestamp(epoch_ms / 1000)
    return datetime.fromtimestamp(epoch_ms / 1000, tz)


def cron_matches(
    expression: str | CronExpression, epoch_ms: int, timezone: str | None = None
) -> bool:
    """Check whether an instant matches, reading components in ``timezone``."""
    cron = parse_cron(expression) if isinstance(expression, str) else expression
    if cron is None:
        return False
    local = _local_datetime(epoch_ms, resolve_timezone(timezone))
    return cron.matches(local)


def next_cron_run(
    expression: str | CronExpression,
    from_ms: int,
    timezone: str | None = None,
) -> int | None:
    """Return the first matching minute boundary strictly after ``from_ms``.

    Scans forward minute by minute from the next whole minute. When the
    local hour, day, month or weekday cannot match, the rest of that local
    hour is skipped in one step. Returns None if nothing matches within
    MAX_SCAN_MINUTES.
    """
    cron = parse_cron(expression) if isinstance(expression, str) else expression
    if cron is None:
        return None
    tz = resolve_timezone(timezone)

    candidate = (from_ms // MINUTE_MS + 1) * MINUTE_MS
    scanned = 0
    while scanned <= MAX_SCAN_MINUTES:
        minute, hour, day, month, weekday = _components(
            _local_datetime(candidate, tz)
        )
        if (
            hour in cron.hours
            and day in cron.days
            and month in cron.months
            and weekday in cron.weekdays
        ):
            if minute in cron.minutes:
                return candidate
            step = 1
        else:
            step = 60 - minute
        candidate += step * MINUTE_MS
        scanned += step

    logger.debug(
        "cron_next_run_not_found",
        extra={"schedule.cron": cron.source, "schedule.timezone": timezone},
    )
    return None
