"""Schedule types.

Public types:
- ScheduleRecord: One persisted trigger (one file per record)
- ScheduleSpec: Union of OnceSchedule, CronSchedule, IntervalSchedule,
  RandomSchedule
- RunResult: Outcome of the most recent execution
- ScheduleHandler: Async handler invoked for due records

Records serialize to the camelCase JSON shape shared with other tools that
read the schedules directory, so field names on disk differ from the
attribute names here.
"""

import logging
import math
import re
import time
import uuid
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

logger = logging.getLogger(__name__)

SAFE_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")


class ScheduleError(Exception):
    """Base error for schedule operations."""


class InvalidScheduleIdError(ScheduleError, ValueError):
    """Schedule id is unsafe to use as a path component."""

    def __init__(self, schedule_id: str) -> None:
        super().__init__(f"Invalid schedule id: {schedule_id!r}")
        self.schedule_id = schedule_id


class ScheduleValidationError(ScheduleError, ValueError):
    """Schedule definition was rejected before being persisted."""


class CreatedBy(StrEnum):
    USER = "user"
    AGENT = "agent"
    SYSTEM = "system"


class ActionType(StrEnum):
    COMMAND = "command"
    MESSAGE = "message"


class ScheduleStatus(StrEnum):
    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"
    ERROR = "error"


class IntervalUnit(StrEnum):
    SECONDS = "seconds"
    MINUTES = "minutes"
    HOURS = "hours"


UNIT_MULTIPLIERS: dict[IntervalUnit, int] = {
    IntervalUnit.SECONDS: 1000,
    IntervalUnit.MINUTES: 60_000,
    IntervalUnit.HOURS: 3_600_000,
}

# Shortest interval a recurring schedule may fire at
MIN_INTERVAL_MS = 1000


def now_ms() -> int:
    """Current wall-clock time as epoch milliseconds."""
    return int(time.time() * 1000)


def is_safe_id(schedule_id: str) -> bool:
    return bool(schedule_id) and SAFE_ID_PATTERN.fullmatch(schedule_id) is not None


def generate_schedule_id() -> str:
    return uuid.uuid4().hex[:8]


@dataclass
class OnceSchedule:
    """Fires once at an absolute or timezone-local instant."""

    at: str
    timezone: str | None = None

    kind = "once"

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"kind": self.kind, "at": self.at}
        if self.timezone:
            data["timezone"] = self.timezone
        return data


@dataclass
class CronSchedule:
    """Fires on every minute matching a 5-field cron expression."""

    cron: str
    timezone: str | None = None

    kind = "cron"

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"kind": self.kind, "cron": self.cron}
        if self.timezone:
            data["timezone"] = self.timezone
        return data


@dataclass
class IntervalSchedule:
    """Fires every fixed duration."""

    interval: float
    unit: IntervalUnit = IntervalUnit.MINUTES

    kind = "interval"

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, "interval": self.interval, "unit": str(self.unit)}


@dataclass
class RandomSchedule:
    """Fires after a random duration drawn from [min_interval, max_interval]."""

    min_interval: float
    max_interval: float
    unit: IntervalUnit = IntervalUnit.MINUTES

    kind = "random"

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "minInterval": self.min_interval,
            "maxInterval": self.max_interval,
            "unit": str(self.unit),
        }


ScheduleSpec = OnceSchedule | CronSchedule | IntervalSchedule | RandomSchedule


def schedule_from_dict(data: Any) -> ScheduleSpec | None:
    """Parse the ``schedule`` payload of a record.

    Returns None for unknown kinds or missing required fields.
    """
    if not isinstance(data, dict):
        return None
    kind = data.get("kind")
    timezone = data.get("timezone")
    if not isinstance(timezone, str) or not timezone:
        timezone = None

    try:
        if kind == "once":
            at = data.get("at")
            if not isinstance(at, str) or not at:
                return None
            return OnceSchedule(at=at, timezone=timezone)
        if kind == "cron":
            cron = data.get("cron")
            if not isinstance(cron, str) or not cron:
                return None
            return CronSchedule(cron=cron, timezone=timezone)
        if kind == "interval":
            interval = data.get("interval")
            if not _is_number(interval):
                return None
            return IntervalSchedule(
                interval=interval,
                unit=IntervalUnit(data.get("unit") or IntervalUnit.MINUTES),
            )
        if kind == "random":
            min_interval = data.get("minInterval")
            max_interval = data.get("maxInterval")
            if not _is_number(min_interval) or not _is_number(max_interval):
                return None
            return RandomSchedule(
                min_interval=min_interval,
                max_interval=max_interval,
                unit=IntervalUnit(data.get("unit") or IntervalUnit.MINUTES),
            )
    except ValueError:
        # Unknown unit
        return None
    return None


def _is_number(value: Any) -> bool:
    return isinstance(value, int | float) and not isinstance(value, bool)


@dataclass
class RunResult:
    """Outcome of the most recent execution of a schedule."""

    ok: bool
    summary: str | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"ok": self.ok}
        if self.summary is not None:
            data["summary"] = self.summary
        if self.error is not None:
            data["error"] = self.error
        return data

    @classmethod
    def from_dict(cls, data: Any) -> "RunResult | None":
        if not isinstance(data, dict) or not isinstance(data.get("ok"), bool):
            return None
        return cls(ok=data["ok"], summary=data.get("summary"), error=data.get("error"))


@dataclass
class ScheduleRecord:
    """A persisted trigger."""

    id: str
    command: str
    schedule: ScheduleSpec
    created_at: int = field(default_factory=now_ms)
    updated_at: int = field(default_factory=now_ms)
    created_by: CreatedBy = CreatedBy.USER
    # Absent means a global schedule not tied to a session
    session_id: str | None = None
    action_type: ActionType = ActionType.COMMAND
    message: str | None = None
    description: str | None = None
    status: ScheduleStatus = ScheduleStatus.ACTIVE
    # Absent means the next run could not be computed; never due
    next_run_at: int | None = None
    last_run_at: int | None = None
    last_result: RunResult | None = None
    _extra: dict[str, Any] = field(default_factory=dict, repr=False)

    @property
    def kind(self) -> str:
        return self.schedule.kind

    @property
    def is_recurring(self) -> bool:
        return not isinstance(self.schedule, OnceSchedule)

    @property
    def payload(self) -> str:
        """What the executor should run for this record."""
        if self.action_type == ActionType.MESSAGE:
            return self.message or self.command
        return self.command

    def is_due(self, now: int) -> bool:
        return (
            self.status == ScheduleStatus.ACTIVE
            and self.next_run_at is not None
            and self.next_run_at <= now
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the on-disk JSON shape."""
        data: dict[str, Any] = dict(self._extra)
        data.update(
            {
                "id": self.id,
                "createdAt": self.created_at,
                "updatedAt": self.updated_at,
                "createdBy": str(self.created_by),
                "actionType": str(self.action_type),
                "command": self.command,
                "status": str(self.status),
                "schedule": self.schedule.to_dict(),
            }
        )
        if self.session_id:
            data["sessionId"] = self.session_id
        if self.message is not None:
            data["message"] = self.message
        if self.description is not None:
            data["description"] = self.description
        if self.next_run_at is not None:
            data["nextRunAt"] = self.next_run_at
        if self.last_run_at is not None:
            data["lastRunAt"] = self.last_run_at
        if self.last_result is not None:
            data["lastResult"] = self.last_result.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: Any) -> "ScheduleRecord | None":
        """Parse a record payload.

        Returns None rather than raising when the payload is not a usable
        record, so callers scanning many files can skip it.
        """
        if not isinstance(data, dict):
            return None
        schedule_id = data.get("id")
        if not isinstance(schedule_id, str) or not schedule_id:
            return None

        schedule = schedule_from_dict(data.get("schedule"))
        if schedule is None:
            logger.debug(
                "schedule_payload_unrecognized", extra={"schedule.id": schedule_id}
            )
            return None

        try:
            created_by = CreatedBy(data.get("createdBy") or CreatedBy.USER)
            action_type = ActionType(data.get("actionType") or ActionType.COMMAND)
            status = ScheduleStatus(data.get("status") or ScheduleStatus.ACTIVE)
        except ValueError:
            return None

        known_fields = {
            "id",
            "createdAt",
            "updatedAt",
            "createdBy",
            "sessionId",
            "actionType",
            "command",
            "message",
            "description",
            "status",
            "schedule",
            "nextRunAt",
            "lastRunAt",
            "lastResult",
        }
        extra = {k: v for k, v in data.items() if k not in known_fields}

        return cls(
            id=schedule_id,
            command=data.get("command") or "",
            schedule=schedule,
            created_at=_as_ms(data.get("createdAt")) or 0,
            updated_at=_as_ms(data.get("updatedAt")) or 0,
            created_by=created_by,
            session_id=data.get("sessionId") or None,
            action_type=action_type,
            message=data.get("message"),
            description=data.get("description"),
            status=status,
            next_run_at=_as_ms(data.get("nextRunAt")),
            last_run_at=_as_ms(data.get("lastRunAt")),
            last_result=RunResult.from_dict(data.get("lastResult")),
            _extra=extra,
        )


def _as_ms(value: Any) -> int | None:
    """Coerce a JSON timestamp to int ms, dropping non-finite values."""
    if not _is_number(value) or not math.isfinite(value):
        return None
    return int(value)


# Handler receives the full record and may report how the run went
ScheduleHandler = Callable[[ScheduleRecord], Awaitable[RunResult | None]]
