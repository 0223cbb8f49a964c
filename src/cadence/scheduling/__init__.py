"""Scheduling subsystem: when triggers fire and who may run them.

Public API:
- ScheduleStore: Per-record JSON persistence plus lock operations
- ScheduleLock: TTL-bounded advisory lock files
- ScheduleManager: Validated create/pause/resume/delete for callers
- ScheduleWatcher: Polling loop that runs handlers for due records
- compute_next_run: Next fire time for any schedule kind
- parse_cron / next_cron_run: 5-field cron evaluation

Types:
- ScheduleRecord: One persisted trigger
- OnceSchedule, CronSchedule, IntervalSchedule, RandomSchedule
- RunResult: Outcome of the last execution
- ScheduleHandler: Async callback signature for due records
"""

from cadence.scheduling.cron import (
    CronExpression,
    cron_matches,
    is_valid_timezone,
    next_cron_run,
    parse_cron,
)
from cadence.scheduling.lock import DEFAULT_LOCK_TTL_MS, LockInfo, ScheduleLock
from cadence.scheduling.manager import (
    ScheduleManager,
    build_schedule_spec,
    describe_schedule,
)
from cadence.scheduling.next_run import compute_next_run, parse_scheduled_time
from cadence.scheduling.store import ScheduleStore
from cadence.scheduling.types import (
    ActionType,
    CreatedBy,
    CronSchedule,
    IntervalSchedule,
    IntervalUnit,
    InvalidScheduleIdError,
    OnceSchedule,
    RandomSchedule,
    RunResult,
    ScheduleError,
    ScheduleHandler,
    ScheduleRecord,
    ScheduleSpec,
    ScheduleStatus,
    ScheduleValidationError,
)
from cadence.scheduling.watcher import ScheduleWatcher

__all__ = [
    "DEFAULT_LOCK_TTL_MS",
    "ActionType",
    "CreatedBy",
    "CronExpression",
    "CronSchedule",
    "IntervalSchedule",
    "IntervalUnit",
    "InvalidScheduleIdError",
    "LockInfo",
    "OnceSchedule",
    "RandomSchedule",
    "RunResult",
    "ScheduleError",
    "ScheduleHandler",
    "ScheduleLock",
    "ScheduleManager",
    "ScheduleRecord",
    "ScheduleSpec",
    "ScheduleStatus",
    "ScheduleStore",
    "ScheduleValidationError",
    "ScheduleWatcher",
    "build_schedule_spec",
    "compute_next_run",
    "cron_matches",
    "describe_schedule",
    "is_valid_timezone",
    "next_cron_run",
    "parse_cron",
    "parse_scheduled_time",
]
