"""Schedule lifecycle operations for callers (CLI, hooks, tools).

Creating or editing a definition does not take the execution lock; the
store's atomic writes are enough. Everything a caller could get wrong is
rejected here with a ScheduleValidationError before anything is written.
"""

from __future__ import annotations

import logging
from builtins import list as builtin_list
from collections.abc import Callable

from cadence.scheduling.cron import is_valid_timezone, parse_cron
from cadence.scheduling.next_run import compute_next_run
from cadence.scheduling.store import ScheduleStore
from cadence.scheduling.types import (
    MIN_INTERVAL_MS,
    UNIT_MULTIPLIERS,
    ActionType,
    CreatedBy,
    CronSchedule,
    IntervalSchedule,
    IntervalUnit,
    OnceSchedule,
    RandomSchedule,
    ScheduleRecord,
    ScheduleSpec,
    ScheduleStatus,
    ScheduleValidationError,
    generate_schedule_id,
    is_safe_id,
)

logger = logging.getLogger(__name__)


class ScheduleManager:
    """Create, pause, resume and delete schedules in a store."""

    def __init__(
        self, store: ScheduleStore, *, clock: Callable[[], int] | None = None
    ) -> None:
        self._store = store
        # Defaults to the store's clock so both agree on "now"
        self._clock = clock or store.now

    @property
    def store(self) -> ScheduleStore:
        return self._store

    def create(
        self,
        command: str,
        *,
        at: str | None = None,
        cron: str | None = None,
        every: float | None = None,
        min_interval: float | None = None,
        max_interval: float | None = None,
        unit: IntervalUnit | str | None = None,
        timezone: str | None = None,
        description: str | None = None,
        action_type: ActionType | str = ActionType.COMMAND,
        message: str | None = None,
        session_id: str | None = None,
        created_by: CreatedBy = CreatedBy.AGENT,
        schedule_id: str | None = None,
    ) -> ScheduleRecord:
        """Validate, stamp ``next_run_at`` and persist a new schedule.

        The kind is picked in order: ``every`` (interval), ``min_interval`` +
        ``max_interval`` (random), ``cron``, then ``at`` (once).

        Raises:
            ScheduleValidationError: If the definition is invalid or its next
                run cannot be computed.
        """
        command = (command or "").strip()
        if not command:
            raise ScheduleValidationError("command is required")

        schedule_id = schedule_id or generate_schedule_id()
        if not is_safe_id(schedule_id):
            raise ScheduleValidationError(f"Invalid schedule id: {schedule_id!r}")

        try:
            action = ActionType(action_type)
        except ValueError:
            raise ScheduleValidationError(
                f"Invalid action type: {action_type!r}"
            ) from None

        if timezone and not is_valid_timezone(timezone):
            raise ScheduleValidationError(f'invalid timezone "{timezone}"')

        spec = build_schedule_spec(
            at=at,
            cron=cron,
            every=every,
            min_interval=min_interval,
            max_interval=max_interval,
            unit=unit,
            timezone=timezone,
        )

        now = self._clock()
        record = ScheduleRecord(
            id=schedule_id,
            command=command,
            schedule=spec,
            created_at=now,
            updated_at=now,
            created_by=created_by,
            session_id=session_id or None,
            action_type=action,
            message=message if action == ActionType.MESSAGE else None,
            description=description,
            status=ScheduleStatus.ACTIVE,
        )
        record.next_run_at = compute_next_run(record, now)
        if record.next_run_at is None:
            raise ScheduleValidationError("unable to compute next run for schedule")

        self._store.save(record)
        logger.info(
            "schedule_created",
            extra={
                "schedule.id": record.id,
                "schedule.kind": record.kind,
                "schedule.next_run_at": record.next_run_at,
            },
        )
        return record

    def list(
        self, *, session_id: str | None = None, show_all: bool = False
    ) -> builtin_list[ScheduleRecord]:
        """Records ordered by next run; those without one sort last."""
        records = self._store.list(session_id=session_id, show_all=show_all)
        return sorted(
            records,
            key=lambda r: (r.next_run_at is None, r.next_run_at or 0, r.id),
        )

    def pause(self, schedule_id: str) -> ScheduleRecord | None:
        now = self._clock()
        return self._set_status(schedule_id, ScheduleStatus.PAUSED, now)

    def resume(self, schedule_id: str) -> ScheduleRecord | None:
        """Reactivate a schedule with a next run computed from now.

        Raises:
            ScheduleValidationError: If no next run can be computed.
        """
        current = self._store.get(schedule_id)
        if current is None:
            return None
        now = self._clock()
        next_run_at = compute_next_run(current, now)
        if next_run_at is None:
            raise ScheduleValidationError(
                f"unable to compute next run for schedule {schedule_id}"
            )

        def apply(record: ScheduleRecord) -> ScheduleRecord:
            record.status = ScheduleStatus.ACTIVE
            record.updated_at = now
            record.next_run_at = next_run_at
            return record

        return self._store.update(schedule_id, apply)

    def delete(self, schedule_id: str) -> bool:
        deleted = self._store.delete(schedule_id)
        if deleted:
            logger.info("schedule_deleted", extra={"schedule.id": schedule_id})
        return deleted

    def _set_status(
        self, schedule_id: str, status: ScheduleStatus, now: int
    ) -> ScheduleRecord | None:
        def apply(record: ScheduleRecord) -> ScheduleRecord:
            record.status = status
            record.updated_at = now
            return record

        return self._store.update(schedule_id, apply)


def build_schedule_spec(
    *,
    at: str | None = None,
    cron: str | None = None,
    every: float | None = None,
    min_interval: float | None = None,
    max_interval: float | None = None,
    unit: IntervalUnit | str | None = None,
    timezone: str | None = None,
) -> ScheduleSpec:
    """Build and validate a schedule definition from caller options."""
    has_random = min_interval is not None and max_interval is not None
    if not at and not cron and not has_random and every is None:
        raise ScheduleValidationError(
            "provide at (ISO time), cron, every (fixed interval), "
            "or min_interval+max_interval for random scheduling"
        )

    try:
        resolved_unit = IntervalUnit(unit or IntervalUnit.MINUTES)
    except ValueError:
        raise ScheduleValidationError(f"Invalid unit: {unit!r}") from None

    if every is not None:
        if every <= 0:
            raise ScheduleValidationError("every must be a positive number")
        if every * UNIT_MULTIPLIERS[resolved_unit] < MIN_INTERVAL_MS:
            raise ScheduleValidationError("minimum interval is 1 second")
        return IntervalSchedule(interval=every, unit=resolved_unit)

    if min_interval is not None and max_interval is not None:
        if min_interval <= 0 or max_interval <= 0:
            raise ScheduleValidationError(
                "min_interval and max_interval must be positive numbers"
            )
        if min_interval > max_interval:
            raise ScheduleValidationError(
                "min_interval cannot be greater than max_interval"
            )
        return RandomSchedule(
            min_interval=min_interval, max_interval=max_interval, unit=resolved_unit
        )

    if cron:
        if parse_cron(cron) is None:
            raise ScheduleValidationError(f"Invalid cron expression: {cron!r}")
        return CronSchedule(cron=cron.strip(), timezone=timezone or None)

    return OnceSchedule(at=at or "", timezone=timezone or None)


def describe_schedule(spec: ScheduleSpec) -> str:
    """One-line human summary of a schedule definition."""
    if isinstance(spec, IntervalSchedule):
        return f"every {spec.interval:g} {spec.unit}"
    if isinstance(spec, RandomSchedule):
        return f"random {spec.min_interval:g}-{spec.max_interval:g} {spec.unit}"
    if isinstance(spec, CronSchedule):
        suffix = f" ({spec.timezone})" if spec.timezone else ""
        return f"cron {spec.cron}{suffix}"
    suffix = f" ({spec.timezone})" if spec.timezone else ""
    return f"once at {spec.at}{suffix}"
