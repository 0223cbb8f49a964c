"""File-backed schedule store.

Layout under the store root::

    schedules/<id>.json             one file per ScheduleRecord
    schedules/locks/<id>.lock.json  present only while a poller holds it

Single-record writes raise on failure; batch reads skip anything they
cannot parse so one corrupt file never hides the others.
"""

from __future__ import annotations

import logging
from builtins import list as builtin_list
from collections.abc import Callable
from pathlib import Path

from cadence.scheduling.lock import DEFAULT_LOCK_TTL_MS, LockInfo, ScheduleLock
from cadence.scheduling.next_run import compute_next_run
from cadence.scheduling.persistence import read_json, write_json_atomic
from cadence.scheduling.types import (
    InvalidScheduleIdError,
    ScheduleError,
    ScheduleRecord,
    is_safe_id,
    now_ms,
)

logger = logging.getLogger(__name__)


class ScheduleStore:
    """Per-record JSON storage for schedules rooted at a project directory."""

    def __init__(self, root: Path, *, clock: Callable[[], int] = now_ms) -> None:
        self._root = root
        self._schedules_dir = root / "schedules"
        self._clock = clock
        self._lock = ScheduleLock(self._schedules_dir / "locks", clock=clock)

    @property
    def root(self) -> Path:
        return self._root

    @property
    def schedules_dir(self) -> Path:
        return self._schedules_dir

    @property
    def locks(self) -> ScheduleLock:
        return self._lock

    def now(self) -> int:
        return self._clock()

    def schedule_path(self, schedule_id: str) -> Path:
        if not is_safe_id(schedule_id):
            raise InvalidScheduleIdError(schedule_id)
        return self._schedules_dir / f"{schedule_id}.json"

    # ------------------------------------------------------------------
    # Read operations
    # ------------------------------------------------------------------

    def get(self, schedule_id: str) -> ScheduleRecord | None:
        """Load one record; anything unreadable is reported as not found."""
        if not is_safe_id(schedule_id):
            return None
        raw = read_json(self.schedule_path(schedule_id))
        if raw is None:
            return None
        return ScheduleRecord.from_dict(raw)

    def list(
        self,
        *,
        session_id: str | None = None,
        show_all: bool = False,
    ) -> builtin_list[ScheduleRecord]:
        """List records, optionally scoped to a session plus global ones."""
        if not self._schedules_dir.is_dir():
            return []

        records: builtin_list[ScheduleRecord] = []
        for path in sorted(self._schedules_dir.glob("*.json")):
            raw = read_json(path)
            record = ScheduleRecord.from_dict(raw) if raw is not None else None
            if record is None:
                logger.warning("schedule_file_skipped", extra={"file.path": str(path)})
                continue
            records.append(record)

        if session_id and not show_all:
            records = [
                r for r in records if not r.session_id or r.session_id == session_id
            ]
        return records

    def get_due(self, now: int | None = None) -> builtin_list[ScheduleRecord]:
        """Active records whose next run is at or before ``now``."""
        if now is None:
            now = self._clock()
        return [record for record in self.list() if record.is_due(now)]

    # ------------------------------------------------------------------
    # Write operations
    # ------------------------------------------------------------------

    def save(self, record: ScheduleRecord) -> None:
        """Write the full record, replacing any previous version atomically.

        Raises:
            InvalidScheduleIdError: If the id is unsafe; nothing is written.
            OSError: If the write fails.
        """
        path = self.schedule_path(record.id)
        write_json_atomic(path, record.to_dict())
        logger.debug(
            "schedule_saved",
            extra={"schedule.id": record.id, "schedule.status": str(record.status)},
        )

    def update(
        self,
        schedule_id: str,
        updater: Callable[[ScheduleRecord], ScheduleRecord],
    ) -> ScheduleRecord | None:
        """Read-modify-write one record.

        Returns:
            The saved record, or None if it does not exist (it is never
            created here).

        Raises:
            ScheduleError: If the updater changes the record id.
            OSError: If the write fails.
        """
        current = self.get(schedule_id)
        if current is None:
            return None
        updated = updater(current)
        if updated.id != schedule_id:
            raise ScheduleError(
                f"Updater changed schedule id from {schedule_id!r} to {updated.id!r}"
            )
        self.save(updated)
        return updated

    def delete(self, schedule_id: str) -> bool:
        """Remove a record. Returns False if it was already absent."""
        if not is_safe_id(schedule_id):
            return False
        try:
            self.schedule_path(schedule_id).unlink()
        except FileNotFoundError:
            return False
        logger.debug("schedule_deleted", extra={"schedule.id": schedule_id})
        return True

    # ------------------------------------------------------------------
    # Scheduling and locking
    # ------------------------------------------------------------------

    def compute_next_run(self, record: ScheduleRecord, from_ms: int) -> int | None:
        return compute_next_run(record, from_ms)

    def acquire_lock(
        self, schedule_id: str, owner_id: str, ttl_ms: int = DEFAULT_LOCK_TTL_MS
    ) -> bool:
        return self._lock.acquire(schedule_id, owner_id, ttl_ms)

    def release_lock(self, schedule_id: str, owner_id: str) -> bool:
        return self._lock.release(schedule_id, owner_id)

    def refresh_lock(self, schedule_id: str, owner_id: str) -> bool:
        return self._lock.refresh(schedule_id, owner_id)

    def read_lock(self, schedule_id: str) -> LockInfo | None:
        return self._lock.read(schedule_id)
