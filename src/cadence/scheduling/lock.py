"""TTL-bounded advisory locks for schedule execution.

One lock file per schedule id (``<locks_dir>/<id>.lock.json``) holding
``{ownerId, createdAt, updatedAt, ttlMs}``. A lock whose ``updatedAt`` is
older than its own TTL is stale and may be taken over by another owner.
Only processes that check the lock are excluded; nothing is OS-enforced.
"""

from __future__ import annotations

import logging
import os
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from cadence.scheduling.persistence import (
    read_json,
    write_json_atomic,
    write_json_exclusive,
)
from cadence.scheduling.types import InvalidScheduleIdError, is_safe_id, now_ms

logger = logging.getLogger(__name__)

DEFAULT_LOCK_TTL_MS = 10 * 60 * 1000

# Stale-lock takeovers per acquire; two callers racing on the same stale
# lock must not loop forever.
MAX_LOCK_RETRIES = 2


@dataclass
class LockInfo:
    """Contents of a lock file."""

    owner_id: str
    created_at: int
    updated_at: int
    ttl_ms: int

    def is_stale(self, now: int) -> bool:
        return now - self.updated_at > self.ttl_ms

    def to_dict(self) -> dict[str, Any]:
        return {
            "ownerId": self.owner_id,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
            "ttlMs": self.ttl_ms,
        }

    @classmethod
    def from_dict(
        cls, data: dict[str, Any], *, default_ttl_ms: int = DEFAULT_LOCK_TTL_MS
    ) -> LockInfo | None:
        owner_id = data.get("ownerId")
        if not isinstance(owner_id, str):
            return None
        created_at = data.get("createdAt")
        updated_at = data.get("updatedAt") or created_at
        ttl_ms = data.get("ttlMs")
        if not isinstance(updated_at, int | float):
            return None
        if not isinstance(created_at, int | float):
            created_at = updated_at
        if not isinstance(ttl_ms, int | float):
            ttl_ms = default_ttl_ms
        return cls(
            owner_id=owner_id,
            created_at=int(created_at),
            updated_at=int(updated_at),
            ttl_ms=int(ttl_ms),
        )


class ScheduleLock:
    """Named advisory locks stored as files in ``locks_dir``."""

    def __init__(self, locks_dir: Path, *, clock: Callable[[], int] = now_ms) -> None:
        self._locks_dir = locks_dir
        self._clock = clock

    @property
    def locks_dir(self) -> Path:
        return self._locks_dir

    def lock_path(self, schedule_id: str) -> Path:
        if not is_safe_id(schedule_id):
            raise InvalidScheduleIdError(schedule_id)
        return self._locks_dir / f"{schedule_id}.lock.json"

    def acquire(
        self,
        schedule_id: str,
        owner_id: str,
        ttl_ms: int = DEFAULT_LOCK_TTL_MS,
    ) -> bool:
        """Try to take the lock for ``schedule_id``.

        Returns:
            True if the caller now holds the lock, False if another owner
            legitimately holds it.

        Raises:
            InvalidScheduleIdError: If the id is unsafe.
            OSError: For filesystem errors other than contention.
        """
        path = self.lock_path(schedule_id)

        for attempt in range(MAX_LOCK_RETRIES + 1):
            now = self._clock()
            info = LockInfo(
                owner_id=owner_id, created_at=now, updated_at=now, ttl_ms=ttl_ms
            )
            try:
                write_json_exclusive(path, info.to_dict())
            except FileExistsError:
                pass
            else:
                logger.debug(
                    "schedule_lock_acquired",
                    extra={"schedule.id": schedule_id, "lock.owner": owner_id},
                )
                return True

            if attempt == MAX_LOCK_RETRIES:
                break

            raw = read_json(path)
            if raw is None and not path.exists():
                # Released between our create and read; try again
                continue

            existing = (
                LockInfo.from_dict(raw, default_ttl_ms=ttl_ms)
                if raw is not None
                else None
            )
            if existing is not None and not existing.is_stale(now):
                return False

            if not self._evict(path, raw):
                # Someone else took it over between our read and now
                return False

            if existing is None:
                logger.warning(
                    "schedule_lock_corrupt_takeover",
                    extra={"schedule.id": schedule_id, "file.path": str(path)},
                )
            else:
                logger.info(
                    "schedule_lock_stale_takeover",
                    extra={
                        "schedule.id": schedule_id,
                        "lock.owner": owner_id,
                        "lock.previous_owner": existing.owner_id,
                        "lock.age_ms": now - existing.updated_at,
                    },
                )

        logger.debug(
            "schedule_lock_retries_exhausted",
            extra={"schedule.id": schedule_id, "lock.owner": owner_id},
        )
        return False

    def _evict(self, path: Path, seen: dict[str, Any] | None) -> bool:
        """Move a stale lock out of the way.

        The file is renamed aside first and only discarded if it still holds
        the contents judged stale. A lock that changed in the meantime is
        linked back into place and the caller backs off.
        """
        aside = path.with_name(f".{path.name}.{uuid.uuid4().hex[:8]}.stale")
        try:
            path.rename(aside)
        except FileNotFoundError:
            return True

        try:
            if read_json(aside) == seen:
                return True
            try:
                os.link(aside, path)
            except FileExistsError:
                logger.warning(
                    "schedule_lock_restore_conflict", extra={"file.path": str(path)}
                )
            return False
        finally:
            aside.unlink(missing_ok=True)

    def release(self, schedule_id: str, owner_id: str) -> bool:
        """Release the lock if ``owner_id`` still holds it.

        A missing lock or a lock held by someone else (after a stale
        takeover) is left alone.
        """
        path = self.lock_path(schedule_id)
        existing = self.read(schedule_id)
        if existing is None or existing.owner_id != owner_id:
            if existing is not None:
                logger.debug(
                    "schedule_lock_release_skipped",
                    extra={
                        "schedule.id": schedule_id,
                        "lock.owner": owner_id,
                        "lock.current_owner": existing.owner_id,
                    },
                )
            return False
        path.unlink(missing_ok=True)
        return True

    def refresh(self, schedule_id: str, owner_id: str) -> bool:
        """Extend the lease by bumping ``updatedAt`` if still owned."""
        path = self.lock_path(schedule_id)
        existing = self.read(schedule_id)
        if existing is None or existing.owner_id != owner_id:
            return False
        existing.updated_at = self._clock()
        write_json_atomic(path, existing.to_dict())
        return True

    def read(self, schedule_id: str) -> LockInfo | None:
        raw = read_json(self.lock_path(schedule_id))
        if raw is None:
            return None
        return LockInfo.from_dict(raw)

    def list(self) -> dict[str, LockInfo | None]:
        """Map schedule id to lock info for every lock file present.

        Corrupt lock files map to None.
        """
        if not self._locks_dir.exists():
            return {}
        locks: dict[str, LockInfo | None] = {}
        for path in sorted(self._locks_dir.glob("*.lock.json")):
            schedule_id = path.name.removesuffix(".lock.json")
            raw = read_json(path)
            locks[schedule_id] = LockInfo.from_dict(raw) if raw is not None else None
        return locks
