"""Schedule watcher: polls for due records and runs handlers under a lock.

Every process runs its own watcher. The per-schedule lock file is the only
coordination between them: a watcher that fails to acquire a lock skips
that schedule until its next tick.
"""

from __future__ import annotations

import asyncio
import logging
import os
import socket
import uuid

from cadence.scheduling.lock import DEFAULT_LOCK_TTL_MS
from cadence.scheduling.next_run import compute_next_run
from cadence.scheduling.store import ScheduleStore
from cadence.scheduling.types import (
    RunResult,
    ScheduleHandler,
    ScheduleRecord,
    ScheduleStatus,
)

logger = logging.getLogger(__name__)

HEARTBEAT_POLLS = 60
MIN_LEASE_INTERVAL = 10.0


def default_owner_id() -> str:
    """Owner id unique to this process: host, pid and a random suffix."""
    return f"{socket.gethostname()}-{os.getpid()}-{uuid.uuid4().hex[:6]}"


class ScheduleWatcher:
    """Watches the store and triggers handlers when records are due.

    Example:
        store = ScheduleStore(Path("~/project/.cadence"))
        watcher = ScheduleWatcher(store, poll_interval=30)

        @watcher.on_due
        async def handle(record):
            await run_command(record.payload)

        await watcher.start()
    """

    def __init__(
        self,
        store: ScheduleStore,
        *,
        owner_id: str | None = None,
        session_id: str | None = None,
        poll_interval: float = 30.0,
        lock_ttl_ms: int = DEFAULT_LOCK_TTL_MS,
        lease_interval: float | None = None,
    ):
        self._store = store
        self._owner_id = owner_id or default_owner_id()
        self._session_id = session_id
        self._poll_interval = poll_interval
        self._lock_ttl_ms = lock_ttl_ms
        self._lease_interval = lease_interval or max(
            MIN_LEASE_INTERVAL, lock_ttl_ms / 2000
        )
        self._handlers: list[ScheduleHandler] = []
        self._running = False
        self._task: asyncio.Task | None = None
        self._poll_count = 0

    @property
    def store(self) -> ScheduleStore:
        return self._store

    @property
    def owner_id(self) -> str:
        return self._owner_id

    @property
    def running(self) -> bool:
        return self._running

    def on_due(self, handler: ScheduleHandler) -> ScheduleHandler:
        """Decorator to register a handler."""
        self._handlers.append(handler)
        return handler

    def add_handler(self, handler: ScheduleHandler) -> None:
        self._handlers.append(handler)

    async def start(self) -> None:
        if self._running:
            return
        self._running = True
        logger.info(
            "schedule_watcher_started",
            extra={
                "file.path": str(self._store.schedules_dir),
                "lock.owner": self._owner_id,
            },
        )
        self._task = asyncio.create_task(self._poll_loop())

    async def stop(self) -> None:
        if not self._running:
            return
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

    async def _poll_loop(self) -> None:
        while self._running:
            try:
                self._poll_count += 1
                if self._poll_count % HEARTBEAT_POLLS == 0:
                    logger.info(
                        "schedule_watcher_heartbeat",
                        extra={
                            "poll.count": self._poll_count,
                            "file.path": str(self._store.schedules_dir),
                        },
                    )
                await self.tick()
            except Exception as e:
                logger.error("schedule_check_error", extra={"error.message": str(e)})
            await asyncio.sleep(self._poll_interval)

    async def tick(self, now: int | None = None) -> list[str]:
        """Run every due record this process can lock.

        Returns:
            Ids of the records that were executed on this tick.
        """
        if now is None:
            now = self._store.now()
        due = self._store.get_due(now)
        logger.debug(
            f"Schedule check: {len(due)} due (owner={self._owner_id})",
        )

        executed: list[str] = []
        for record in due:
            if self._session_id and record.session_id not in (None, self._session_id):
                continue
            if not self._store.acquire_lock(
                record.id, self._owner_id, self._lock_ttl_ms
            ):
                logger.debug(
                    "schedule_lock_busy",
                    extra={"schedule.id": record.id, "lock.owner": self._owner_id},
                )
                continue
            try:
                if await self._execute(record.id, now):
                    executed.append(record.id)
            except Exception as e:
                # One bad record must not hold up the rest of the tick
                logger.error(
                    "schedule_execution_error",
                    extra={"schedule.id": record.id, "error.message": str(e)},
                )
            finally:
                self._store.release_lock(record.id, self._owner_id)
        return executed

    async def _execute(self, schedule_id: str, now: int) -> bool:
        # Another process may have run or edited it before we got the lock
        current = self._store.get(schedule_id)
        if current is None or not current.is_due(now):
            return False

        logger.info(
            "scheduled_task_triggered",
            extra={
                "schedule.id": current.id,
                "schedule.kind": current.kind,
                "schedule.action_type": str(current.action_type),
            },
        )

        lease = asyncio.create_task(self._keep_lease(schedule_id))
        try:
            result = await self._run_handlers(current)
        finally:
            lease.cancel()
            try:
                await lease
            except asyncio.CancelledError:
                pass

        finished = self._store.now()
        self._store.update(
            schedule_id, lambda live: self._advance(live, result, finished)
        )
        return True

    async def _run_handlers(self, record: ScheduleRecord) -> RunResult:
        result = RunResult(ok=True)
        for handler in self._handlers:
            try:
                outcome = await handler(record)
            except Exception as e:
                # The schedule still advances so a failing action cannot
                # re-fire on every tick
                logger.error(
                    "schedule_handler_error",
                    extra={"schedule.id": record.id, "error.message": str(e)},
                )
                return RunResult(ok=False, error=str(e))
            if outcome is not None:
                result = outcome
                if not outcome.ok:
                    break
        return result

    async def _keep_lease(self, schedule_id: str) -> None:
        while True:
            await asyncio.sleep(self._lease_interval)
            try:
                self._store.refresh_lock(schedule_id, self._owner_id)
            except OSError as e:
                logger.warning(
                    "schedule_lock_refresh_failed",
                    extra={"schedule.id": schedule_id, "error.message": str(e)},
                )

    def _advance(
        self, live: ScheduleRecord, result: RunResult, finished: int
    ) -> ScheduleRecord:
        live.updated_at = finished
        live.last_run_at = finished
        live.last_result = result

        if not live.is_recurring:
            live.status = (
                ScheduleStatus.COMPLETED if result.ok else ScheduleStatus.ERROR
            )
            live.next_run_at = None
            return live

        live.next_run_at = compute_next_run(live, finished)
        if live.next_run_at is None and live.status == ScheduleStatus.ACTIVE:
            logger.warning(
                "schedule_next_run_unavailable",
                extra={"schedule.id": live.id, "schedule.kind": live.kind},
            )
            live.status = ScheduleStatus.PAUSED
        return live
