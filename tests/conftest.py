"""Shared test fixtures and factories."""

from datetime import UTC, datetime
from pathlib import Path

import pytest
from typer.testing import CliRunner

from cadence.config.paths import ENV_VAR, get_cadence_home
from cadence.scheduling import (
    CronSchedule,
    ScheduleManager,
    ScheduleRecord,
    ScheduleStore,
)

# 2026-02-01T00:00:00Z, a Sunday
T0 = int(datetime(2026, 2, 1, tzinfo=UTC).timestamp() * 1000)


def utc_ms(*args: int) -> int:
    """Epoch ms for a UTC calendar time."""
    return int(datetime(*args, tzinfo=UTC).timestamp() * 1000)


class FakeClock:
    """Settable epoch-ms clock for stores and locks."""

    def __init__(self, now: int = T0):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> int:
        self.now += ms
        return self.now


def make_record(schedule_id: str = "job1", **kwargs) -> ScheduleRecord:
    """Build a record with sensible defaults for store tests."""
    defaults = {
        "command": "echo hello",
        "schedule": CronSchedule(cron="*/5 * * * *", timezone="UTC"),
        "created_at": T0,
        "updated_at": T0,
        "next_run_at": T0 + 5 * 60_000,
    }
    defaults.update(kwargs)
    return ScheduleRecord(id=schedule_id, **defaults)


# =============================================================================
# Environment Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def isolated_home(monkeypatch, tmp_path: Path) -> Path:
    """Point CADENCE_HOME at a temp dir and clear env overrides."""
    home = tmp_path / ".cadence"
    monkeypatch.setenv(ENV_VAR, str(home))
    for name in (
        "CADENCE_LOG_LEVEL",
        "CADENCE_POLL_INTERVAL",
        "CADENCE_LOCK_TTL_MS",
        "CADENCE_TIMEZONE",
    ):
        monkeypatch.delenv(name, raising=False)
    get_cadence_home.cache_clear()
    yield home
    get_cadence_home.cache_clear()


# =============================================================================
# Store Fixtures
# =============================================================================


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store(tmp_path: Path, clock: FakeClock) -> ScheduleStore:
    """A store rooted in a temp dir with a controllable clock."""
    return ScheduleStore(tmp_path / "project", clock=clock)


@pytest.fixture
def manager(store: ScheduleStore) -> ScheduleManager:
    return ScheduleManager(store)


# =============================================================================
# CLI Fixtures
# =============================================================================


@pytest.fixture
def cli_runner() -> CliRunner:
    """CLI test runner."""
    return CliRunner(env={"NO_COLOR": "1"})
