"""Tests for schedule record types and their on-disk shape."""

import pytest

from cadence.scheduling import (
    ActionType,
    CreatedBy,
    CronSchedule,
    IntervalSchedule,
    IntervalUnit,
    OnceSchedule,
    RandomSchedule,
    RunResult,
    ScheduleRecord,
    ScheduleStatus,
)
from cadence.scheduling.types import (
    generate_schedule_id,
    is_safe_id,
    schedule_from_dict,
)
from tests.conftest import T0, make_record


class TestScheduleRecordSerialization:
    """Tests for to_dict() / from_dict()."""

    def test_camel_case_shape(self):
        record = make_record(session_id="sess-1", description="ping")
        data = record.to_dict()

        assert data["id"] == "job1"
        assert data["createdAt"] == T0
        assert data["updatedAt"] == T0
        assert data["createdBy"] == "user"
        assert data["actionType"] == "command"
        assert data["sessionId"] == "sess-1"
        assert data["status"] == "active"
        assert data["nextRunAt"] == T0 + 300_000
        assert data["schedule"] == {
            "kind": "cron",
            "cron": "*/5 * * * *",
            "timezone": "UTC",
        }
        assert "lastRunAt" not in data
        assert "message" not in data

    def test_round_trip(self):
        record = make_record(
            schedule=RandomSchedule(5, 15, IntervalUnit.SECONDS),
            created_by=CreatedBy.AGENT,
            action_type=ActionType.MESSAGE,
            message="stand up",
            status=ScheduleStatus.PAUSED,
            last_run_at=T0 - 1000,
            last_result=RunResult(ok=False, error="exit 1"),
        )
        assert ScheduleRecord.from_dict(record.to_dict()) == record

    def test_unknown_fields_survive(self):
        data = make_record().to_dict()
        data["owner"] = "someone-else"
        record = ScheduleRecord.from_dict(data)
        assert record is not None
        assert record.to_dict()["owner"] == "someone-else"

    def test_defaults_for_missing_optional_fields(self):
        record = ScheduleRecord.from_dict(
            {"id": "a1", "schedule": {"kind": "interval", "interval": 5}}
        )
        assert record is not None
        assert record.status == ScheduleStatus.ACTIVE
        assert record.action_type == ActionType.COMMAND
        assert record.schedule == IntervalSchedule(5, IntervalUnit.MINUTES)
        assert record.next_run_at is None

    def test_non_finite_timestamp_dropped(self):
        data = make_record().to_dict()
        data["nextRunAt"] = float("inf")
        record = ScheduleRecord.from_dict(data)
        assert record is not None
        assert record.next_run_at is None

    @pytest.mark.parametrize(
        "data",
        [
            None,
            [],
            {"schedule": {"kind": "once", "at": "2026-02-01T00:00:00Z"}},
            {"id": "a1"},
            {"id": "a1", "schedule": {"kind": "weekly"}},
            {"id": "a1", "schedule": {"kind": "once"}},
            {"id": "a1", "schedule": {"kind": "interval", "interval": "5"}},
            {"id": "a1", "schedule": {"kind": "interval", "interval": True}},
            {
                "id": "a1",
                "schedule": {"kind": "interval", "interval": 5, "unit": "days"},
            },
            {
                "id": "a1",
                "status": "sleeping",
                "schedule": {"kind": "cron", "cron": "* * * * *"},
            },
        ],
    )
    def test_malformed_payloads(self, data):
        assert ScheduleRecord.from_dict(data) is None


class TestScheduleRecordBehavior:
    """Tests for derived properties."""

    def test_is_due(self):
        record = make_record(next_run_at=T0)
        assert record.is_due(T0)
        assert not record.is_due(T0 - 1)

    def test_inactive_or_unscheduled_is_never_due(self):
        assert not make_record(next_run_at=None).is_due(T0)
        assert not make_record(status=ScheduleStatus.PAUSED, next_run_at=T0).is_due(T0)
        assert not make_record(
            status=ScheduleStatus.COMPLETED, next_run_at=T0
        ).is_due(T0)

    def test_recurring(self):
        assert make_record().is_recurring
        assert not make_record(schedule=OnceSchedule(at="2026-02-02")).is_recurring

    def test_payload_prefers_message(self):
        record = make_record(action_type=ActionType.MESSAGE, message="hello there")
        assert record.payload == "hello there"
        assert make_record().payload == "echo hello"

    def test_kind(self):
        assert make_record().kind == "cron"
        assert make_record(schedule=IntervalSchedule(1)).kind == "interval"


class TestScheduleSpecs:
    """Tests for the schedule definition payloads."""

    def test_once_omits_empty_timezone(self):
        assert OnceSchedule(at="2026-02-02").to_dict() == {
            "kind": "once",
            "at": "2026-02-02",
        }

    def test_random_shape(self):
        assert RandomSchedule(1, 2, IntervalUnit.HOURS).to_dict() == {
            "kind": "random",
            "minInterval": 1,
            "maxInterval": 2,
            "unit": "hours",
        }

    def test_cron_without_timezone(self):
        assert CronSchedule(cron="0 * * * *").to_dict() == {
            "kind": "cron",
            "cron": "0 * * * *",
        }

    @pytest.mark.parametrize("timezone", [123, ["UTC"], ""])
    def test_unusable_timezone_dropped(self, timezone):
        spec = schedule_from_dict(
            {"kind": "cron", "cron": "0 * * * *", "timezone": timezone}
        )
        assert spec == CronSchedule(cron="0 * * * *")


class TestIds:
    """Tests for id helpers."""

    @pytest.mark.parametrize("value", ["abc", "A-1_b", "0f3e9a12"])
    def test_safe(self, value):
        assert is_safe_id(value)

    @pytest.mark.parametrize("value", ["", "bad id!", "../etc", "a/b", "a.json"])
    def test_unsafe(self, value):
        assert not is_safe_id(value)

    def test_generated_ids_are_safe_and_distinct(self):
        ids = {generate_schedule_id() for _ in range(50)}
        assert len(ids) == 50
        assert all(is_safe_id(i) and len(i) == 8 for i in ids)
