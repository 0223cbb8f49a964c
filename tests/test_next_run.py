"""Tests for next-run computation across schedule kinds."""

import random

import pytest

from cadence.scheduling import (
    CronSchedule,
    IntervalSchedule,
    IntervalUnit,
    OnceSchedule,
    RandomSchedule,
    compute_next_run,
    parse_scheduled_time,
)
from tests.conftest import T0, make_record, utc_ms


class TestIntervalSchedule:
    """Fixed intervals are added to the reference time."""

    def test_seconds(self):
        spec = IntervalSchedule(interval=15, unit=IntervalUnit.SECONDS)
        assert compute_next_run(spec, T0) == T0 + 15_000

    def test_minutes_and_hours(self):
        assert compute_next_run(IntervalSchedule(2), T0) == T0 + 120_000
        spec = IntervalSchedule(interval=1.5, unit=IntervalUnit.HOURS)
        assert compute_next_run(spec, T0) == T0 + 5_400_000

    def test_non_positive_interval(self):
        assert compute_next_run(IntervalSchedule(0), T0) is None
        assert compute_next_run(IntervalSchedule(-5), T0) is None

    @pytest.mark.parametrize("interval", [0.0004, 0.5, 0.999])
    def test_sub_second_interval(self, interval):
        spec = IntervalSchedule(interval=interval, unit=IntervalUnit.SECONDS)
        assert compute_next_run(spec, T0) is None

    def test_one_second_interval(self):
        spec = IntervalSchedule(interval=1, unit=IntervalUnit.SECONDS)
        assert compute_next_run(spec, T0) == T0 + 1000

    def test_accepts_record(self):
        record = make_record(schedule=IntervalSchedule(30, IntervalUnit.SECONDS))
        assert compute_next_run(record, T0) == T0 + 30_000


class TestRandomSchedule:
    """Random intervals land inside the inclusive bounds."""

    def test_within_bounds(self):
        spec = RandomSchedule(min_interval=5, max_interval=15)
        rng = random.Random(42)
        for _ in range(200):
            result = compute_next_run(spec, T0, rng=rng)
            assert result is not None
            assert T0 + 300_000 <= result <= T0 + 900_000
            assert (result - T0) % 60_000 == 0

    def test_equal_bounds(self):
        spec = RandomSchedule(10, 10, IntervalUnit.SECONDS)
        assert compute_next_run(spec, T0) == T0 + 10_000

    def test_fractional_bounds(self):
        spec = RandomSchedule(0.5, 1.5, IntervalUnit.SECONDS)
        rng = random.Random(7)
        for _ in range(50):
            result = compute_next_run(spec, T0, rng=rng)
            assert result is not None
            assert T0 + 500 <= result <= T0 + 1500

    @pytest.mark.parametrize(
        ("low", "high"),
        [(15, 5), (0, 5), (-1, 5), (5, 0)],
    )
    def test_invalid_bounds(self, low, high):
        assert compute_next_run(RandomSchedule(low, high), T0) is None


class TestOnceSchedule:
    """One-shot times must be strictly in the future."""

    def test_future_with_offset(self):
        spec = OnceSchedule(at="2026-02-01T10:00:00+00:00")
        assert compute_next_run(spec, T0) == utc_ms(2026, 2, 1, 10, 0)

    def test_zulu_suffix(self):
        spec = OnceSchedule(at="2026-02-01T10:00:00Z")
        assert compute_next_run(spec, T0) == utc_ms(2026, 2, 1, 10, 0)

    def test_past_returns_none(self):
        spec = OnceSchedule(at="2026-01-31T23:00:00Z")
        assert compute_next_run(spec, T0) is None

    def test_exactly_now_returns_none(self):
        spec = OnceSchedule(at="2026-02-01T00:00:00Z")
        assert compute_next_run(spec, T0) is None

    def test_wall_clock_in_timezone(self):
        spec = OnceSchedule(at="2026-03-01 09:30", timezone="America/New_York")
        assert compute_next_run(spec, T0) == utc_ms(2026, 3, 1, 14, 30)

    def test_offset_wins_over_timezone(self):
        spec = OnceSchedule(at="2026-03-01T09:30:00+00:00", timezone="Asia/Tokyo")
        assert compute_next_run(spec, T0) == utc_ms(2026, 3, 1, 9, 30)

    def test_invalid_timezone_falls_back(self):
        spec = OnceSchedule(at="2026-03-01T09:30:00Z", timezone="Not/AZone")
        assert compute_next_run(spec, T0) == utc_ms(2026, 3, 1, 9, 30)

    def test_unparseable(self):
        assert compute_next_run(OnceSchedule(at="next tuesday"), T0) is None
        spec = OnceSchedule(at="tomorrow", timezone="UTC")
        assert compute_next_run(spec, T0) is None


class TestCronSchedule:
    """Cron schedules delegate to the cron evaluator."""

    def test_next_match(self):
        spec = CronSchedule(cron="*/5 * * * *", timezone="UTC")
        assert compute_next_run(spec, T0) == utc_ms(2026, 2, 1, 0, 5)

    def test_invalid_expression(self):
        assert compute_next_run(CronSchedule(cron="nope", timezone="UTC"), T0) is None


class TestParseScheduledTime:
    """Tests for parse_scheduled_time()."""

    def test_date_only_in_timezone(self):
        assert parse_scheduled_time("2026-02-02", "UTC") == utc_ms(2026, 2, 2)

    def test_seconds_in_timezone(self):
        result = parse_scheduled_time("2026-02-02T08:15:30", "Europe/Berlin")
        assert result == utc_ms(2026, 2, 2, 7, 15, 30)

    def test_invalid_date(self):
        assert parse_scheduled_time("2026-02-30T08:00", "UTC") is None

    def test_empty(self):
        assert parse_scheduled_time("") is None


def test_unknown_schedule_type_raises():
    with pytest.raises(TypeError):
        compute_next_run(object(), T0)  # type: ignore[arg-type]
