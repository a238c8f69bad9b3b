"""
Tests for timezone-aware date bucketing and range resolution.

Covers:
- civil_date across the UTC/local boundary and DST transitions
- instant_bounds half-open bounds
- resolve_range / resolve_window label and explicit-date handling
- baseline window arithmetic
"""
from datetime import date, datetime, timedelta, timezone

import pytest

from app.core.errors import InvalidRangeError, InvalidTimezoneError
from app.services.bucketing import (
    DateRange,
    as_utc,
    civil_date,
    instant_bounds,
    iter_dates,
    load_zone,
    local_midnight,
    local_today,
    resolve_range,
    resolve_window,
)


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


NOW = utc(2026, 2, 20, 12, 0)


class TestCivilDate:
    def test_utc_instant_is_its_own_date(self):
        assert civil_date(utc(2026, 2, 20, 23, 59), "UTC") == date(2026, 2, 20)

    def test_los_angeles_evening_is_previous_utc_day(self):
        # 06:30 UTC on Jun 1 is 23:30 on May 31 in Los Angeles (PDT, UTC-7)
        assert civil_date(utc(2024, 6, 1, 6, 30), "America/Los_Angeles") == date(2024, 5, 31)

    def test_auckland_morning_is_next_utc_day(self):
        assert civil_date(utc(2026, 2, 20, 12, 0), "Pacific/Auckland") == date(2026, 2, 21)

    def test_naive_instant_is_treated_as_utc(self):
        assert civil_date(datetime(2026, 2, 20, 23, 0), "UTC") == date(2026, 2, 20)
        assert as_utc(datetime(2026, 2, 20, 23, 0)).tzinfo == timezone.utc

    def test_none_timezone_means_utc(self):
        assert civil_date(utc(2026, 2, 20, 0, 0), None) == date(2026, 2, 20)

    def test_unknown_timezone_raises(self):
        with pytest.raises(InvalidTimezoneError) as exc_info:
            load_zone("Mars/Olympus_Mons")
        assert exc_info.value.code == "INVALID_TIMEZONE"
        assert exc_info.value.http_status == 422

    def test_unknown_timezone_is_an_invalid_range(self):
        with pytest.raises(InvalidRangeError):
            civil_date(NOW, "Not/AZone")


class TestInstantBounds:
    def test_single_utc_day(self):
        lower, upper = instant_bounds(date(2026, 2, 20), date(2026, 2, 20), "UTC")
        assert lower == utc(2026, 2, 20)
        assert upper == utc(2026, 2, 21)

    def test_bounds_follow_local_midnight(self):
        lower, upper = instant_bounds(date(2024, 5, 31), date(2024, 5, 31), "America/Los_Angeles")
        assert lower == utc(2024, 5, 31, 7)
        assert upper == utc(2024, 6, 1, 7)

    def test_spring_forward_day_is_23_hours(self):
        lower, upper = instant_bounds(date(2024, 3, 10), date(2024, 3, 10), "America/Los_Angeles")
        assert upper - lower == timedelta(hours=23)

    def test_last_microsecond_is_inside_the_range(self):
        _, upper = instant_bounds(date(2026, 2, 20), date(2026, 2, 20), "UTC")
        last = utc(2026, 2, 20, 23, 59, 59, 999999)
        assert last < upper
        assert civil_date(upper, "UTC") == date(2026, 2, 21)

    def test_reversed_range_raises(self):
        with pytest.raises(InvalidRangeError) as exc_info:
            instant_bounds(date(2026, 2, 20), date(2026, 2, 19), "UTC")
        assert exc_info.value.details == {"start": "2026-02-20", "end": "2026-02-19"}

    def test_local_midnight_is_utc(self):
        assert local_midnight(date(2026, 1, 1), "Europe/Berlin") == utc(2025, 12, 31, 23)


class TestResolveRange:
    def test_seven_days_includes_today(self):
        assert resolve_range("7d", "UTC", NOW) == DateRange(date(2026, 2, 14), date(2026, 2, 20))

    @pytest.mark.parametrize("label,days", [("7d", 7), ("30d", 30), ("90d", 90), ("365d", 365)])
    def test_range_length_matches_label(self, label, days):
        assert resolve_range(label, "UTC", NOW).days == days

    def test_today_is_in_the_user_timezone(self):
        rng = resolve_range("7d", "Pacific/Auckland", NOW)
        assert rng.end == date(2026, 2, 21)
        assert local_today("Pacific/Auckland", NOW) == date(2026, 2, 21)

    def test_all_is_unbounded(self):
        assert resolve_range("all", "UTC", NOW) is None

    def test_unknown_label_raises(self):
        with pytest.raises(InvalidRangeError) as exc_info:
            resolve_range("14d", "UTC", NOW)
        assert exc_info.value.code == "INVALID_RANGE"
        assert exc_info.value.details["range"] == "14d"


class TestResolveWindow:
    def test_explicit_dates_override_label(self):
        rng = resolve_window("7d", "UTC", date(2026, 1, 1), date(2026, 1, 31), NOW)
        assert rng == DateRange(date(2026, 1, 1), date(2026, 1, 31))

    def test_lone_start_runs_to_today(self):
        rng = resolve_window("7d", "UTC", date(2026, 2, 1), None, NOW)
        assert rng == DateRange(date(2026, 2, 1), date(2026, 2, 20))

    def test_lone_end_is_rejected(self):
        with pytest.raises(InvalidRangeError):
            resolve_window("7d", "UTC", None, date(2026, 2, 1), NOW)

    def test_end_before_start_is_rejected(self):
        with pytest.raises(InvalidRangeError):
            resolve_window("7d", "UTC", date(2026, 2, 10), date(2026, 2, 1), NOW)

    def test_single_day_window(self):
        rng = resolve_window("30d", "UTC", date(2026, 2, 10), date(2026, 2, 10), NOW)
        assert rng.days == 1

    def test_overlong_range_is_rejected(self):
        with pytest.raises(InvalidRangeError) as exc_info:
            resolve_window("30d", "UTC", date(2000, 1, 1), date(2026, 1, 1), NOW)
        assert exc_info.value.details == {"start": "2000-01-01", "end": "2026-01-01"}

    def test_longest_allowed_range(self):
        rng = resolve_window("30d", "UTC", date(2016, 1, 1), date(2016, 1, 1) + timedelta(days=3659), NOW)
        assert rng.days == 3660

    @pytest.mark.parametrize("start,end", [
        (date(1, 1, 1), date(1, 1, 5)),
        (date(1, 1, 6), date(1, 1, 10)),
        (date(9999, 12, 30), date(9999, 12, 31)),
        (date(9999, 12, 25), date(9999, 12, 30)),
    ])
    def test_range_at_calendar_limits_is_rejected(self, start, end):
        with pytest.raises(InvalidRangeError):
            resolve_window("30d", "UTC", start, end, NOW)

    def test_range_just_inside_calendar_limits(self):
        rng = resolve_window("30d", "Pacific/Kiritimati", date(1, 1, 7), date(1, 1, 9), NOW)
        baseline = rng.baseline()
        assert baseline.start == date(1, 1, 4)
        instant_bounds(baseline.start, baseline.end, "Pacific/Kiritimati")
        instant_bounds(date(9999, 12, 27), date(9999, 12, 29), "Pacific/Pago_Pago")


class TestDateRange:
    def test_baseline_is_equal_length_and_adjacent(self):
        rng = DateRange(date(2026, 2, 14), date(2026, 2, 20))
        assert rng.baseline() == DateRange(date(2026, 2, 7), date(2026, 2, 13))
        assert rng.baseline().days == rng.days

    def test_iter_dates_is_inclusive(self):
        days = list(iter_dates(date(2026, 2, 27), date(2026, 3, 2)))
        assert days == [date(2026, 2, 27), date(2026, 2, 28), date(2026, 3, 1), date(2026, 3, 2)]
