"""Tests for calendar date arithmetic."""
from __future__ import annotations

from datetime import date, datetime

import pytest

from team_calendar.dates import (
    DateRange,
    add_days,
    add_months,
    add_weeks,
    add_years,
    dates_in_range,
    day_of_week,
    diff_days,
    end_of_month,
    end_of_week,
    is_same_day,
    start_of_month,
    start_of_week,
)
from team_calendar.errors import InvalidRangeError


class TestMonthClamp:
    def test_jan_31_plus_one_month_leap_year(self):
        assert add_months(date(2024, 1, 31), 1) == date(2024, 2, 29)

    def test_jan_31_plus_one_month_common_year(self):
        assert add_months(date(2023, 1, 31), 1) == date(2023, 2, 28)

    def test_keeps_time_of_day(self):
        result = add_months(datetime(2024, 1, 31, 9, 30), 1)
        assert result == datetime(2024, 2, 29, 9, 30)

    def test_negative_months_cross_year(self):
        assert add_months(date(2024, 3, 31), -4) == date(2023, 11, 30)

    def test_feb_29_plus_one_year(self):
        assert add_years(date(2024, 2, 29), 1) == date(2025, 2, 28)
        assert add_years(date(2024, 2, 29), 4) == date(2028, 2, 29)

    def test_out_of_range_year_raises_overflow(self):
        with pytest.raises(OverflowError):
            add_years(date(9999, 6, 1), 1)

    def test_input_not_mutated(self):
        original = datetime(2024, 1, 31, 8, 0)
        add_months(original, 1)
        assert original == datetime(2024, 1, 31, 8, 0)


class TestWeekBoundaries:
    def test_day_of_week_sunday_is_zero(self):
        assert day_of_week(date(2024, 7, 7)) == 0  # Sunday
        assert day_of_week(date(2024, 7, 1)) == 1  # Monday
        assert day_of_week(date(2024, 7, 6)) == 6  # Saturday

    def test_start_of_week_sunday_based(self):
        assert start_of_week(date(2024, 7, 3), 0) == date(2024, 6, 30)

    def test_start_of_week_monday_based(self):
        assert start_of_week(date(2024, 7, 3), 1) == date(2024, 7, 1)

    def test_start_of_week_on_start_day_is_identity(self):
        assert start_of_week(date(2024, 7, 1), 1) == date(2024, 7, 1)
        assert start_of_week(date(2024, 6, 30), 0) == date(2024, 6, 30)

    def test_start_of_week_datetime_is_midnight(self):
        assert start_of_week(datetime(2024, 7, 3, 15, 45), 0) == datetime(2024, 6, 30)

    def test_end_of_week(self):
        assert end_of_week(date(2024, 7, 3), 0) == date(2024, 7, 6)
        assert end_of_week(date(2024, 7, 3), 1) == date(2024, 7, 7)

    def test_invalid_week_start_day(self):
        with pytest.raises(InvalidRangeError):
            start_of_week(date(2024, 7, 3), 3)


class TestMonthBoundaries:
    def test_leap_february(self):
        assert start_of_month(date(2024, 2, 14)) == date(2024, 2, 1)
        assert end_of_month(date(2024, 2, 14)) == date(2024, 2, 29)

    def test_common_february(self):
        assert end_of_month(date(2023, 2, 14)) == date(2023, 2, 28)

    def test_end_of_month_datetime_is_end_of_day(self):
        result = end_of_month(datetime(2024, 4, 10, 12, 0))
        assert result.date() == date(2024, 4, 30)
        assert (result.hour, result.minute, result.second) == (23, 59, 59)


class TestDayHelpers:
    def test_add_days_and_weeks(self):
        assert add_days(date(2024, 2, 28), 1) == date(2024, 2, 29)
        assert add_weeks(date(2024, 7, 1), 2) == date(2024, 7, 15)

    def test_is_same_day_ignores_time(self):
        assert is_same_day(datetime(2024, 7, 1, 0, 0), datetime(2024, 7, 1, 23, 59))
        assert not is_same_day(datetime(2024, 7, 1, 23, 59), datetime(2024, 7, 2, 0, 0))

    def test_diff_days(self):
        assert diff_days(date(2024, 7, 1), date(2024, 7, 10)) == 9
        assert diff_days(datetime(2024, 7, 10, 8), datetime(2024, 7, 1, 20)) == -9


class TestDatesInRange:
    def test_inclusive_days(self):
        days = list(dates_in_range(date(2024, 2, 27), date(2024, 3, 1)))
        assert days == [
            date(2024, 2, 27),
            date(2024, 2, 28),
            date(2024, 2, 29),
            date(2024, 3, 1),
        ]

    def test_single_day(self):
        assert list(dates_in_range(date(2024, 7, 1), date(2024, 7, 1))) == [date(2024, 7, 1)]

    def test_restartable(self):
        days = dates_in_range(date(2024, 7, 1), date(2024, 7, 3))
        assert list(days) == list(days)
        assert len(days) == 3

    def test_contains(self):
        days = DateRange(date(2024, 7, 1), date(2024, 7, 3))
        assert datetime(2024, 7, 2, 12, 0) in days
        assert date(2024, 7, 4) not in days

    def test_end_before_start_raises(self):
        with pytest.raises(InvalidRangeError):
            dates_in_range(date(2024, 7, 2), date(2024, 7, 1))
