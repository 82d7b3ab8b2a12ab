"""Calendar date arithmetic.

All helpers are pure: they accept a ``date`` or ``datetime`` already
normalized to a single reference zone and return a new value of the same
type. Inputs are never mutated.

Weekday numbering follows the calendar UI convention: 0=Sunday .. 6=Saturday.
"""
from __future__ import annotations

from calendar import monthrange
from datetime import MAXYEAR, MINYEAR, date, datetime, timedelta
from typing import Iterator, TypeVar, Union

from .errors import InvalidRangeError

DateLike = TypeVar("DateLike", date, datetime)
AnyDate = Union[date, datetime]

WEEKDAY_NAMES = ["Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat"]


def to_date(value: AnyDate) -> date:
    """Return the calendar date part of a date or datetime."""
    if isinstance(value, datetime):
        return value.date()
    return value


def day_of_week(value: AnyDate) -> int:
    """Weekday index with 0=Sunday."""
    return (value.weekday() + 1) % 7


def days_in_month(year: int, month: int) -> int:
    return monthrange(year, month)[1]


def start_of_day(value: DateLike) -> DateLike:
    if isinstance(value, datetime):
        return value.replace(hour=0, minute=0, second=0, microsecond=0)
    return value


def end_of_day(value: DateLike) -> DateLike:
    if isinstance(value, datetime):
        return value.replace(hour=23, minute=59, second=59, microsecond=999999)
    return value


def _check_week_start(week_start_day: int) -> None:
    if week_start_day not in (0, 1):
        raise InvalidRangeError(
            f"week_start_day must be 0 (Sunday) or 1 (Monday), got {week_start_day}"
        )


def start_of_week(value: DateLike, week_start_day: int = 0) -> DateLike:
    """Return the first day of the week containing ``value``.

    Args:
        value: Reference date or datetime
        week_start_day: 0 for Sunday-based weeks, 1 for Monday-based weeks

    Returns:
        The latest day at or before ``value`` whose weekday equals
        ``week_start_day`` (midnight for datetimes)
    """
    _check_week_start(week_start_day)
    offset = (day_of_week(value) - week_start_day) % 7
    return start_of_day(value - timedelta(days=offset))


def end_of_week(value: DateLike, week_start_day: int = 0) -> DateLike:
    """Return the last day of the week containing ``value``."""
    return end_of_day(start_of_week(value, week_start_day) + timedelta(days=6))


def start_of_month(value: DateLike) -> DateLike:
    return start_of_day(value.replace(day=1))


def end_of_month(value: DateLike) -> DateLike:
    last = days_in_month(value.year, value.month)
    return end_of_day(value.replace(day=last))


def add_days(value: DateLike, days: int) -> DateLike:
    return value + timedelta(days=days)


def add_weeks(value: DateLike, weeks: int) -> DateLike:
    return value + timedelta(weeks=weeks)


def add_months(value: DateLike, months: int) -> DateLike:
    """Add calendar months, clamping the day to the target month's length.

    Jan 31 + 1 month is the last day of February (29th in leap years), never
    an overflow into March.

    Raises:
        OverflowError: if the result falls outside the supported years.
    """
    month_index = value.year * 12 + (value.month - 1) + months
    year, month = divmod(month_index, 12)
    month += 1
    if year < MINYEAR or year > MAXYEAR:
        raise OverflowError(f"date value out of range: year {year}")
    day = min(value.day, days_in_month(year, month))
    return value.replace(year=year, month=month, day=day)


def add_years(value: DateLike, years: int) -> DateLike:
    """Add calendar years (Feb 29 clamps to Feb 28 in common years)."""
    return add_months(value, years * 12)


def is_same_day(a: AnyDate, b: AnyDate) -> bool:
    """Compare calendar dates only, ignoring time of day."""
    return to_date(a) == to_date(b)


def diff_days(a: AnyDate, b: AnyDate) -> int:
    """Whole calendar days from ``a`` to ``b`` (negative if ``b`` is earlier)."""
    return (to_date(b) - to_date(a)).days


class DateRange:
    """Lazy, finite, restartable sequence of calendar days (inclusive).

    Iterating twice yields the same days; nothing is materialized up front.
    """

    __slots__ = ("start", "end")

    def __init__(self, start: AnyDate, end: AnyDate) -> None:
        start_day = to_date(start)
        end_day = to_date(end)
        if end_day < start_day:
            raise InvalidRangeError(
                f"Range end {end_day.isoformat()} is before start {start_day.isoformat()}"
            )
        self.start = start_day
        self.end = end_day

    def __iter__(self) -> Iterator[date]:
        current = self.start
        while current <= self.end:
            yield current
            current += timedelta(days=1)

    def __len__(self) -> int:
        return (self.end - self.start).days + 1

    def __contains__(self, value: object) -> bool:
        if not isinstance(value, date):
            return False
        return self.start <= to_date(value) <= self.end

    def __repr__(self) -> str:
        return f"DateRange({self.start.isoformat()}, {self.end.isoformat()})"


def dates_in_range(start: AnyDate, end: AnyDate) -> DateRange:
    """One date per day from ``start`` to ``end`` inclusive.

    Raises:
        InvalidRangeError: if ``end`` is before ``start``.
    """
    return DateRange(start, end)
