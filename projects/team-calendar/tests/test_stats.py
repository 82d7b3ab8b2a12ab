"""Tests for calendar statistics and display helpers."""
from __future__ import annotations

from datetime import date, datetime, timedelta

from team_calendar.calendar import (
    Attendee,
    Event,
    Location,
    RecurrenceDescriptor,
    Reminder,
    attendee_stats,
    event_stats,
    event_summary,
    format_duration,
    reminder_times,
)


def _event(
    event_id: str,
    start: datetime,
    minutes: int = 60,
    *,
    calendar_id: str = "team",
    priority: str = "normal",
    status: str = "confirmed",
    all_day: bool = False,
    end: datetime | None = None,
    **kwargs,
) -> Event:
    return Event(
        id=event_id,
        calendar_id=calendar_id,
        title=event_id.title(),
        start=start,
        end=end or start + timedelta(minutes=minutes),
        all_day=all_day,
        priority=priority,
        status=status,
        **kwargs,
    )


class TestEventStats:
    def test_counters(self):
        events = [
            _event("today", datetime(2024, 7, 3, 9, 0), priority="high"),
            _event("this-week", datetime(2024, 7, 5, 9, 0), calendar_id="ops"),
            _event("this-month", datetime(2024, 7, 20, 9, 0), status="tentative"),
            _event("next-month", datetime(2024, 8, 2, 9, 0), status="cancelled"),
        ]

        stats = event_stats(events, date(2024, 7, 3))

        assert stats["total"] == 4
        assert stats["today"] == 1
        assert stats["this_week"] == 2
        assert stats["this_month"] == 3
        assert stats["by_priority"]["high"] == 1
        assert stats["by_priority"]["normal"] == 3
        assert stats["by_priority"]["critical"] == 0
        assert stats["by_status"] == {"confirmed": 2, "tentative": 1, "cancelled": 1, "pending": 0}
        assert stats["by_calendar"] == {"ops": 1, "team": 3}

    def test_week_start_monday(self):
        # Sunday 2024-07-07 closes a Monday-based week but opens a Sunday-based one
        events = [_event("sunday", datetime(2024, 7, 7, 9, 0))]

        assert event_stats(events, date(2024, 7, 3), week_start_day=1)["this_week"] == 1
        assert event_stats(events, date(2024, 7, 3), week_start_day=0)["this_week"] == 0

    def test_empty(self):
        stats = event_stats([], datetime(2024, 7, 3, 12, 0))
        assert stats["total"] == 0
        assert stats["by_calendar"] == {}


class TestAttendeeStats:
    def test_response_rate(self):
        attendees = [
            Attendee(email="a@example.com", status="accepted"),
            Attendee(email="b@example.com", status="declined"),
            Attendee(email="c@example.com", status="pending"),
        ]

        stats = attendee_stats(attendees)

        assert stats["total"] == 3
        assert stats["accepted"] == 1
        assert stats["declined"] == 1
        assert stats["pending"] == 1
        assert stats["responded"] == 2
        assert stats["response_rate"] == 66.7

    def test_no_attendees(self):
        assert attendee_stats([])["response_rate"] == 0.0


class TestFormatting:
    def test_format_duration(self):
        start = datetime(2024, 7, 1, 9, 0)
        assert format_duration(_event("a", start, 90)) == "1h 30m"
        assert format_duration(_event("b", start, 120)) == "2h"
        assert format_duration(_event("c", start, 45)) == "45m"

    def test_format_duration_all_day(self):
        day = datetime(2024, 7, 1)
        assert format_duration(_event("a", day, all_day=True, end=day)) == "All day"
        assert format_duration(_event("b", day, all_day=True, end=datetime(2024, 7, 3))) == "3 days"

    def test_reminder_times(self):
        event = _event(
            "a",
            datetime(2024, 7, 1, 9, 0),
            reminders=[
                Reminder(minutes=10),
                Reminder(minutes=60, type="email"),
                Reminder(minutes=5, is_enabled=False),
            ],
        )
        assert reminder_times(event) == [datetime(2024, 7, 1, 8, 0), datetime(2024, 7, 1, 8, 50)]

    def test_event_summary(self):
        event = _event(
            "standup",
            datetime(2024, 7, 1, 9, 0),
            15,
            location=Location(name="Room 4"),
            recurrence=RecurrenceDescriptor("weekly", days_of_week=(1, 3)),
            attendees=[Attendee(email="a@example.com")],
        )

        summary = event_summary(event)

        assert summary["when"] == "2024-07-01 09:00 - 09:15"
        assert summary["duration"] == "15m"
        assert summary["location"] == "Room 4"
        assert summary["recurrence"] == "Weekly on Mon, Wed"
        assert summary["attendees"] == "1 attendees"
