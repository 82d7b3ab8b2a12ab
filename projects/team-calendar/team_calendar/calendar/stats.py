"""Calendar statistics and display helpers."""
from __future__ import annotations

from collections import Counter
from datetime import date, datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional, Union

from ..dates import end_of_month, end_of_week, start_of_month, start_of_week, to_date
from .recurrence import describe_recurrence
from .types import Attendee, AttendeeStatus, Event, EventStatus, Priority


def event_stats(
    events: Iterable[Event],
    today: Union[date, datetime],
    week_start_day: int = 0,
) -> Dict[str, Any]:
    """Summarize an expanded corpus relative to ``today``.

    Args:
        events: Expanded events (occurrences counted individually)
        today: Reference day for the today / week / month counters
        week_start_day: 0 for Sunday-based weeks, 1 for Monday-based weeks

    Returns:
        Dict with total, today, this_week, this_month and per-priority,
        per-status and per-calendar counts
    """
    day = to_date(today)
    week_first, week_last = start_of_week(day, week_start_day), end_of_week(day, week_start_day)
    month_first, month_last = start_of_month(day), end_of_month(day)

    stats: Dict[str, Any] = {
        "total": 0,
        "today": 0,
        "this_week": 0,
        "this_month": 0,
        "by_priority": {p.value: 0 for p in Priority},
        "by_status": {s.value: 0 for s in EventStatus},
        "by_calendar": {},
    }
    calendars: Counter = Counter()

    for event in events:
        start_day = to_date(event.start)
        stats["total"] += 1
        if start_day == day:
            stats["today"] += 1
        if week_first <= start_day <= week_last:
            stats["this_week"] += 1
        if month_first <= start_day <= month_last:
            stats["this_month"] += 1
        stats["by_priority"][event.priority.value] += 1
        stats["by_status"][event.status.value] += 1
        calendars[event.calendar_id] += 1

    stats["by_calendar"] = dict(sorted(calendars.items()))
    return stats


def attendee_stats(attendees: Iterable[Attendee]) -> Dict[str, Any]:
    """RSVP counts for a list of attendees.

    ``response_rate`` is the percentage of attendees who answered (anything
    but pending), rounded to one decimal.
    """
    attendees = list(attendees)
    stats: Dict[str, Any] = {"total": len(attendees)}
    stats.update({s.value: 0 for s in AttendeeStatus})
    for attendee in attendees:
        stats[attendee.status.value] += 1

    responded = stats["total"] - stats[AttendeeStatus.PENDING.value]
    stats["responded"] = responded
    stats["response_rate"] = round(responded / stats["total"] * 100, 1) if stats["total"] else 0.0
    return stats


def format_duration(event: Event) -> str:
    """Compact duration label like "45m", "2h" or "1h 30m"; all-day events span days."""
    if event.all_day:
        days = (to_date(event.end) - to_date(event.start)).days + 1
        return "All day" if days == 1 else f"{days} days"

    minutes = event.duration_minutes
    hours, minutes = divmod(minutes, 60)
    if hours and minutes:
        return f"{hours}h {minutes}m"
    if hours:
        return f"{hours}h"
    return f"{minutes}m"


def reminder_times(event: Event) -> List[datetime]:
    """When each enabled reminder fires, earliest first."""
    return sorted(
        event.start - timedelta(minutes=r.minutes) for r in event.reminders if r.is_enabled
    )


def event_summary(event: Event) -> Dict[str, Optional[str]]:
    """Display-ready strings for an event card."""
    if event.all_day:
        when = to_date(event.start).isoformat()
    else:
        when = f"{event.start:%Y-%m-%d %H:%M} - {event.end:%H:%M}"
    return {
        "title": event.title,
        "when": when,
        "duration": format_duration(event),
        "location": event.location.name if event.location else None,
        "recurrence": describe_recurrence(event.recurrence) if event.recurrence else None,
        "priority": event.priority.value,
        "attendees": f"{len(event.attendees)} attendees" if event.attendees else None,
    }
