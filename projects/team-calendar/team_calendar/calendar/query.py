"""Event filtering, search and sorting.

``query`` makes one pass over the corpus with every populated FilterSpec
dimension checked per event, then sorts once. Output order is fully
deterministic: ties on the chosen sort key fall back to start, then id.
"""
from __future__ import annotations

import logging
from datetime import date, datetime, time
from typing import Callable, Dict, Iterable, List, Optional, Tuple, Union

from ..dates import (
    end_of_day,
    end_of_month,
    end_of_week,
    start_of_day,
    start_of_month,
    start_of_week,
    to_date,
)
from ..errors import InvalidRangeError
from .types import Event, FilterSpec, SortField, SortOrder

logger = logging.getLogger(__name__)

VIEWS = ("month", "week", "day")


def _tiebreak_key(event: Event) -> Tuple[datetime, str]:
    return (event.start, event.id)


SORT_KEYS: Dict[SortField, Callable[[Event], object]] = {
    SortField.START: lambda e: e.start,
    SortField.TITLE: lambda e: e.title.casefold(),
    SortField.PRIORITY: lambda e: e.priority.weight,
    SortField.CREATED: lambda e: e.created_at or e.start,
    SortField.MODIFIED: lambda e: e.updated_at or e.created_at or e.start,
}


def matches_text(event: Event, text: str) -> bool:
    """Case-insensitive substring match over the searchable fields.

    ``text`` is expected lowercased and stripped.
    """
    if text in event.title.lower():
        return True
    if event.description and text in event.description.lower():
        return True
    if event.location and event.location.name and text in event.location.name.lower():
        return True
    for attendee in event.attendees:
        if attendee.name and text in attendee.name.lower():
            return True
        if attendee.email and text in attendee.email.lower():
            return True
    return any(text in tag.lower() for tag in event.tags)


def search(events: Iterable[Event], text: Optional[str]) -> List[Event]:
    """Free-text search. A blank query returns the input unchanged."""
    needle = (text or "").strip().lower()
    if not needle:
        return list(events)
    return [e for e in events if matches_text(e, needle)]


def query(corpus: Iterable[Event], spec: Optional[FilterSpec] = None) -> List[Event]:
    """Filter and sort events.

    Args:
        corpus: Expanded events (occurrences included)
        spec: Filter, search and sort criteria; None means match everything
            and sort by start ascending

    Returns:
        Matching events. The result is always a subset of the unfiltered
        query over the same corpus.
    """
    spec = spec or FilterSpec()

    # Precompute lookups once so the scan stays single-pass
    calendar_ids = set(spec.calendar_ids) if spec.calendar_ids else None
    priorities = set(spec.priorities) if spec.priorities else None
    categories = set(spec.categories) if spec.categories else None
    tags = set(spec.tags) if spec.tags else None
    statuses = set(spec.statuses) if spec.statuses else None
    email = (spec.attendee_email or "").strip().lower()
    text = (spec.query or "").strip().lower()
    range_start = spec.range_start
    range_end = spec.range_end

    matched: List[Event] = []
    for event in corpus:
        if calendar_ids is not None and event.calendar_id not in calendar_ids:
            continue
        if range_start is not None and event.start < range_start:
            continue
        if range_end is not None and event.start > range_end:
            continue
        if priorities is not None and event.priority not in priorities:
            continue
        if categories is not None and event.category not in categories:
            continue
        if tags is not None and tags.isdisjoint(event.tags):
            continue
        if statuses is not None and event.status not in statuses:
            continue
        if email and not any(email in a.email.lower() for a in event.attendees if a.email):
            continue
        if text and not matches_text(event, text):
            continue
        matched.append(event)

    # Two stable sorts: primary key, then start, then id
    matched.sort(key=_tiebreak_key)
    matched.sort(key=SORT_KEYS[spec.sort_by], reverse=spec.sort_order is SortOrder.DESC)

    logger.debug(f"Query matched {len(matched)} events")
    return matched


# =============================================================================
# View helpers
# =============================================================================

def _as_datetime(value: Union[date, datetime]) -> datetime:
    if isinstance(value, datetime):
        return value
    return datetime.combine(value, time.min)


def view_range(view: str, anchor: Union[date, datetime], week_start_day: int = 0) -> Tuple[datetime, datetime]:
    """Visible range for a calendar view.

    Args:
        view: "month", "week" or "day"
        anchor: Any moment inside the wanted period
        week_start_day: 0 for Sunday-based weeks, 1 for Monday-based weeks

    Returns:
        (start, end) with both ends inclusive
    """
    moment = _as_datetime(anchor)
    if view == "month":
        return start_of_month(moment), end_of_month(moment)
    if view == "week":
        return start_of_week(moment, week_start_day), end_of_week(moment, week_start_day)
    if view == "day":
        return start_of_day(moment), end_of_day(moment)
    raise InvalidRangeError(f"Unknown view {view!r}; expected one of: {', '.join(VIEWS)}")


def _overlaps(event: Event, start: datetime, end: datetime) -> bool:
    if event.all_day:
        return to_date(event.start) <= to_date(end) and to_date(event.end) >= to_date(start)
    return event.start <= end and event.end > start


def events_in_range(
    events: Iterable[Event],
    start: Union[date, datetime],
    end: Union[date, datetime],
) -> List[Event]:
    """Events overlapping ``[start, end]``, ordered by start then id."""
    range_start = _as_datetime(start)
    range_end = end_of_day(_as_datetime(end)) if not isinstance(end, datetime) else end
    if range_end < range_start:
        raise InvalidRangeError(
            f"Range end {range_end.isoformat()} is before start {range_start.isoformat()}"
        )
    found = [e for e in events if _overlaps(e, range_start, range_end)]
    found.sort(key=_tiebreak_key)
    return found


def events_on_day(events: Iterable[Event], day: Union[date, datetime]) -> List[Event]:
    """Events touching the given calendar day (multi-day events included)."""
    start = start_of_day(_as_datetime(day))
    return events_in_range(events, start, end_of_day(start))


def group_by_date(events: Iterable[Event]) -> Dict[date, List[Event]]:
    """Group events by start date, dates ascending."""
    grouped: Dict[date, List[Event]] = {}
    for event in sorted(events, key=_tiebreak_key):
        grouped.setdefault(to_date(event.start), []).append(event)
    return dict(sorted(grouped.items()))
