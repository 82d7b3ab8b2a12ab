"""Calendar Router - expansion, conflicts, queries and stored events.

Handles:
- Stateless engine endpoints (corpus supplied in the request body)
- Stored event CRUD with the pre-save conflict check
- Editing or deleting a single occurrence of a recurring series
- Reschedule suggestions and calendar statistics
"""
from __future__ import annotations

import logging
from dataclasses import replace
from datetime import date, datetime, timedelta
from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, Query

from api.dependencies import (
    bad_request,
    get_current_user,
    get_settings,
    not_found,
    serialize_events,
)
from api.models import (
    ConflictsRequest,
    DuplicateEventRequest,
    EventModel,
    ExpandRequest,
    QueryRequest,
    SaveEventRequest,
    SuggestionsRequest,
)
from team_calendar.calendar import (
    Event,
    ExpansionHorizon,
    FilterSpec,
    add_exception,
    check_before_save,
    default_horizon,
    describe_recurrence,
    detach_occurrence,
    detect,
    event_stats,
    expand,
    expand_corpus,
    load_corpus,
    parse_occurrence_id,
    query,
    suggest_reschedule_slots,
    summarize_conflicts,
    view_range,
    without_own_occurrences,
)
from team_calendar.calendar import store
from team_calendar.calendar.types import parse_datetime
from team_calendar.dates import DateRange, end_of_week, start_of_week, to_date
from team_calendar.errors import InvalidRangeError

logger = logging.getLogger(__name__)

router = APIRouter()

# Fields a user may change when editing a single occurrence
_OCCURRENCE_EDIT_FIELDS = (
    "title",
    "start",
    "end",
    "all_day",
    "description",
    "location",
    "priority",
    "status",
    "tags",
    "category",
    "attendees",
    "reminders",
)


# =============================================================================
# Helpers
# =============================================================================

def _expand_request_corpus(models: List[EventModel]) -> List[Event]:
    settings = get_settings()
    return expand_corpus(
        [m.to_event() for m in models],
        ceiling=settings.max_occurrences,
        horizon_days=settings.default_horizon_days,
    )


def _resolve_range(
    start: Optional[str],
    end: Optional[str],
    view: Optional[str],
    anchor: Optional[str],
    week_start_day: int,
) -> Optional[DateRange]:
    if view:
        first, last = view_range(view, parse_datetime(anchor) or datetime.now(), week_start_day)
        return DateRange(first, last)
    if start or end:
        if not (start and end):
            raise InvalidRangeError("start and end must be given together")
        return DateRange(parse_datetime(start), parse_datetime(end))
    return None


def _find_occurrence(base: Event, day: date) -> Optional[Event]:
    settings = get_settings()
    occurrences = expand(
        base,
        base.recurrence,
        ExpansionHorizon(until=day, since=day),
        ceiling=settings.max_occurrences,
    )
    return next((o for o in occurrences if to_date(o.start) == day), None)


def _detach_for_update(user: str, event_id: str, edited: Event) -> Event:
    """Turn an edit of a derived occurrence into a detached event."""
    parsed = parse_occurrence_id(event_id)
    base = store.get_event(user, parsed[0]) if parsed else None
    if base is None or not base.is_base_recurring:
        raise not_found(event_id)

    occurrence = _find_occurrence(base, parsed[1])
    if occurrence is None:
        raise not_found(event_id)

    changes = {name: getattr(edited, name) for name in _OCCURRENCE_EDIT_FIELDS}
    return detach_occurrence(occurrence, **changes)


def _save_with_check(user: str, candidate: Event, confirmed: bool, *, created: bool) -> dict:
    """Check for conflicts, then save unless the user still has to confirm."""
    settings = get_settings()
    check = check_before_save(candidate, load_corpus(user, settings=settings), settings)

    if check.requires_confirmation and not confirmed:
        logger.info(
            f"Event {candidate.id or '<new>'} for {user} awaits confirmation ({len(check.conflicts)} conflicts)"
        )
        return {
            "status": "pending_confirmation",
            "event": candidate.to_api_dict(),
            "created": False,
            **check.to_api_dict(),
        }

    saved = store.save_event(user, candidate)
    return {
        "status": "saved",
        "event": saved.to_api_dict(),
        "created": created,
        **check.to_api_dict(),
    }


# =============================================================================
# Engine Endpoints (stateless)
# =============================================================================

@router.post("/expand")
def expand_endpoint(
    request: ExpandRequest,
    user: str = Depends(get_current_user),
) -> dict:
    """Expand one recurring event into its occurrences."""
    settings = get_settings()
    try:
        base = request.event.to_event()
        if request.horizon is not None:
            horizon = request.horizon.to_horizon()
        else:
            horizon = default_horizon(base, settings.default_horizon_days)
        occurrences = expand(base, base.recurrence, horizon, ceiling=settings.max_occurrences)
    except ValueError as exc:
        raise bad_request(exc)

    response = serialize_events(occurrences)
    response["description"] = describe_recurrence(base.recurrence)
    return response


@router.post("/conflicts")
def conflicts_endpoint(
    request: ConflictsRequest,
    user: str = Depends(get_current_user),
) -> dict:
    """Check a candidate event against a supplied corpus."""
    try:
        candidate = request.candidate.to_event()
        corpus = without_own_occurrences(candidate, _expand_request_corpus(request.events))
        records = detect(candidate, corpus)
    except ValueError as exc:
        raise bad_request(exc)

    return {
        "conflicts": [r.to_api_dict() for r in records],
        "summary": summarize_conflicts(records),
        "hasConflicts": bool(records),
    }


@router.post("/query")
def query_endpoint(
    request: QueryRequest,
    user: str = Depends(get_current_user),
) -> dict:
    """Filter, search and sort a supplied corpus."""
    try:
        corpus = _expand_request_corpus(request.events)
        spec = request.filters.to_spec()
        events = query(corpus, spec)
    except ValueError as exc:
        raise bad_request(exc)

    return serialize_events(events)


# =============================================================================
# Stored Event Endpoints
# =============================================================================

@router.get("/events")
def list_events_endpoint(
    start: Optional[str] = Query(None, description="Start of date range (ISO format)"),
    end: Optional[str] = Query(None, description="End of date range (ISO format)"),
    view: Optional[Literal["month", "week", "day"]] = Query(None),
    anchor: Optional[str] = Query(None, description="Any moment inside the view (defaults to now)"),
    calendar_id: Optional[List[str]] = Query(None, alias="calendarId"),
    priority: Optional[List[str]] = Query(None),
    status: Optional[List[str]] = Query(None),
    tag: Optional[List[str]] = Query(None),
    category: Optional[List[str]] = Query(None),
    attendee: Optional[str] = Query(None, description="Attendee email substring"),
    q: Optional[str] = Query(None, description="Free-text search"),
    sort_by: str = Query("start", alias="sortBy"),
    sort_order: str = Query("asc", alias="sortOrder"),
    user: str = Depends(get_current_user),
) -> dict:
    """List stored events with recurring series expanded."""
    settings = get_settings()
    try:
        date_range = _resolve_range(start, end, view, anchor, settings.week_start_day)
        spec = FilterSpec(
            priorities=priority,
            statuses=status,
            tags=tag,
            categories=category,
            attendee_email=attendee,
            query=q,
            sort_by=sort_by,
            sort_order=sort_order,
        )
        corpus = load_corpus(user, calendar_id, date_range, settings=settings)
        events = query(corpus, spec)
    except ValueError as exc:
        raise bad_request(exc)

    return serialize_events(events)


@router.post("/events")
def create_event_endpoint(
    request: SaveEventRequest,
    user: str = Depends(get_current_user),
) -> dict:
    """Create an event.

    When the event conflicts with existing ones and ``confirmed`` is false,
    nothing is saved and the conflicts are returned for the user to review.
    """
    try:
        candidate = request.event.to_event()
        candidate = replace(
            candidate,
            id="",
            is_recurring=False,
            created_at=None,
            created_by=candidate.created_by or user,
        )
        return _save_with_check(user, candidate, request.confirmed, created=True)
    except ValueError as exc:
        raise bad_request(exc)


@router.put("/events/{event_id}")
def update_event_endpoint(
    event_id: str,
    request: SaveEventRequest,
    user: str = Depends(get_current_user),
) -> dict:
    """Update a stored event, or detach and update a single occurrence."""
    try:
        edited = request.event.to_event()
        existing = store.get_event(user, event_id)
        if existing is not None:
            candidate = replace(
                edited,
                id=event_id,
                is_recurring=False,
                original_event_id=existing.original_event_id,
                is_modified=existing.is_modified,
                original_start=existing.original_start,
                created_at=existing.created_at,
                created_by=existing.created_by,
            )
        else:
            candidate = _detach_for_update(user, event_id, edited)
        return _save_with_check(user, candidate, request.confirmed, created=False)
    except ValueError as exc:
        raise bad_request(exc)


@router.delete("/events/{event_id}")
def delete_event_endpoint(
    event_id: str,
    user: str = Depends(get_current_user),
) -> dict:
    """Delete a stored event, or cancel a single occurrence of a series."""
    existing = store.get_event(user, event_id)
    if existing is not None:
        store.delete_event(user, event_id)
        response = {"deleted": True, "eventId": event_id}
        # A deleted detached occurrence must not come back from its base
        base = store.get_event(user, existing.original_event_id) if existing.is_detached else None
        if base is not None and base.is_base_recurring and existing.original_start is not None:
            store.save_event(user, add_exception(base, existing.original_start))
            response["exceptionAdded"] = to_date(existing.original_start).isoformat()
        return response

    parsed = parse_occurrence_id(event_id)
    base = store.get_event(user, parsed[0]) if parsed else None
    if base is None or not base.is_base_recurring:
        raise not_found(event_id)

    store.save_event(user, add_exception(base, parsed[1]))
    return {"deleted": True, "eventId": event_id, "exceptionAdded": parsed[1].isoformat()}


@router.post("/events/{event_id}/duplicate")
def duplicate_event_endpoint(
    event_id: str,
    request: Optional[DuplicateEventRequest] = None,
    user: str = Depends(get_current_user),
) -> dict:
    """Copy a stored event, optionally shifted by a number of days.

    The copy goes through the same conflict check as a new event.
    """
    request = request or DuplicateEventRequest()
    source = store.get_event(user, event_id)
    if source is None:
        raise not_found(event_id)

    shift = timedelta(days=request.days_offset)
    try:
        copy = replace(
            source,
            id="",
            title=request.title or f"{source.title} (Copy)",
            start=source.start + shift,
            end=source.end + shift,
            original_event_id=None,
            is_modified=False,
            original_start=None,
            created_at=None,
            updated_at=None,
            created_by=user,
        )
        return _save_with_check(user, copy, request.confirmed, created=True)
    except ValueError as exc:
        raise bad_request(exc)


@router.post("/events/{event_id}/suggestions")
def suggestions_endpoint(
    event_id: str,
    request: Optional[SuggestionsRequest] = None,
    user: str = Depends(get_current_user),
) -> dict:
    """Suggest conflict-free times for an event (occurrences included)."""
    request = request or SuggestionsRequest()
    settings = get_settings()
    corpus = load_corpus(user, settings=settings)

    target = next((e for e in corpus if e.id == event_id), None) or store.get_event(user, event_id)
    if target is None:
        raise not_found(event_id)

    week_start_day = settings.week_start_day if request.week_start_day is None else request.week_start_day
    others = without_own_occurrences(target, corpus)
    try:
        suggestions = suggest_reschedule_slots(
            target,
            others,
            limit=request.limit,
            day_start_hour=request.day_start_hour,
            day_end_hour=request.day_end_hour,
            week_start_day=week_start_day,
        )
        conflicts = detect(target, others)
    except ValueError as exc:
        raise bad_request(exc)

    return {
        "eventId": event_id,
        "conflicts": [c.to_api_dict() for c in conflicts],
        "suggestions": [s.to_api_dict() for s in suggestions],
    }


@router.get("/stats")
def stats_endpoint(
    today: Optional[str] = Query(None, description="Reference day (ISO format, defaults to now)"),
    calendar_id: Optional[List[str]] = Query(None, alias="calendarId"),
    user: str = Depends(get_current_user),
) -> dict:
    """Event counts for the month around ``today`` (widened to whole weeks)."""
    settings = get_settings()
    try:
        reference = parse_datetime(today) or datetime.now()
        month_first, month_last = view_range("month", reference)
        window = DateRange(
            min(month_first, start_of_week(reference, settings.week_start_day)),
            max(month_last, end_of_week(reference, settings.week_start_day)),
        )
        corpus = load_corpus(user, calendar_id, window, settings=settings)
    except ValueError as exc:
        raise bad_request(exc)

    stats = event_stats(corpus, reference, settings.week_start_day)
    return {
        "today": to_date(reference).isoformat(),
        "rangeStart": window.start.isoformat(),
        "rangeEnd": window.end.isoformat(),
        "total": stats["total"],
        "todayCount": stats["today"],
        "thisWeek": stats["this_week"],
        "thisMonth": stats["this_month"],
        "byPriority": stats["by_priority"],
        "byStatus": stats["by_status"],
        "byCalendar": stats["by_calendar"],
    }
