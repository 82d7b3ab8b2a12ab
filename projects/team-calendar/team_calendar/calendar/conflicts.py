"""Scheduling conflict detection.

Checks a candidate event against an expanded corpus and reports which
existing events collide with it, how (plain time overlap, shared resource,
shared attendee) and how badly. Nothing here blocks a save: the create/update
flow shows the records and the user decides.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Sequence, Tuple

from ..dates import add_weeks, start_of_day, start_of_week, to_date
from ..errors import InvalidRangeError
from .types import (
    Attendee,
    AttendeeRole,
    ConflictKind,
    ConflictRecord,
    Event,
    Priority,
    Severity,
)

logger = logging.getLogger(__name__)

ESCALATED_PRIORITIES = frozenset({Priority.URGENT, Priority.CRITICAL})


# =============================================================================
# Collision rules
# =============================================================================

def collides(a: Event, b: Event) -> bool:
    """Return True when the two events occupy overlapping calendar time.

    - all-day vs all-day: same start day
    - timed vs timed: half-open overlap, touching endpoints do not collide
    - mixed: the timed event's start date falls within the all-day span
    """
    if a.all_day and b.all_day:
        return to_date(a.start) == to_date(b.start)
    if not a.all_day and not b.all_day:
        return a.start < b.end and a.end > b.start
    all_day, timed = (a, b) if a.all_day else (b, a)
    return to_date(all_day.start) <= to_date(timed.start) <= to_date(all_day.end)


def _shared_attendees(a: Event, b: Event) -> List[Tuple[Attendee, Attendee]]:
    index = {att.key: att for att in a.attendees if att.key}
    return [(index[att.key], att) for att in b.attendees if att.key in index]


def _classify(candidate: Event, existing: Event) -> Tuple[ConflictKind, Severity]:
    shared = _shared_attendees(candidate, existing)

    if any(
        mine.role is AttendeeRole.RESOURCE and theirs.role is AttendeeRole.RESOURCE
        for mine, theirs in shared
    ):
        kind = ConflictKind.RESOURCE_CONFLICT
    elif shared:
        kind = ConflictKind.ATTENDEE_CONFLICT
    else:
        kind = ConflictKind.TIME_OVERLAP

    both_escalated = (
        candidate.priority in ESCALATED_PRIORITIES
        and existing.priority in ESCALATED_PRIORITIES
    )
    shared_organizer = any(mine.is_organizer or theirs.is_organizer for mine, theirs in shared)

    if both_escalated or shared_organizer:
        severity = Severity.HIGH
    elif shared:
        severity = Severity.MEDIUM
    else:
        severity = Severity.LOW

    return kind, severity


# =============================================================================
# Public API
# =============================================================================

def detect(candidate: Event, corpus: Iterable[Event]) -> List[ConflictRecord]:
    """Find every corpus event that collides with ``candidate``.

    Args:
        candidate: Event about to be created or updated
        corpus: Expanded events to check against (occurrences included)

    Returns:
        ConflictRecords ordered by severity (high first), then by the
        existing event's start, then by id

    Raises:
        InvalidEventError: if ``candidate`` breaks its own invariants
    """
    candidate.validate()

    records: List[ConflictRecord] = []
    for existing in corpus:
        if existing.id == candidate.id:
            continue
        if not collides(candidate, existing):
            continue
        kind, severity = _classify(candidate, existing)
        records.append(ConflictRecord(event=existing, kind=kind, severity=severity))

    records.sort(key=lambda r: (-r.severity.rank, r.event.start, r.event.id))

    if records:
        logger.debug(f"Event {candidate.id or '<new>'} conflicts with {len(records)} events")
    return records


def has_conflicts(candidate: Event, corpus: Iterable[Event]) -> bool:
    return bool(detect(candidate, corpus))


def summarize_conflicts(records: Sequence[ConflictRecord]) -> Dict[str, Any]:
    """Count conflict records by kind and by severity."""
    summary: Dict[str, Any] = {
        "total": len(records),
        "types": {kind.value: 0 for kind in ConflictKind},
        "severity": {severity.value: 0 for severity in Severity},
    }
    for record in records:
        summary["types"][record.kind.value] += 1
        summary["severity"][record.severity.value] += 1
    return summary


# =============================================================================
# Reschedule suggestions
# =============================================================================

@dataclass(slots=True)
class SlotSuggestion:
    """A conflict-free alternative time for a candidate event."""

    start: datetime
    end: datetime
    reason: str  # "same_week", "next_week", "previous_week"

    def to_api_dict(self) -> Dict[str, Any]:
        return {
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
            "reason": self.reason,
        }


def _is_free(slot: Event, corpus: List[Event]) -> bool:
    return not any(e.id != slot.id and collides(slot, e) for e in corpus)


def _same_week_starts(
    candidate: Event,
    week_start_day: int,
    day_start_hour: int,
    day_end_hour: int,
) -> List[datetime]:
    week_start = start_of_week(candidate.start, week_start_day)
    days = [week_start + timedelta(days=i) for i in range(7)]
    offset = (to_date(candidate.start) - to_date(week_start)).days
    # Candidate's own day first, then the rest of the week, then earlier days
    ordered = days[offset:] + days[:offset]

    if candidate.all_day:
        time_of_day = candidate.start - start_of_day(candidate.start)
        return [day + time_of_day for day in ordered]

    starts = []
    for day in ordered:
        hour = day_start_hour
        while True:
            start = day.replace(hour=hour)
            if start + candidate.duration > day.replace(hour=day_end_hour):
                break
            starts.append(start)
            hour += 1
            if hour >= 24:
                break
    return starts


def suggest_reschedule_slots(
    candidate: Event,
    corpus: Iterable[Event],
    limit: int = 3,
    day_start_hour: int = 9,
    day_end_hour: int = 18,
    week_start_day: int = 0,
) -> List[SlotSuggestion]:
    """Propose conflict-free times for ``candidate``.

    Same-week slots come first (hourly within working hours for timed events,
    other days for all-day events), followed by moving the event one week
    later or one week earlier when that is free. Week moves are always kept
    when free; same-week slots fill the remaining places.

    Args:
        candidate: The conflicting event, kept at its current duration
        corpus: Expanded events to avoid
        limit: Maximum number of suggestions
        day_start_hour: First hour a timed slot may start
        day_end_hour: Hour by which a timed slot must end
        week_start_day: 0 for Sunday-based weeks, 1 for Monday-based weeks

    Returns:
        Up to ``limit`` suggestions. Nothing is persisted.
    """
    candidate.validate()
    if not 0 <= day_start_hour < day_end_hour <= 23:
        raise InvalidRangeError(
            f"Working hours must satisfy 0 <= start < end <= 23, got {day_start_hour}-{day_end_hour}"
        )
    if limit <= 0:
        return []

    corpus = list(corpus)
    duration = candidate.duration

    def free_at(start: datetime) -> bool:
        return _is_free(replace(candidate, start=start, end=start + duration), corpus)

    moves: List[SlotSuggestion] = []
    for weeks, reason in ((1, "next_week"), (-1, "previous_week")):
        start = add_weeks(candidate.start, weeks)
        if free_at(start):
            moves.append(SlotSuggestion(start=start, end=start + duration, reason=reason))
    moves = moves[:limit]

    same_week: List[SlotSuggestion] = []
    room = limit - len(moves)
    for start in _same_week_starts(candidate, week_start_day, day_start_hour, day_end_hour):
        if len(same_week) >= room:
            break
        if start == candidate.start:
            continue
        if free_at(start):
            same_week.append(SlotSuggestion(start=start, end=start + duration, reason="same_week"))

    return same_week + moves
