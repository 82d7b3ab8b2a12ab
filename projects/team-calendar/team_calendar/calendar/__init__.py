"""Calendar scheduling engine for Team Calendar.

This module provides the event model and the pure engine around it:
- Recurring event expansion (occurrences are derived, never stored)
- Conflict detection with kind and severity
- Filtering, search and sorting over an expanded corpus
- Statistics and display helpers

Storage follows the per-user JSONL file pattern in ``store``; ``corpus``
wires the store to the expander for the API and CLI.
"""
from __future__ import annotations

from .types import (
    Attendee,
    AttendeeRole,
    AttendeeStatus,
    ConflictKind,
    ConflictRecord,
    Event,
    EventStatus,
    FilterSpec,
    Frequency,
    Location,
    Priority,
    RecurrenceDescriptor,
    Reminder,
    Severity,
    SortField,
    SortOrder,
)

from .recurrence import (
    ExpansionHorizon,
    default_horizon,
    add_exception,
    describe_recurrence,
    detach_occurrence,
    expand,
    expand_corpus,
    occurrence_id,
    parse_occurrence_id,
)

from .conflicts import (
    SlotSuggestion,
    collides,
    detect,
    has_conflicts,
    suggest_reschedule_slots,
    summarize_conflicts,
)

from .query import (
    events_in_range,
    events_on_day,
    group_by_date,
    matches_text,
    query,
    search,
    view_range,
)

from .stats import (
    attendee_stats,
    event_stats,
    event_summary,
    format_duration,
    reminder_times,
)

from .corpus import (
    SaveCheck,
    check_before_save,
    load_corpus,
    without_own_occurrences,
)


__all__ = [
    # Types
    "Attendee",
    "AttendeeRole",
    "AttendeeStatus",
    "ConflictKind",
    "ConflictRecord",
    "Event",
    "EventStatus",
    "FilterSpec",
    "Frequency",
    "Location",
    "Priority",
    "RecurrenceDescriptor",
    "Reminder",
    "Severity",
    "SortField",
    "SortOrder",
    # Recurrence
    "ExpansionHorizon",
    "default_horizon",
    "add_exception",
    "describe_recurrence",
    "detach_occurrence",
    "expand",
    "expand_corpus",
    "occurrence_id",
    "parse_occurrence_id",
    # Conflicts
    "SlotSuggestion",
    "collides",
    "detect",
    "has_conflicts",
    "suggest_reschedule_slots",
    "summarize_conflicts",
    # Query
    "events_in_range",
    "events_on_day",
    "group_by_date",
    "matches_text",
    "query",
    "search",
    "view_range",
    # Stats
    "attendee_stats",
    "event_stats",
    "event_summary",
    "format_duration",
    "reminder_times",
    # Corpus
    "SaveCheck",
    "check_before_save",
    "load_corpus",
    "without_own_occurrences",
]
