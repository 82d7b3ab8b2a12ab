"""Validation errors raised by the scheduling engine.

Every error is raised synchronously at the start of the offending call and
before any output is produced. Callers surface the message to the user.
"""
from __future__ import annotations


class CalendarEngineError(ValueError):
    """Base class for engine validation failures."""


class InvalidRangeError(CalendarEngineError):
    """Raised when a date range is malformed (end before start)."""


class InvalidRecurrenceError(CalendarEngineError):
    """Raised when a recurrence descriptor cannot be expanded."""


class InvalidEventError(CalendarEngineError):
    """Raised when an event violates its invariants (e.g. end <= start)."""
