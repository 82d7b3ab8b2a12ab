"""Shared Pydantic models for API routers.

Request bodies mirror the Event / RecurrenceDescriptor fields in camelCase.
Values stay loosely typed here (strings for enums and timestamps) so the
engine, not Pydantic, decides what is valid and the router can answer 400
with the engine's message.

Usage in routers:
    from api.models import EventModel, QueryRequest
"""
from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from team_calendar.calendar import Event, ExpansionHorizon, FilterSpec
from team_calendar.calendar.types import parse_datetime


# =============================================================================
# Event Models
# =============================================================================

class LocationModel(BaseModel):
    name: str
    address: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None


class AttendeeModel(BaseModel):
    email: str = ""
    name: Optional[str] = None
    id: Optional[str] = None
    status: str = "pending"
    role: str = "attendee"


class ReminderModel(BaseModel):
    minutes: int
    type: str = "push"
    id: Optional[str] = None
    is_enabled: bool = Field(True, alias="isEnabled")

    model_config = ConfigDict(populate_by_name=True)


class RecurrenceModel(BaseModel):
    """Recurrence rule as sent by the frontend."""
    frequency: str
    interval: int = 1
    days_of_week: List[int] = Field(default_factory=list, alias="daysOfWeek")
    end_date: Optional[str] = Field(None, alias="endDate", description="Exclusive end (ISO date or datetime)")
    count: Optional[int] = None
    exceptions: List[str] = Field(default_factory=list, description="ISO dates with no occurrence")

    model_config = ConfigDict(populate_by_name=True)


class EventModel(BaseModel):
    """Event payload (base, single, or occurrence)."""
    id: str = Field("", description="Empty when creating")
    calendar_id: str = Field("default", alias="calendarId")
    title: str
    start: str = Field(..., description="Start time (ISO format)")
    end: str = Field(..., description="End time (ISO format)")
    all_day: bool = Field(False, alias="allDay")
    description: Optional[str] = None
    location: Optional[LocationModel] = None
    priority: str = "normal"
    status: str = "confirmed"
    tags: List[str] = Field(default_factory=list)
    category: Optional[str] = None
    attendees: List[AttendeeModel] = Field(default_factory=list)
    reminders: List[ReminderModel] = Field(default_factory=list)
    recurrence: Optional[RecurrenceModel] = None
    is_recurring: bool = Field(False, alias="isRecurring")
    original_event_id: Optional[str] = Field(None, alias="originalEventId")
    is_modified: bool = Field(False, alias="isModified")
    original_start: Optional[str] = Field(None, alias="originalStart")
    created_at: Optional[str] = Field(None, alias="createdAt")
    updated_at: Optional[str] = Field(None, alias="updatedAt")
    created_by: Optional[str] = Field(None, alias="createdBy")

    model_config = ConfigDict(populate_by_name=True)

    def to_event(self) -> Event:
        """Build the engine Event. Raises ValueError on invalid data."""
        return Event.from_dict(self.model_dump())


# =============================================================================
# Engine Request Models
# =============================================================================

class HorizonModel(BaseModel):
    until: Optional[str] = Field(None, description="Inclusive upper bound (ISO format)")
    max_occurrences: Optional[int] = Field(None, alias="maxOccurrences")

    model_config = ConfigDict(populate_by_name=True)

    def to_horizon(self) -> ExpansionHorizon:
        return ExpansionHorizon(until=parse_datetime(self.until), max_occurrences=self.max_occurrences)


class FilterModel(BaseModel):
    """Filter, search and sort criteria."""
    calendar_ids: Optional[List[str]] = Field(None, alias="calendarIds")
    range_start: Optional[str] = Field(None, alias="rangeStart")
    range_end: Optional[str] = Field(None, alias="rangeEnd")
    priorities: Optional[List[str]] = None
    categories: Optional[List[str]] = None
    tags: Optional[List[str]] = None
    statuses: Optional[List[str]] = None
    attendee_email: Optional[str] = Field(None, alias="attendeeEmail")
    query: Optional[str] = None
    sort_by: str = Field("start", alias="sortBy")
    sort_order: str = Field("asc", alias="sortOrder")

    model_config = ConfigDict(populate_by_name=True)

    def to_spec(self) -> FilterSpec:
        return FilterSpec.from_dict(self.model_dump())


class ExpandRequest(BaseModel):
    """Request body for expanding one recurring event."""
    event: EventModel
    horizon: Optional[HorizonModel] = None


class ConflictsRequest(BaseModel):
    """Request body for a stateless conflict check."""
    candidate: EventModel
    events: List[EventModel] = Field(default_factory=list, description="Corpus; recurring bases are expanded")


class QueryRequest(BaseModel):
    """Request body for a stateless query."""
    events: List[EventModel] = Field(default_factory=list, description="Corpus; recurring bases are expanded")
    filters: FilterModel = Field(default_factory=FilterModel, alias="filter")

    model_config = ConfigDict(populate_by_name=True)


# =============================================================================
# Stored Event Request Models
# =============================================================================

class SaveEventRequest(BaseModel):
    """Request body for creating or updating a stored event."""
    event: EventModel
    confirmed: bool = Field(False, description="Save even when conflicts were found")


class DuplicateEventRequest(BaseModel):
    days_offset: int = Field(0, alias="daysOffset", description="Shift the copy by this many days")
    title: Optional[str] = Field(None, description="Title for the copy (defaults to '<title> (Copy)')")
    confirmed: bool = Field(False, description="Save the copy even when it conflicts")

    model_config = ConfigDict(populate_by_name=True)


class SuggestionsRequest(BaseModel):
    limit: int = Field(3, ge=1, le=20)
    day_start_hour: int = Field(9, alias="dayStartHour")
    day_end_hour: int = Field(18, alias="dayEndHour")
    week_start_day: Optional[int] = Field(None, alias="weekStartDay")

    model_config = ConfigDict(populate_by_name=True)
