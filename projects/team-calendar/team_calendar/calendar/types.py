"""Calendar data types."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone
from enum import Enum
from typing import Any, Dict, FrozenSet, Iterable, List, Optional, Tuple, Type, TypeVar

from ..dates import end_of_day, to_date
from ..errors import (
    CalendarEngineError,
    InvalidEventError,
    InvalidRangeError,
    InvalidRecurrenceError,
)


class Priority(str, Enum):
    """Event priority levels, highest first."""

    CRITICAL = "critical"
    URGENT = "urgent"
    HIGH = "high"
    NORMAL = "normal"
    LOW = "low"

    @property
    def weight(self) -> int:
        return PRIORITY_WEIGHTS[self]


PRIORITY_WEIGHTS = {
    Priority.CRITICAL: 5,
    Priority.URGENT: 4,
    Priority.HIGH: 3,
    Priority.NORMAL: 2,
    Priority.LOW: 1,
}


class EventStatus(str, Enum):
    CONFIRMED = "confirmed"
    TENTATIVE = "tentative"
    CANCELLED = "cancelled"
    PENDING = "pending"


class AttendeeStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"
    TENTATIVE = "tentative"


class AttendeeRole(str, Enum):
    ORGANIZER = "organizer"
    ATTENDEE = "attendee"
    OPTIONAL = "optional"
    RESOURCE = "resource"  # Rooms, equipment


class Frequency(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


class ConflictKind(str, Enum):
    TIME_OVERLAP = "time_overlap"
    RESOURCE_CONFLICT = "resource_conflict"
    ATTENDEE_CONFLICT = "attendee_conflict"


class Severity(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        return {"high": 3, "medium": 2, "low": 1}[self.value]


class SortField(str, Enum):
    START = "start"
    TITLE = "title"
    PRIORITY = "priority"
    CREATED = "created"
    MODIFIED = "modified"


class SortOrder(str, Enum):
    ASC = "asc"
    DESC = "desc"


E = TypeVar("E", bound=Enum)


def coerce_enum(
    enum_cls: Type[E],
    value: Any,
    label: str,
    error_cls: Type[CalendarEngineError] = CalendarEngineError,
) -> E:
    """Convert a raw string into ``enum_cls``, rejecting unknown values."""
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(str(value).strip().lower())
    except ValueError:
        allowed = ", ".join(member.value for member in enum_cls)
        raise error_cls(f"Unknown {label} {value!r}; expected one of: {allowed}") from None


def _dt_to_str(value: Optional[date]) -> Optional[str]:
    return value.isoformat() if value else None


def parse_datetime(value: Any) -> Optional[datetime]:
    """Parse a timestamp into a naive datetime in the reference zone (UTC).

    Offset-aware values are converted to UTC and stripped of their tzinfo,
    the same form the store writes, so every event in a corpus compares
    against every other.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        return datetime.combine(value, time.min)
    else:
        parsed = datetime.fromisoformat(str(value))
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def _parse_day(value: Any) -> date:
    if isinstance(value, (date, datetime)):
        return to_date(value)
    return to_date(datetime.fromisoformat(str(value)))


@dataclass(slots=True)
class Location:
    """Where an event takes place."""

    name: str
    address: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "address": self.address,
            "latitude": self.latitude,
            "longitude": self.longitude,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Location":
        return cls(
            name=data.get("name", ""),
            address=data.get("address"),
            latitude=data.get("latitude"),
            longitude=data.get("longitude"),
        )


@dataclass(slots=True)
class Attendee:
    """Calendar event attendee."""

    email: str = ""
    name: Optional[str] = None
    id: Optional[str] = None
    status: AttendeeStatus = AttendeeStatus.PENDING
    role: AttendeeRole = AttendeeRole.ATTENDEE

    def __post_init__(self) -> None:
        self.status = coerce_enum(AttendeeStatus, self.status, "attendee status", InvalidEventError)
        self.role = coerce_enum(AttendeeRole, self.role, "attendee role", InvalidEventError)

    @property
    def key(self) -> str:
        """Identity used to match the same person across events."""
        if self.email:
            return self.email.strip().lower()
        return self.id or (self.name or "").strip().lower()

    @property
    def is_organizer(self) -> bool:
        return self.role is AttendeeRole.ORGANIZER

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "status": self.status.value,
            "role": self.role.value,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Attendee":
        return cls(
            email=data.get("email") or "",
            name=data.get("name"),
            id=data.get("id"),
            status=data.get("status", AttendeeStatus.PENDING.value),
            role=data.get("role", AttendeeRole.ATTENDEE.value),
        )


@dataclass(slots=True)
class Reminder:
    """Notification scheduled relative to an event start."""

    minutes: int
    type: str = "push"  # "push", "email"
    id: Optional[str] = None
    is_enabled: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "minutes": self.minutes,
            "is_enabled": self.is_enabled,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Reminder":
        return cls(
            minutes=int(data.get("minutes", 0)),
            type=data.get("type", "push"),
            id=data.get("id"),
            is_enabled=bool(data.get("is_enabled", True)),
        )


@dataclass(slots=True)
class RecurrenceDescriptor:
    """Structured recurrence rule carried by a base event.

    ``end_date`` is an exclusive upper bound and may be a date or datetime.
    ``end_date`` and ``count`` are mutually exclusive; with neither set the
    expander still applies its horizon and occurrence ceiling.
    """

    frequency: Frequency
    interval: int = 1
    days_of_week: Tuple[int, ...] = ()  # 0=Sunday..6=Saturday, weekly only
    end_date: Optional[date] = None
    count: Optional[int] = None
    exceptions: FrozenSet[date] = frozenset()

    def __post_init__(self) -> None:
        self.frequency = coerce_enum(
            Frequency, self.frequency, "recurrence frequency", InvalidRecurrenceError
        )
        self.days_of_week = tuple(sorted(set(self.days_of_week or ())))
        self.exceptions = frozenset(_parse_day(d) for d in (self.exceptions or ()))
        self.validate()

    def validate(self) -> None:
        """Raise InvalidRecurrenceError if the rule cannot be expanded."""
        if not isinstance(self.frequency, Frequency):
            raise InvalidRecurrenceError(f"Unknown recurrence frequency {self.frequency!r}")
        if isinstance(self.interval, bool) or not isinstance(self.interval, int) or self.interval <= 0:
            raise InvalidRecurrenceError(f"interval must be a positive integer, got {self.interval!r}")
        if self.end_date is not None and self.count is not None:
            raise InvalidRecurrenceError("Set either end_date or count, not both")
        if self.count is not None and (
            isinstance(self.count, bool) or not isinstance(self.count, int) or self.count <= 0
        ):
            raise InvalidRecurrenceError(f"count must be a positive integer, got {self.count!r}")
        for day in self.days_of_week:
            if isinstance(day, bool) or not isinstance(day, int) or not 0 <= day <= 6:
                raise InvalidRecurrenceError(f"days_of_week entries must be 0..6, got {day!r}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "frequency": self.frequency.value,
            "interval": self.interval,
            "days_of_week": list(self.days_of_week),
            "end_date": _dt_to_str(self.end_date),
            "count": self.count,
            "exceptions": sorted(d.isoformat() for d in self.exceptions),
        }

    def to_api_dict(self) -> Dict[str, Any]:
        return {
            "frequency": self.frequency.value,
            "interval": self.interval,
            "daysOfWeek": list(self.days_of_week),
            "endDate": _dt_to_str(self.end_date),
            "count": self.count,
            "exceptions": sorted(d.isoformat() for d in self.exceptions),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RecurrenceDescriptor":
        end_date = data.get("end_date")
        if isinstance(end_date, str):
            # Bare dates stay dates so they compare at day granularity
            end_date = _parse_day(end_date) if len(end_date) == 10 else parse_datetime(end_date)
        return cls(
            frequency=data.get("frequency", ""),
            interval=1 if data.get("interval") is None else data["interval"],
            days_of_week=tuple(data.get("days_of_week") or ()),
            end_date=end_date,
            count=data.get("count"),
            exceptions=frozenset(_parse_day(d) for d in data.get("exceptions") or ()),
        )


@dataclass(slots=True)
class Event:
    """A calendar event, a recurring base event, or a derived occurrence.

    Timestamps are assumed to be normalized to one reference zone by the
    caller. For all-day events ``start``/``end`` are read at day granularity.
    """

    id: str
    calendar_id: str
    title: str
    start: datetime
    end: datetime
    all_day: bool = False

    description: Optional[str] = None
    location: Optional[Location] = None

    priority: Priority = Priority.NORMAL
    status: EventStatus = EventStatus.CONFIRMED
    tags: List[str] = field(default_factory=list)
    category: Optional[str] = None

    attendees: List[Attendee] = field(default_factory=list)
    reminders: List[Reminder] = field(default_factory=list)

    # Base events only
    recurrence: Optional[RecurrenceDescriptor] = None

    # Derived / detached occurrences only
    is_recurring: bool = False
    original_event_id: Optional[str] = None
    is_modified: bool = False
    original_start: Optional[datetime] = None

    # Metadata
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    created_by: Optional[str] = None

    def __post_init__(self) -> None:
        self.priority = coerce_enum(Priority, self.priority, "priority", InvalidEventError)
        self.status = coerce_enum(EventStatus, self.status, "status", InvalidEventError)
        if isinstance(self.start, date):
            self.start = parse_datetime(self.start)
        if isinstance(self.end, date):
            self.end = parse_datetime(self.end)
        if isinstance(self.original_start, date):
            self.original_start = parse_datetime(self.original_start)
        self.tags = list(self.tags or [])
        self.validate()

    def validate(self) -> None:
        """Raise InvalidEventError if the event breaks its invariants."""
        if not isinstance(self.start, datetime) or not isinstance(self.end, datetime):
            raise InvalidEventError(f"Event {self.id!r} needs start and end timestamps")
        if self.all_day:
            if self.end.date() < self.start.date():
                raise InvalidEventError(
                    f"All-day event {self.id!r} ends ({self.end.date()}) before it starts ({self.start.date()})"
                )
        elif self.end <= self.start:
            raise InvalidEventError(
                f"Event {self.id!r} must end after it starts ({self.start.isoformat()} - {self.end.isoformat()})"
            )
        if self.is_recurring and self.recurrence is not None:
            raise InvalidEventError(f"Occurrence {self.id!r} cannot carry its own recurrence rule")

    @property
    def duration(self) -> timedelta:
        return self.end - self.start

    @property
    def duration_minutes(self) -> int:
        """Event duration in minutes."""
        return int(self.duration.total_seconds() // 60)

    @property
    def is_base_recurring(self) -> bool:
        return self.recurrence is not None and not self.is_recurring

    @property
    def is_detached(self) -> bool:
        return self.is_modified and self.original_event_id is not None

    @property
    def attendee_emails(self) -> List[str]:
        return [a.email for a in self.attendees if a.email]

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for storage."""
        return {
            "id": self.id,
            "calendar_id": self.calendar_id,
            "title": self.title,
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
            "all_day": self.all_day,
            "description": self.description,
            "location": self.location.to_dict() if self.location else None,
            "priority": self.priority.value,
            "status": self.status.value,
            "tags": list(self.tags),
            "category": self.category,
            "attendees": [a.to_dict() for a in self.attendees],
            "reminders": [r.to_dict() for r in self.reminders],
            "recurrence": self.recurrence.to_dict() if self.recurrence else None,
            "is_recurring": self.is_recurring,
            "original_event_id": self.original_event_id,
            "is_modified": self.is_modified,
            "original_start": _dt_to_str(self.original_start),
            "created_at": _dt_to_str(self.created_at),
            "updated_at": _dt_to_str(self.updated_at),
            "created_by": self.created_by,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Event":
        """Create from a storage dictionary."""
        location = data.get("location")
        recurrence = data.get("recurrence")
        return cls(
            id=data.get("id") or "",
            calendar_id=data.get("calendar_id") or "",
            title=data.get("title") or "",
            start=parse_datetime(data.get("start")),
            end=parse_datetime(data.get("end")),
            all_day=bool(data.get("all_day", False)),
            description=data.get("description"),
            location=Location.from_dict(location) if location else None,
            priority=data.get("priority", Priority.NORMAL.value),
            status=data.get("status", EventStatus.CONFIRMED.value),
            tags=list(data.get("tags") or []),
            category=data.get("category"),
            attendees=[Attendee.from_dict(a) for a in data.get("attendees") or []],
            reminders=[Reminder.from_dict(r) for r in data.get("reminders") or []],
            recurrence=RecurrenceDescriptor.from_dict(recurrence) if recurrence else None,
            is_recurring=bool(data.get("is_recurring", False)),
            original_event_id=data.get("original_event_id"),
            is_modified=bool(data.get("is_modified", False)),
            original_start=parse_datetime(data.get("original_start")),
            created_at=parse_datetime(data.get("created_at")),
            updated_at=parse_datetime(data.get("updated_at")),
            created_by=data.get("created_by"),
        )

    def to_api_dict(self) -> Dict[str, Any]:
        """Convert to API response format (camelCase)."""
        return {
            "id": self.id,
            "calendarId": self.calendar_id,
            "title": self.title,
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
            "allDay": self.all_day,
            "description": self.description,
            "location": self.location.to_dict() if self.location else None,
            "priority": self.priority.value,
            "status": self.status.value,
            "tags": list(self.tags),
            "category": self.category,
            "attendees": [a.to_dict() for a in self.attendees],
            "reminders": [
                {"id": r.id, "type": r.type, "minutes": r.minutes, "isEnabled": r.is_enabled}
                for r in self.reminders
            ],
            "recurrence": self.recurrence.to_api_dict() if self.recurrence else None,
            "isRecurring": self.is_recurring,
            "originalEventId": self.original_event_id,
            "isModified": self.is_modified,
            "originalStart": _dt_to_str(self.original_start),
            "createdAt": _dt_to_str(self.created_at),
            "updatedAt": _dt_to_str(self.updated_at),
            "createdBy": self.created_by,
            "durationMinutes": self.duration_minutes,
        }


@dataclass(slots=True)
class ConflictRecord:
    """An existing event that collides with a candidate event."""

    event: Event
    kind: ConflictKind
    severity: Severity

    def to_api_dict(self) -> Dict[str, Any]:
        return {
            "event": self.event.to_api_dict(),
            "kind": self.kind.value,
            "severity": self.severity.value,
        }


def _coerce_many(enum_cls: Type[E], values: Optional[Iterable[Any]], label: str) -> Optional[List[E]]:
    if values is None:
        return None
    return [coerce_enum(enum_cls, v, label) for v in values]


@dataclass(slots=True)
class FilterSpec:
    """Filter, search and sort criteria for an event query.

    Empty or ``None`` dimensions are ignored; populated ones are combined
    with AND.
    """

    calendar_ids: Optional[List[str]] = None
    range_start: Optional[datetime] = None
    range_end: Optional[datetime] = None
    priorities: Optional[List[Priority]] = None
    categories: Optional[List[str]] = None
    tags: Optional[List[str]] = None
    statuses: Optional[List[EventStatus]] = None
    attendee_email: Optional[str] = None
    query: Optional[str] = None
    sort_by: SortField = SortField.START
    sort_order: SortOrder = SortOrder.ASC

    def __post_init__(self) -> None:
        self.priorities = _coerce_many(Priority, self.priorities, "priority")
        self.statuses = _coerce_many(EventStatus, self.statuses, "status")
        self.sort_by = coerce_enum(SortField, self.sort_by, "sort field")
        self.sort_order = coerce_enum(SortOrder, self.sort_order, "sort order")
        self.range_start = parse_datetime(self.range_start)
        if isinstance(self.range_end, datetime):
            self.range_end = parse_datetime(self.range_end)
        elif isinstance(self.range_end, date):
            # A plain end date covers that whole day
            self.range_end = end_of_day(datetime.combine(self.range_end, time.min))
        if (
            self.range_start is not None
            and self.range_end is not None
            and self.range_end < self.range_start
        ):
            raise InvalidRangeError(
                f"Range end {self.range_end.isoformat()} is before start {self.range_start.isoformat()}"
            )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FilterSpec":
        return cls(
            calendar_ids=data.get("calendar_ids"),
            range_start=parse_datetime(data.get("range_start")),
            range_end=parse_datetime(data.get("range_end")),
            priorities=data.get("priorities"),
            categories=data.get("categories"),
            tags=data.get("tags"),
            statuses=data.get("statuses"),
            attendee_email=data.get("attendee_email"),
            query=data.get("query"),
            sort_by=data.get("sort_by") or SortField.START,
            sort_order=data.get("sort_order") or SortOrder.ASC,
        )
