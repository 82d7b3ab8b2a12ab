"""File-based event store.

Persists base events, single events and detached occurrences as one JSON
object per line, one file per user:

    <TCAL_EVENT_STORE_DIR>/<safe_user_id>_events.jsonl

Derived occurrences are never written here; they are regenerated from their
base event whenever the corpus is loaded. The store is a single-process
convenience and makes no concurrency guarantees.
"""
from __future__ import annotations

import json
import logging
import uuid
from dataclasses import replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from ..config import load_settings
from ..dates import DateRange, to_date
from ..errors import InvalidEventError
from .types import Event

logger = logging.getLogger(__name__)


def _now() -> datetime:
    # Naive UTC so stored timestamps compare with normalized event times
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _get_store_dir() -> Path:
    return load_settings().event_store_dir


def _get_user_file(user_id: str) -> Path:
    """Get the file path for a user's events."""
    store_dir = _get_store_dir()
    store_dir.mkdir(parents=True, exist_ok=True)

    # Sanitize user_id for filename
    safe_id = user_id.replace("@", "_at_").replace(".", "_").replace("/", "_")
    return store_dir / f"{safe_id}_events.jsonl"


def _read_records(file_path: Path) -> Dict[str, dict]:
    records: Dict[str, dict] = {}
    if not file_path.exists():
        return records

    with file_path.open("r", encoding="utf-8") as f:
        for line_no, line in enumerate(f, start=1):
            line = line.strip()
            if not line:
                continue
            try:
                data = json.loads(line)
                records[data["id"]] = data
            except (json.JSONDecodeError, KeyError, TypeError) as exc:
                logger.warning(f"Skipping corrupt line {line_no} in {file_path.name}: {exc}")
    return records


def _write_records(file_path: Path, records: Iterable[dict]) -> None:
    with file_path.open("w", encoding="utf-8") as f:
        for data in records:
            f.write(json.dumps(data) + "\n")


def _decode(data: dict, file_path: Path) -> Optional[Event]:
    try:
        return Event.from_dict(data)
    except (ValueError, TypeError) as exc:
        logger.warning(f"Skipping invalid event {data.get('id')!r} in {file_path.name}: {exc}")
        return None


def _in_range(event: Event, date_range: DateRange) -> bool:
    if event.is_base_recurring:
        # Occurrences may land anywhere after the base start
        return to_date(event.start) <= date_range.end
    return to_date(event.start) <= date_range.end and to_date(event.end) >= date_range.start


# =============================================================================
# CRUD Operations
# =============================================================================

def load_events(
    user_id: str,
    calendar_ids: Optional[Iterable[str]] = None,
    date_range: Optional[DateRange] = None,
) -> List[Event]:
    """Load a user's stored events.

    Args:
        user_id: The user who owns the events
        calendar_ids: Only events on these calendars (all when None)
        date_range: Only events that may appear in this range; recurring
            base events are kept when they start on or before its end

    Returns:
        Stored events ordered by start, then id
    """
    file_path = _get_user_file(user_id)
    wanted = set(calendar_ids) if calendar_ids else None

    events = []
    for data in _read_records(file_path).values():
        event = _decode(data, file_path)
        if event is None:
            continue
        if wanted is not None and event.calendar_id not in wanted:
            continue
        if date_range is not None and not _in_range(event, date_range):
            continue
        events.append(event)

    events.sort(key=lambda e: (e.start, e.id))
    logger.debug(f"Loaded {len(events)} events for {user_id}")
    return events


def get_event(user_id: str, event_id: str) -> Optional[Event]:
    """Get an event by ID.

    Returns:
        Event if found, None otherwise
    """
    file_path = _get_user_file(user_id)
    data = _read_records(file_path).get(event_id)
    if data is None:
        return None
    return _decode(data, file_path)


def save_event(user_id: str, event: Event) -> Event:
    """Create or update an event (upsert by id).

    An empty id means create: a new uuid is assigned and ``created_at`` is
    stamped. ``updated_at`` is stamped on every save.

    Returns:
        The stored event

    Raises:
        InvalidEventError: if the event is invalid or is a derived occurrence
    """
    event.validate()
    if event.is_recurring:
        raise InvalidEventError(
            f"Occurrence {event.id!r} is derived from its base event; detach it before saving"
        )

    now = _now()
    is_new = not event.id
    stored = replace(
        event,
        id=event.id or str(uuid.uuid4()),
        created_at=event.created_at or now,
        updated_at=now,
    )

    file_path = _get_user_file(user_id)
    records = _read_records(file_path)
    records[stored.id] = stored.to_dict()
    _write_records(file_path, records.values())

    logger.info(f"{'Created' if is_new else 'Saved'} event {stored.id} for {user_id}")
    return stored


def delete_event(user_id: str, event_id: str) -> bool:
    """Delete an event.

    Returns:
        True if deleted, False if not found
    """
    file_path = _get_user_file(user_id)
    records = _read_records(file_path)
    if records.pop(event_id, None) is None:
        return False

    _write_records(file_path, records.values())
    logger.info(f"Deleted event {event_id} for {user_id}")
    return True
