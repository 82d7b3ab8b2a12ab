"""Corpus loading and the pre-save conflict check.

Glues the store, the recurrence expander and the conflict detector together
for the API and CLI: load stored events, materialize occurrences, and check a
candidate before it is persisted.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from ..config import Settings, load_settings
from ..dates import DateRange
from . import store
from .conflicts import detect
from .query import events_in_range
from .recurrence import ExpansionHorizon, default_horizon, expand, expand_corpus
from .types import ConflictRecord, Event

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class SaveCheck:
    """Outcome of checking a candidate event before it is saved."""

    conflicts: List[ConflictRecord] = field(default_factory=list)
    requires_confirmation: bool = False

    def to_api_dict(self) -> Dict[str, Any]:
        return {
            "conflicts": [c.to_api_dict() for c in self.conflicts],
            "requiresConfirmation": self.requires_confirmation,
        }


def load_corpus(
    user_id: str,
    calendar_ids: Optional[Iterable[str]] = None,
    date_range: Optional[DateRange] = None,
    horizon: Optional[ExpansionHorizon] = None,
    settings: Optional[Settings] = None,
) -> List[Event]:
    """Load a user's events and expand every recurring series.

    Args:
        user_id: Owner of the events
        calendar_ids: Restrict to these calendars
        date_range: Keep only events overlapping this range; also bounds the
            expansion when no horizon is given
        horizon: Explicit expansion bound shared by all series
        settings: Overrides for the occurrence ceiling and default horizon

    Returns:
        Expanded corpus ordered by start, then id
    """
    settings = settings or load_settings()
    stored = store.load_events(user_id, calendar_ids, date_range)

    if horizon is None and date_range is not None:
        horizon = ExpansionHorizon(until=date_range.end, since=date_range.start)

    corpus = expand_corpus(
        stored,
        horizon,
        ceiling=settings.max_occurrences,
        horizon_days=settings.default_horizon_days,
    )
    if date_range is not None:
        corpus = events_in_range(corpus, date_range.start, date_range.end)
    else:
        corpus.sort(key=lambda e: (e.start, e.id))

    logger.debug(f"Corpus for {user_id}: {len(stored)} stored, {len(corpus)} expanded")
    return corpus


def without_own_occurrences(event: Event, corpus: Iterable[Event]) -> List[Event]:
    """Drop the derived occurrences of ``event`` from ``corpus``."""
    if not event.id:
        return list(corpus)
    return [e for e in corpus if not (e.is_recurring and e.original_event_id == event.id)]


def check_before_save(
    candidate: Event,
    corpus: Iterable[Event],
    settings: Optional[Settings] = None,
) -> SaveCheck:
    """Run the conflict detector on a candidate about to be saved.

    The candidate's own derived occurrences are ignored. A recurring base
    candidate is checked occurrence by occurrence and each existing event is
    reported once, at its most severe conflict. The expansion uses the
    configured occurrence ceiling and default horizon from ``settings``.
    """
    settings = settings or load_settings()
    corpus = without_own_occurrences(candidate, corpus)

    if candidate.is_base_recurring:
        worst: Dict[str, ConflictRecord] = {}
        occurrences = expand(
            candidate,
            candidate.recurrence,
            default_horizon(candidate, settings.default_horizon_days),
            ceiling=settings.max_occurrences,
        )
        for occurrence in occurrences:
            for record in detect(occurrence, corpus):
                current = worst.get(record.event.id)
                if current is None or record.severity.rank > current.severity.rank:
                    worst[record.event.id] = record
        conflicts = sorted(
            worst.values(), key=lambda r: (-r.severity.rank, r.event.start, r.event.id)
        )
    else:
        conflicts = detect(candidate, corpus)

    return SaveCheck(conflicts=conflicts, requires_confirmation=bool(conflicts))
