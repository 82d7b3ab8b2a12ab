"""Recurring event expansion.

This module turns a base event and its RecurrenceDescriptor into concrete
occurrence events:
- Stepping by frequency (daily, weekly, monthly, yearly) scaled by interval
- Weekly rules with explicit weekdays enumerate each interval window
- Exception dates are skipped but still use up one unit of ``count``
- Every expansion is bounded by the rule, the caller's horizon and a fixed
  occurrence ceiling

Occurrences are never persisted. They are recomputed from the base event on
every corpus load, so the same inputs always give the same ids and dates.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import date, datetime, timedelta
from typing import Dict, Iterable, Iterator, List, Optional, Set, Tuple, Union

from ..config import DEFAULT_HORIZON_DAYS, MAX_OCCURRENCES
from ..dates import (
    WEEKDAY_NAMES,
    add_days,
    add_months,
    add_weeks,
    add_years,
    start_of_day,
    start_of_week,
    to_date,
)
from ..errors import InvalidEventError, InvalidRecurrenceError
from .types import Event, Frequency, RecurrenceDescriptor

logger = logging.getLogger(__name__)

Bound = Union[date, datetime]


@dataclass(slots=True)
class ExpansionHorizon:
    """Caller-supplied bound on an expansion.

    ``until`` is inclusive (an occurrence starting exactly at ``until`` is
    kept). Whichever of ``until`` and ``max_occurrences`` binds first wins.
    Occurrences ending before ``since`` are skipped without counting toward
    ``max_occurrences`` or the ceiling (they still consume ``count``).
    """

    until: Optional[Bound] = None
    max_occurrences: Optional[int] = None
    since: Optional[Bound] = None

    def __post_init__(self) -> None:
        if self.max_occurrences is not None and self.max_occurrences < 0:
            raise InvalidRecurrenceError(
                f"max_occurrences cannot be negative, got {self.max_occurrences}"
            )


def default_horizon(base_event: Event, days: int = DEFAULT_HORIZON_DAYS) -> ExpansionHorizon:
    """Horizon used when the caller supplies none.

    Rules bounded by ``count`` or ``end_date`` run to their own end, with the
    occurrence ceiling as backstop. Open-ended rules stop ``days`` after the
    base start.
    """
    rule = base_event.recurrence
    if rule is not None and (rule.count is not None or rule.end_date is not None):
        return ExpansionHorizon()
    return ExpansionHorizon(until=base_event.start + timedelta(days=days))


def occurrence_id(base_id: str, occurrence_start: Bound) -> str:
    """Deterministic id for the occurrence of ``base_id`` on a given day."""
    return f"{base_id}_{to_date(occurrence_start).isoformat()}"


def parse_occurrence_id(value: str) -> Optional[Tuple[str, date]]:
    """Split an occurrence id back into (base id, occurrence date).

    Returns None when ``value`` is not shaped like an occurrence id.
    """
    base_id, sep, day = value.rpartition("_")
    if not sep or not base_id or len(day) != 10:
        return None
    try:
        return base_id, date.fromisoformat(day)
    except ValueError:
        return None


def expand(
    base_event: Event,
    recurrence: Optional[RecurrenceDescriptor] = None,
    horizon: Optional[ExpansionHorizon] = None,
    *,
    ceiling: int = MAX_OCCURRENCES,
    skip_dates: Iterable[date] = (),
) -> List[Event]:
    """Expand a recurring base event into its ordered occurrences.

    Args:
        base_event: The event carrying the recurrence rule
        recurrence: The rule to expand; must equal ``base_event.recurrence``
            (defaults to it when omitted)
        horizon: Caller bound; see ``default_horizon`` when omitted
        ceiling: Occurrence backstop, never above MAX_OCCURRENCES
        skip_dates: Extra dates to exclude (detached occurrences)

    Returns:
        Occurrences ordered by start. Each keeps the base duration and links
        back through ``original_event_id``.

    Raises:
        InvalidEventError: if ``base_event`` is itself a derived occurrence
        InvalidRecurrenceError: if the rule is missing, malformed, or differs
            from the base event's rule
    """
    if base_event.is_recurring:
        raise InvalidEventError(
            f"Occurrence {base_event.id!r} is derived and cannot be expanded again"
        )

    rule = recurrence if recurrence is not None else base_event.recurrence
    if rule is None:
        raise InvalidRecurrenceError(f"Event {base_event.id!r} has no recurrence rule")
    if base_event.recurrence != rule:
        raise InvalidRecurrenceError(
            f"Recurrence rule does not match the rule stored on event {base_event.id!r}"
        )
    rule.validate()

    if horizon is None:
        horizon = default_horizon(base_event)

    ceiling_limit = max(0, min(ceiling, MAX_OCCURRENCES))
    limit = ceiling_limit
    if horizon.max_occurrences is not None:
        limit = min(limit, horizon.max_occurrences)

    excluded: Set[date] = set(rule.exceptions)
    excluded.update(to_date(d) for d in skip_dates)

    duration = base_event.duration
    occurrences: List[Event] = []
    generated = 0

    for start in _candidate_starts(base_event.start, rule):
        if rule.end_date is not None and _on_or_after(start, rule.end_date):
            break
        if horizon.until is not None and _after(start, horizon.until):
            break
        if rule.count is not None and generated >= rule.count:
            break
        if len(occurrences) >= limit:
            if limit == ceiling_limit:
                logger.warning(
                    f"Expansion of {base_event.id} stopped at the ceiling of {ceiling_limit} occurrences"
                )
            break

        # Exceptions still use up one unit of the rule's count
        generated += 1
        if to_date(start) in excluded:
            continue
        if horizon.since is not None and _ends_before(start + duration, horizon.since, base_event.all_day):
            continue
        occurrences.append(_make_occurrence(base_event, start, duration))

    logger.debug(f"Expanded {base_event.id} into {len(occurrences)} occurrences")
    return occurrences


def _candidate_starts(anchor: datetime, rule: RecurrenceDescriptor) -> Iterator[datetime]:
    """Yield candidate occurrence starts in ascending order, unbounded."""
    if rule.frequency is Frequency.WEEKLY and rule.days_of_week:
        window_anchor = start_of_week(anchor, 0)
        time_of_day = anchor - start_of_day(anchor)
        step = 0
        while True:
            try:
                window = add_weeks(window_anchor, step * rule.interval)
                candidates = [window + timedelta(days=d) + time_of_day for d in rule.days_of_week]
            except OverflowError:
                logger.debug(f"Recurrence window past the supported date range at step {step}")
                return
            for candidate in candidates:
                if candidate >= anchor:
                    yield candidate
            step += 1

    step = 0
    while True:
        try:
            # Always step from the anchor so month clamping never drifts
            candidate = _step(anchor, rule.frequency, step * rule.interval)
        except OverflowError:
            logger.debug(f"Recurrence step {step} past the supported date range")
            return
        yield candidate
        step += 1


def _step(anchor: datetime, frequency: Frequency, units: int) -> datetime:
    if frequency is Frequency.DAILY:
        return add_days(anchor, units)
    if frequency is Frequency.WEEKLY:
        return add_weeks(anchor, units)
    if frequency is Frequency.MONTHLY:
        return add_months(anchor, units)
    if frequency is Frequency.YEARLY:
        return add_years(anchor, units)
    raise InvalidRecurrenceError(f"Unknown recurrence frequency {frequency!r}")


def _on_or_after(value: datetime, bound: Bound) -> bool:
    if isinstance(bound, datetime):
        return value >= bound
    return value.date() >= bound


def _after(value: datetime, bound: Bound) -> bool:
    if isinstance(bound, datetime):
        return value > bound
    return value.date() > bound


def _ends_before(end: datetime, bound: Bound, all_day: bool) -> bool:
    if all_day:
        return end.date() < to_date(bound)
    if isinstance(bound, datetime):
        return end <= bound
    return end.date() < bound


def _make_occurrence(base_event: Event, start: datetime, duration: timedelta) -> Event:
    return replace(
        base_event,
        id=occurrence_id(base_event.id, start),
        start=start,
        end=start + duration,
        tags=list(base_event.tags),
        attendees=list(base_event.attendees),
        reminders=list(base_event.reminders),
        recurrence=None,
        is_recurring=True,
        original_event_id=base_event.id,
        is_modified=False,
        original_start=None,
    )


def expand_corpus(
    events: Iterable[Event],
    horizon: Optional[ExpansionHorizon] = None,
    *,
    ceiling: int = MAX_OCCURRENCES,
    horizon_days: int = DEFAULT_HORIZON_DAYS,
) -> List[Event]:
    """Materialize every recurring base event in ``events``.

    Base events are replaced by their occurrences. Detached occurrences are
    kept as ordinary events and their original slot is excluded from the
    expansion. Stale derived occurrences in the input are dropped, since they
    are regenerated from their base.

    Args:
        events: Stored events (bases, single events, detached occurrences)
        horizon: Shared horizon; per-event default when omitted
        ceiling: Occurrence ceiling per base event
        horizon_days: Length of the per-event default horizon

    Returns:
        Flat corpus ready for querying and conflict checks
    """
    events = list(events)

    detached: Dict[str, Set[date]] = {}
    for event in events:
        if event.is_detached and event.original_start is not None:
            detached.setdefault(event.original_event_id, set()).add(to_date(event.original_start))

    corpus: List[Event] = []
    for event in events:
        if event.is_recurring:
            continue
        if event.is_base_recurring:
            corpus.extend(
                expand(
                    event,
                    event.recurrence,
                    horizon or default_horizon(event, horizon_days),
                    ceiling=ceiling,
                    skip_dates=detached.get(event.id, ()),
                )
            )
        else:
            corpus.append(event)

    logger.debug(f"Expanded corpus of {len(events)} stored events into {len(corpus)} events")
    return corpus


def detach_occurrence(occurrence: Event, **changes) -> Event:
    """Turn a derived occurrence into an independent, user-modified event.

    The detached event keeps ``original_event_id`` and remembers its slot in
    ``original_start`` so future expansions skip that date.

    Raises:
        InvalidEventError: if ``occurrence`` is not a derived occurrence
    """
    if not occurrence.is_recurring or not occurrence.original_event_id:
        raise InvalidEventError(f"Event {occurrence.id!r} is not a recurring occurrence")
    if "recurrence" in changes:
        raise InvalidEventError("A detached occurrence cannot carry a recurrence rule")

    return replace(
        occurrence,
        is_recurring=False,
        is_modified=True,
        original_start=occurrence.start,
        **changes,
    )


def add_exception(base_event: Event, day: Bound) -> Event:
    """Return a copy of ``base_event`` whose rule skips ``day``."""
    if not base_event.is_base_recurring:
        raise InvalidRecurrenceError(f"Event {base_event.id!r} has no recurrence rule")
    rule = base_event.recurrence
    updated = replace(rule, exceptions=rule.exceptions | {to_date(day)})
    return replace(base_event, recurrence=updated)


def describe_recurrence(rule: RecurrenceDescriptor) -> str:
    """Get a human-readable description of the recurrence rule.

    Returns:
        Display string like "Weekly on Mon, Wed" or "Every 3 months (5 times)"
    """
    interval = rule.interval
    frequency = rule.frequency

    if frequency is Frequency.DAILY:
        text = "Daily" if interval == 1 else f"Every {interval} days"
    elif frequency is Frequency.WEEKLY:
        days = ", ".join(WEEKDAY_NAMES[d] for d in rule.days_of_week)
        if interval == 1 and len(rule.days_of_week) == 7:
            text = "Daily"
        elif interval == 1:
            text = f"Weekly on {days}" if days else "Weekly"
        else:
            text = f"Every {interval} weeks" + (f" on {days}" if days else "")
    elif frequency is Frequency.MONTHLY:
        text = "Monthly" if interval == 1 else f"Every {interval} months"
    else:
        text = "Yearly" if interval == 1 else f"Every {interval} years"

    if rule.count is not None:
        text += f" ({rule.count} times)"
    elif rule.end_date is not None:
        text += f" (until {to_date(rule.end_date).isoformat()})"

    if rule.exceptions:
        skipped = len(rule.exceptions)
        text += f", skipping {skipped} date" + ("s" if skipped != 1 else "")

    return text
