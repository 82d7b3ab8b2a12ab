#!/usr/bin/env python3
"""Team Calendar CLI."""
from __future__ import annotations

import argparse
import json
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Iterable, List

from dotenv import load_dotenv

from team_calendar.calendar import (
    Event,
    ExpansionHorizon,
    FilterSpec,
    SortField,
    SortOrder,
    default_horizon,
    describe_recurrence,
    detect,
    event_stats,
    expand,
    expand_corpus,
    format_duration,
    query,
    summarize_conflicts,
    without_own_occurrences,
)
from team_calendar.calendar.types import parse_datetime
from team_calendar.config import ConfigError, Settings, load_settings


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="team-calendar",
        description=(
            "Expand recurring events, check conflicts and query events from a JSON file."
        ),
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Show debug logging.",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    expand_parser = subparsers.add_parser(
        "expand",
        help="List the occurrences of recurring events.",
    )
    expand_parser.add_argument("events_file", type=Path, help="JSON file with a list of events.")
    expand_parser.add_argument("--event-id", help="Only expand this base event.")
    expand_parser.add_argument("--until", help="Inclusive horizon (ISO date or datetime).")
    expand_parser.add_argument(
        "--max",
        type=int,
        dest="max_occurrences",
        help="Stop after this many occurrences per event.",
    )
    expand_parser.add_argument("--json", action="store_true", help="Print JSON instead of a table.")

    conflicts_parser = subparsers.add_parser(
        "conflicts",
        help="Check one event against the rest of the file.",
    )
    conflicts_parser.add_argument("events_file", type=Path, help="JSON file with a list of events.")
    conflicts_parser.add_argument("event_id", help="ID of the event to check (occurrence IDs allowed).")
    conflicts_parser.add_argument("--json", action="store_true", help="Print JSON instead of a table.")

    query_parser = subparsers.add_parser(
        "query",
        help="Filter, search and sort events.",
    )
    query_parser.add_argument("events_file", type=Path, help="JSON file with a list of events.")
    query_parser.add_argument("--calendar", action="append", help="Calendar ID (repeatable).")
    query_parser.add_argument("--priority", action="append", help="Priority (repeatable).")
    query_parser.add_argument("--status", action="append", help="Status (repeatable).")
    query_parser.add_argument("--category", action="append", help="Category (repeatable).")
    query_parser.add_argument("--tag", action="append", help="Tag (repeatable).")
    query_parser.add_argument("--attendee", help="Attendee email substring.")
    query_parser.add_argument("--search", help="Free-text search.")
    query_parser.add_argument("--start", help="Range start (ISO date or datetime).")
    query_parser.add_argument("--end", help="Range end (ISO date or datetime).")
    query_parser.add_argument(
        "--sort-by",
        choices=[f.value for f in SortField],
        default=SortField.START.value,
        help="Sort field.",
    )
    query_parser.add_argument(
        "--sort-order",
        choices=[o.value for o in SortOrder],
        default=SortOrder.ASC.value,
        help="Sort direction.",
    )
    query_parser.add_argument("--json", action="store_true", help="Print JSON instead of a table.")

    stats_parser = subparsers.add_parser(
        "stats",
        help="Summarize events around a reference day.",
    )
    stats_parser.add_argument("events_file", type=Path, help="JSON file with a list of events.")
    stats_parser.add_argument("--today", help="Reference day (ISO date, defaults to today).")

    subparsers.add_parser(
        "check-config",
        help="Validate the engine settings from the environment.",
    )

    return parser


def _load_events(path: Path) -> List[Event]:
    """Read events from a JSON list (or an object with an "events" list)."""
    with path.open("r", encoding="utf-8") as f:
        data = json.load(f)
    if isinstance(data, dict):
        data = data.get("events", [])
    return [Event.from_dict(item) for item in data]


def format_event_rows(events: Iterable[Event]) -> str:
    lines = []
    for event in events:
        when = (
            f"{event.start:%Y-%m-%d} (all day)"
            if event.all_day
            else f"{event.start:%Y-%m-%d %H:%M}-{event.end:%H:%M}"
        )
        lines.append(
            f"{event.id:<28} {when:<24} {event.priority.value:<8} "
            f"{format_duration(event):<8} {event.title}"
        )
    return "\n".join(lines) if lines else "(no events)"


def _print_json(payload: object) -> None:
    print(json.dumps(payload, indent=2))


def _cmd_expand(
    events_file: Path,
    event_id: str | None,
    until: str | None,
    max_occurrences: int | None,
    as_json: bool,
    settings: Settings,
) -> int:
    events = _load_events(events_file)
    bases = [e for e in events if e.is_base_recurring and (event_id is None or e.id == event_id)]
    if event_id and not bases:
        print(f"Recurring event {event_id} not found in {events_file}.", file=sys.stderr)
        return 1

    results = {}
    for base in bases:
        if until or max_occurrences is not None:
            horizon = ExpansionHorizon(until=parse_datetime(until), max_occurrences=max_occurrences)
        else:
            horizon = default_horizon(base, settings.default_horizon_days)
        results[base.id] = (base, expand(base, base.recurrence, horizon, ceiling=settings.max_occurrences))

    if as_json:
        _print_json({
            base_id: [o.to_api_dict() for o in occurrences]
            for base_id, (_, occurrences) in results.items()
        })
        return 0

    for base, occurrences in results.values():
        print(f"{base.title} [{base.id}]: {describe_recurrence(base.recurrence)}")
        print(format_event_rows(occurrences))
        print(f"{len(occurrences)} occurrences\n")
    return 0


def _cmd_conflicts(events_file: Path, event_id: str, as_json: bool, settings: Settings) -> int:
    corpus = expand_corpus(
        _load_events(events_file),
        ceiling=settings.max_occurrences,
        horizon_days=settings.default_horizon_days,
    )
    candidate = next((e for e in corpus if e.id == event_id), None)
    if candidate is None:
        print(f"Event {event_id} not found in {events_file}.", file=sys.stderr)
        return 1

    records = detect(candidate, without_own_occurrences(candidate, corpus))
    if as_json:
        _print_json({
            "conflicts": [r.to_api_dict() for r in records],
            "summary": summarize_conflicts(records),
        })
        return 0

    if not records:
        print(f"No conflicts for {candidate.title} [{candidate.id}].")
        return 0

    print(f"{len(records)} conflicts for {candidate.title} [{candidate.id}]:")
    for record in records:
        print(f"- {record.severity.value:<6} {record.kind.value:<18} {format_event_rows([record.event])}")
    return 0


def _cmd_query(args: argparse.Namespace, settings: Settings) -> int:
    spec = FilterSpec(
        calendar_ids=args.calendar,
        range_start=parse_datetime(args.start),
        range_end=parse_datetime(args.end),
        priorities=args.priority,
        categories=args.category,
        tags=args.tag,
        statuses=args.status,
        attendee_email=args.attendee,
        query=args.search,
        sort_by=args.sort_by,
        sort_order=args.sort_order,
    )
    corpus = expand_corpus(
        _load_events(args.events_file),
        ceiling=settings.max_occurrences,
        horizon_days=settings.default_horizon_days,
    )
    events = query(corpus, spec)

    if args.json:
        _print_json([e.to_api_dict() for e in events])
    else:
        print(format_event_rows(events))
        print(f"\n{len(events)} of {len(corpus)} events")
    return 0


def _cmd_stats(events_file: Path, today: str | None, settings: Settings) -> int:
    reference = parse_datetime(today) or datetime.now()
    corpus = expand_corpus(
        _load_events(events_file),
        ceiling=settings.max_occurrences,
        horizon_days=settings.default_horizon_days,
    )
    stats = event_stats(corpus, reference, settings.week_start_day)

    print(f"Reference day: {reference:%Y-%m-%d}")
    print(f"Total: {stats['total']} | Today: {stats['today']} | "
          f"This week: {stats['this_week']} | This month: {stats['this_month']}")
    print("By priority:", ", ".join(f"{k}={v}" for k, v in stats["by_priority"].items()))
    print("By status:", ", ".join(f"{k}={v}" for k, v in stats["by_status"].items()))
    print("By calendar:", ", ".join(f"{k}={v}" for k, v in stats["by_calendar"].items()) or "-")
    return 0


def _cmd_check_config() -> int:
    try:
        settings = load_settings()
    except ConfigError as exc:
        print(f"Config check failed: {exc}", file=sys.stderr)
        return 1

    print(
        "Settings OK:",
        f"environment={settings.environment}",
        f"store={settings.event_store_dir}",
        f"max_occurrences={settings.max_occurrences}",
        f"horizon_days={settings.default_horizon_days}",
        f"week_start_day={settings.week_start_day}",
    )
    return 0


def main(argv: list[str] | None = None) -> int:
    load_dotenv()
    parser = _build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command == "check-config":
        return _cmd_check_config()

    try:
        settings = load_settings()
        if args.command == "expand":
            return _cmd_expand(
                events_file=args.events_file,
                event_id=args.event_id,
                until=args.until,
                max_occurrences=args.max_occurrences,
                as_json=args.json,
                settings=settings,
            )
        if args.command == "conflicts":
            return _cmd_conflicts(args.events_file, args.event_id, args.json, settings)
        if args.command == "query":
            return _cmd_query(args, settings)
        if args.command == "stats":
            return _cmd_stats(args.events_file, args.today, settings)
    except (ConfigError, ValueError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    except OSError as exc:
        print(f"Unable to read events: {exc}", file=sys.stderr)
        return 1

    parser.error(f"Unknown command: {args.command}")
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
