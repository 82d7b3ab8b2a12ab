"""Tests for the JSONL event store and corpus loading."""
from __future__ import annotations

import json
from datetime import date, datetime, timedelta

import pytest

from team_calendar.calendar import (
    Attendee,
    Event,
    RecurrenceDescriptor,
    check_before_save,
    detach_occurrence,
    expand,
    load_corpus,
    store,
)
from team_calendar.config import Settings
from team_calendar.dates import DateRange
from team_calendar.errors import InvalidEventError

USER = "tester@example.com"


@pytest.fixture(autouse=True)
def store_dir(tmp_path, monkeypatch):
    monkeypatch.setenv("TCAL_EVENT_STORE_DIR", str(tmp_path))
    return tmp_path


def _event(
    event_id: str = "",
    start: datetime = datetime(2024, 7, 1, 9, 0),
    *,
    calendar_id: str = "team",
    recurrence: RecurrenceDescriptor | None = None,
    attendees: list | None = None,
) -> Event:
    return Event(
        id=event_id,
        calendar_id=calendar_id,
        title="Planning",
        start=start,
        end=start + timedelta(hours=1),
        tags=["sprint"],
        attendees=attendees or [],
        recurrence=recurrence,
    )


class TestSaveEvent:
    def test_new_event_gets_id_and_timestamps(self):
        saved = store.save_event(USER, _event())

        assert saved.id
        assert saved.created_at is not None
        assert saved.updated_at is not None

    def test_round_trip(self):
        rule = RecurrenceDescriptor("weekly", days_of_week=(1, 3), count=4)
        saved = store.save_event(
            USER,
            _event("series", recurrence=rule, attendees=[Attendee(email="ana@example.com")]),
        )

        loaded = store.get_event(USER, "series")

        assert loaded == saved
        assert loaded.recurrence == rule

    def test_update_keeps_created_at(self):
        first = store.save_event(USER, _event("planning"))
        second = store.save_event(USER, first)

        assert second.created_at == first.created_at
        assert len(store.load_events(USER)) == 1

    def test_rejects_derived_occurrence(self):
        base = _event("series", recurrence=RecurrenceDescriptor("daily", count=2))
        occurrence = expand(base)[0]

        with pytest.raises(InvalidEventError):
            store.save_event(USER, occurrence)

    def test_writes_one_line_per_event(self, store_dir):
        store.save_event(USER, _event("a"))
        store.save_event(USER, _event("b"))

        [path] = list(store_dir.glob("*_events.jsonl"))
        lines = path.read_text(encoding="utf-8").splitlines()
        assert [json.loads(line)["id"] for line in lines] == ["a", "b"]


class TestLoadEvents:
    def test_sorted_by_start(self):
        store.save_event(USER, _event("late", datetime(2024, 7, 3, 9, 0)))
        store.save_event(USER, _event("early", datetime(2024, 7, 1, 9, 0)))

        assert [e.id for e in store.load_events(USER)] == ["early", "late"]

    def test_calendar_filter(self):
        store.save_event(USER, _event("a", calendar_id="team"))
        store.save_event(USER, _event("b", calendar_id="ops"))

        assert [e.id for e in store.load_events(USER, calendar_ids=["ops"])] == ["b"]

    def test_date_range_keeps_earlier_series(self):
        store.save_event(
            USER, _event("series", datetime(2024, 6, 1, 9, 0), recurrence=RecurrenceDescriptor("daily"))
        )
        store.save_event(USER, _event("old", datetime(2024, 6, 1, 9, 0)))

        loaded = store.load_events(USER, date_range=DateRange(date(2024, 7, 1), date(2024, 7, 7)))

        assert [e.id for e in loaded] == ["series"]

    def test_users_are_isolated(self):
        store.save_event(USER, _event("mine"))
        assert store.load_events("someone@example.com") == []

    def test_corrupt_lines_skipped(self, store_dir):
        store.save_event(USER, _event("good"))
        [path] = list(store_dir.glob("*_events.jsonl"))
        with path.open("a", encoding="utf-8") as f:
            f.write("{not json\n")
            f.write(json.dumps({"id": "bad", "start": "2024-07-01T10:00:00", "end": "2024-07-01T09:00:00"}) + "\n")

        assert [e.id for e in store.load_events(USER)] == ["good"]


class TestDeleteEvent:
    def test_delete(self):
        store.save_event(USER, _event("gone"))

        assert store.delete_event(USER, "gone") is True
        assert store.get_event(USER, "gone") is None

    def test_delete_missing(self):
        assert store.delete_event(USER, "missing") is False


class TestLoadCorpus:
    def test_series_expanded_within_range(self):
        store.save_event(USER, _event("standup", recurrence=RecurrenceDescriptor("daily")))
        store.save_event(USER, _event("review", datetime(2024, 7, 2, 14, 0)))

        corpus = load_corpus(USER, date_range=DateRange(date(2024, 7, 1), date(2024, 7, 3)))

        assert [e.id for e in corpus] == [
            "standup_2024-07-01",
            "standup_2024-07-02",
            "review",
            "standup_2024-07-03",
        ]

    def test_detached_occurrence_replaces_slot(self):
        base = store.save_event(USER, _event("standup", recurrence=RecurrenceDescriptor("daily", count=3)))
        moved = detach_occurrence(
            expand(base)[1],
            start=datetime(2024, 7, 2, 15, 0),
            end=datetime(2024, 7, 2, 16, 0),
        )
        store.save_event(USER, moved)

        corpus = load_corpus(USER)

        assert [(e.id, e.start) for e in corpus] == [
            ("standup_2024-07-01", datetime(2024, 7, 1, 9, 0)),
            ("standup_2024-07-02", datetime(2024, 7, 2, 15, 0)),
            ("standup_2024-07-03", datetime(2024, 7, 3, 9, 0)),
        ]


class TestCheckBeforeSave:
    def test_conflicts_require_confirmation(self):
        store.save_event(USER, _event("existing"))
        candidate = _event("", datetime(2024, 7, 1, 9, 30))

        check = check_before_save(candidate, load_corpus(USER))

        assert check.requires_confirmation is True
        assert [c.event.id for c in check.conflicts] == ["existing"]
        assert check.to_api_dict()["requiresConfirmation"] is True

    def test_own_occurrences_ignored(self):
        base = store.save_event(USER, _event("standup", recurrence=RecurrenceDescriptor("daily", count=3)))

        check = check_before_save(base, load_corpus(USER))

        assert check.conflicts == []
        assert check.requires_confirmation is False

    def test_recurring_candidate_reports_each_event_once(self):
        store.save_event(USER, _event("review", datetime(2024, 7, 2, 9, 0)))
        series = _event("series", recurrence=RecurrenceDescriptor("daily", count=5))

        check = check_before_save(series, load_corpus(USER))

        assert [c.event.id for c in check.conflicts] == ["review"]

    def test_recurring_candidate_uses_settings(self):
        store.save_event(USER, _event("review", datetime(2024, 7, 10, 9, 0)))
        series = _event("series", recurrence=RecurrenceDescriptor("daily"))
        corpus = load_corpus(USER)

        assert [c.event.id for c in check_before_save(series, corpus, Settings()).conflicts] == ["review"]
        assert check_before_save(series, corpus, Settings(default_horizon_days=3)).conflicts == []
        assert check_before_save(series, corpus, Settings(max_occurrences=5)).conflicts == []
