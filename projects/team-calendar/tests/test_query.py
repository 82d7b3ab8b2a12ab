"""Tests for event filtering, search, sorting and range helpers."""
from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

import pytest

from team_calendar.calendar import (
    Attendee,
    Event,
    FilterSpec,
    Location,
    events_in_range,
    events_on_day,
    group_by_date,
    query,
    search,
    view_range,
)
from team_calendar.errors import InvalidRangeError


def _event(
    event_id: str,
    start: datetime,
    *,
    title: str | None = None,
    calendar_id: str = "team",
    priority: str = "normal",
    status: str = "confirmed",
    tags: list | None = None,
    category: str | None = None,
    attendees: list | None = None,
    description: str | None = None,
    location: Location | None = None,
    created_at: datetime | None = None,
    all_day: bool = False,
) -> Event:
    return Event(
        id=event_id,
        calendar_id=calendar_id,
        title=title or event_id,
        start=start,
        end=start if all_day else start + timedelta(hours=1),
        all_day=all_day,
        priority=priority,
        status=status,
        tags=tags or [],
        category=category,
        attendees=attendees or [],
        description=description,
        location=location,
        created_at=created_at,
    )


@pytest.fixture
def corpus():
    return [
        _event(
            "planning",
            datetime(2024, 7, 1, 9, 0),
            title="Sprint Planning",
            priority="high",
            tags=["sprint", "team"],
            category="meeting",
            attendees=[Attendee(email="ana@example.com", name="Ana Ruiz")],
        ),
        _event(
            "incident",
            datetime(2024, 7, 2, 14, 0),
            title="Incident review",
            priority="critical",
            calendar_id="ops",
            category="review",
            description="Postmortem for the payments outage",
        ),
        _event(
            "oncall",
            datetime(2024, 7, 2, 8, 0),
            title="On-call handover",
            priority="urgent",
            calendar_id="ops",
            status="tentative",
            tags=["ops"],
        ),
        _event(
            "lunch",
            datetime(2024, 7, 3, 12, 0),
            title="Team lunch",
            priority="low",
            status="cancelled",
            location=Location(name="Cafe Blue"),
            attendees=[Attendee(email="ben@example.com", name="Ben Ode")],
        ),
        _event(
            "retro",
            datetime(2024, 7, 5, 16, 0),
            title="sprint retro",
            tags=["sprint"],
            category="meeting",
        ),
    ]


def _ids(events):
    return [e.id for e in events]


class TestQueryFilters:
    def test_no_spec_sorts_by_start(self, corpus):
        assert _ids(query(corpus)) == ["planning", "oncall", "incident", "lunch", "retro"]

    def test_calendar_filter(self, corpus):
        assert _ids(query(corpus, FilterSpec(calendar_ids=["ops"]))) == ["oncall", "incident"]

    def test_priority_filter_sorted_desc(self, corpus):
        spec = FilterSpec(priorities=["urgent", "critical"], sort_by="priority", sort_order="desc")
        assert _ids(query(corpus, spec)) == ["incident", "oncall"]

    def test_status_filter(self, corpus):
        spec = FilterSpec(statuses=["cancelled", "tentative"])
        assert _ids(query(corpus, spec)) == ["oncall", "lunch"]

    def test_tags_match_any(self, corpus):
        spec = FilterSpec(tags=["ops", "team"])
        assert _ids(query(corpus, spec)) == ["planning", "oncall"]

    def test_category_filter(self, corpus):
        spec = FilterSpec(categories=["meeting"])
        assert _ids(query(corpus, spec)) == ["planning", "retro"]

    def test_attendee_email_substring(self, corpus):
        spec = FilterSpec(attendee_email="BEN@")
        assert _ids(query(corpus, spec)) == ["lunch"]

    def test_range_filters_on_start(self, corpus):
        spec = FilterSpec(range_start=datetime(2024, 7, 2), range_end=datetime(2024, 7, 3, 12, 0))
        assert _ids(query(corpus, spec)) == ["oncall", "incident", "lunch"]

    def test_filters_combine_with_and(self, corpus):
        spec = FilterSpec(tags=["sprint"], priorities=["high"])
        assert _ids(query(corpus, spec)) == ["planning"]

    def test_empty_lists_ignored(self, corpus):
        spec = FilterSpec(calendar_ids=[], tags=[], priorities=[])
        assert len(query(corpus, spec)) == len(corpus)

    def test_result_is_subset_of_unfiltered(self, corpus):
        everything = _ids(query(corpus))
        for spec in (
            FilterSpec(calendar_ids=["ops"]),
            FilterSpec(query="sprint"),
            FilterSpec(statuses=["confirmed"], sort_by="title"),
            FilterSpec(attendee_email="example.com", sort_order="desc"),
        ):
            assert set(_ids(query(corpus, spec))) <= set(everything)

    def test_unknown_priority_rejected(self):
        with pytest.raises(ValueError):
            FilterSpec(priorities=["whenever"])

    def test_inverted_range_rejected(self):
        with pytest.raises(InvalidRangeError):
            FilterSpec(range_start=datetime(2024, 7, 2), range_end=datetime(2024, 7, 1))

    def test_from_dict(self, corpus):
        spec = FilterSpec.from_dict({"calendar_ids": ["ops"], "range_start": "2024-07-02T10:00:00"})
        assert _ids(query(corpus, spec)) == ["incident"]

    def test_range_accepts_plain_dates(self, corpus):
        spec = FilterSpec(range_start=date(2024, 7, 2), range_end=date(2024, 7, 3))
        assert _ids(query(corpus, spec)) == ["oncall", "incident", "lunch"]

    def test_offset_timestamps_compare_with_naive(self, corpus):
        berlin = timezone(timedelta(hours=2))
        early = _event("early", datetime(2024, 7, 2, 9, 0, tzinfo=berlin))

        assert early.start == datetime(2024, 7, 2, 7, 0)
        assert early.start.tzinfo is None
        assert _ids(query(corpus + [early], FilterSpec(calendar_ids=["team"]))) == [
            "planning",
            "early",
            "lunch",
            "retro",
        ]


class TestQuerySearch:
    def test_title_case_insensitive(self, corpus):
        assert _ids(query(corpus, FilterSpec(query="SPRINT"))) == ["planning", "retro"]

    def test_description(self, corpus):
        assert _ids(query(corpus, FilterSpec(query="payments"))) == ["incident"]

    def test_location_name(self, corpus):
        assert _ids(query(corpus, FilterSpec(query="cafe"))) == ["lunch"]

    def test_attendee_name(self, corpus):
        assert _ids(query(corpus, FilterSpec(query="ana ruiz"))) == ["planning"]

    def test_blank_query_matches_all(self, corpus):
        assert len(search(corpus, "   ")) == len(corpus)
        assert len(query(corpus, FilterSpec(query="  "))) == len(corpus)


class TestQuerySorting:
    def test_title_sort_is_case_insensitive(self, corpus):
        spec = FilterSpec(sort_by="title")
        assert _ids(query(corpus, spec)) == ["incident", "oncall", "planning", "retro", "lunch"]

    def test_priority_desc(self, corpus):
        spec = FilterSpec(sort_by="priority", sort_order="desc")
        assert _ids(query(corpus, spec)) == ["incident", "oncall", "planning", "retro", "lunch"]

    def test_ties_fall_back_to_start_then_id(self):
        start = datetime(2024, 7, 1, 9, 0)
        events = [
            _event("b", start),
            _event("a", start),
            _event("c", start - timedelta(hours=1)),
        ]
        spec = FilterSpec(sort_by="priority")
        assert _ids(query(events, spec)) == ["c", "a", "b"]

    def test_order_stable_across_input_permutations(self, corpus):
        spec = FilterSpec(sort_by="priority", sort_order="desc")
        expected = _ids(query(corpus, spec))
        assert _ids(query(list(reversed(corpus)), spec)) == expected
        assert _ids(query(corpus[2:] + corpus[:2], spec)) == expected

    def test_created_falls_back_to_start(self):
        events = [
            _event("old", datetime(2024, 7, 5, 9, 0), created_at=datetime(2024, 1, 1)),
            _event("fresh", datetime(2024, 7, 1, 9, 0)),
        ]
        spec = FilterSpec(sort_by="created")
        assert _ids(query(events, spec)) == ["old", "fresh"]


class TestRanges:
    def test_view_range_month(self):
        start, end = view_range("month", date(2024, 2, 10))
        assert start == datetime(2024, 2, 1)
        assert end.date() == date(2024, 2, 29)

    def test_view_range_week_monday(self):
        start, end = view_range("week", date(2024, 7, 3), week_start_day=1)
        assert start == datetime(2024, 7, 1)
        assert end.date() == date(2024, 7, 7)

    def test_view_range_unknown(self):
        with pytest.raises(InvalidRangeError):
            view_range("year", date(2024, 7, 3))

    def test_events_in_range_uses_overlap(self, corpus):
        found = events_in_range(corpus, date(2024, 7, 2), date(2024, 7, 3))
        assert _ids(found) == ["oncall", "incident", "lunch"]

    def test_events_in_range_rejects_inverted(self, corpus):
        with pytest.raises(InvalidRangeError):
            events_in_range(corpus, date(2024, 7, 3), date(2024, 7, 2))

    def test_events_on_day_includes_all_day(self, corpus):
        holiday = _event("holiday", datetime(2024, 7, 2), all_day=True)
        assert _ids(events_on_day(corpus + [holiday], date(2024, 7, 2))) == [
            "holiday",
            "oncall",
            "incident",
        ]

    def test_group_by_date(self, corpus):
        grouped = group_by_date(corpus)
        assert list(grouped) == [date(2024, 7, 1), date(2024, 7, 2), date(2024, 7, 3), date(2024, 7, 5)]
        assert _ids(grouped[date(2024, 7, 2)]) == ["oncall", "incident"]
