"""
Tests for recurrence expansion.

Covers the expansion window semantics (half-open, intersecting rather
than contained), COUNT/UNTIL handling and the behaviour for malformed
rules, plus property-based checks of the invariants every expansion must
hold.
"""

import logging
from datetime import datetime, timedelta, timezone

import pytest
from hypothesis import given, strategies as st
from hypothesis.strategies import composite

from calcore.domain import Event
from calcore.recurrence import (
    RawOccurrence,
    RecurrenceExpander,
    RecurrenceRule,
    RecurrenceRuleError,
    intersects,
    validate_rrule,
)
from calcore.tests.factories import CREATED, dt, minimal_event


JANUARY = (dt(1, 0), dt(1, 0, month=2))


class TestNonRecurringExpansion:
    def test_event_inside_range_yields_its_own_window(self) -> None:
        event = minimal_event(start_time=dt(3, 9), end_time=dt(3, 11))

        result = RecurrenceExpander().expand(event, *JANUARY)

        assert result == [RawOccurrence(dt(3, 9), dt(3, 11))]

    def test_event_overlapping_range_start_is_not_clipped(self) -> None:
        event = minimal_event(start_time=dt(1, 22), end_time=dt(2, 2))

        result = RecurrenceExpander().expand(event, dt(2, 0), dt(3, 0))

        assert result == [RawOccurrence(dt(1, 22), dt(2, 2))]

    def test_event_ending_at_range_start_is_excluded(self) -> None:
        event = minimal_event(start_time=dt(1, 9), end_time=dt(1, 10))

        assert RecurrenceExpander().expand(event, dt(1, 10), dt(2, 0)) == []

    def test_event_starting_at_range_end_is_excluded(self) -> None:
        event = minimal_event(start_time=dt(2, 0), end_time=dt(2, 1))

        assert RecurrenceExpander().expand(event, dt(1, 0), dt(2, 0)) == []


class TestRecurringExpansion:
    def test_weekly_count_five(self) -> None:
        event = minimal_event(rrule="FREQ=WEEKLY;COUNT=5")

        result = RecurrenceExpander().expand(event, *JANUARY)

        assert [o.start_time for o in result] == [
            dt(1),
            dt(8),
            dt(15),
            dt(22),
            dt(29),
        ]
        assert all(
            o.end_time - o.start_time == timedelta(hours=1) for o in result
        )

    def test_count_is_counted_from_the_first_instance(self) -> None:
        event = minimal_event(rrule="FREQ=DAILY;COUNT=5")

        # Window starts after the third instance
        result = RecurrenceExpander().expand(event, dt(3, 12), dt(31))

        assert [o.start_time for o in result] == [dt(4), dt(5)]

    def test_count_zero_yields_nothing(self) -> None:
        event = minimal_event(rrule="FREQ=DAILY;COUNT=0")

        assert RecurrenceExpander().expand(event, *JANUARY) == []

    def test_empty_range_yields_nothing(self) -> None:
        event = minimal_event(rrule="FREQ=DAILY")
        expander = RecurrenceExpander()

        assert expander.expand(event, dt(5), dt(5)) == []
        assert expander.expand(event, dt(6), dt(5)) == []

    def test_date_only_until_includes_the_whole_day(self) -> None:
        event = minimal_event(rrule="FREQ=DAILY;UNTIL=20240103")

        result = RecurrenceExpander().expand(event, *JANUARY)

        assert [o.start_time for o in result] == [dt(1), dt(2), dt(3)]

    def test_floating_until_is_read_as_utc(self) -> None:
        event = minimal_event(rrule="FREQ=DAILY;UNTIL=20240103T100000")

        result = RecurrenceExpander().expand(event, *JANUARY)

        assert [o.start_time for o in result] == [dt(1), dt(2), dt(3)]

    def test_rrule_prefix_is_accepted(self) -> None:
        event = minimal_event(rrule="RRULE:FREQ=WEEKLY;BYDAY=MO,WE;COUNT=4")

        result = RecurrenceExpander().expand(event, *JANUARY)

        assert [o.start_time for o in result] == [
            dt(1),
            dt(3),
            dt(8),
            dt(10),
        ]

    def test_occurrence_overlapping_range_start_is_included(self) -> None:
        event = minimal_event(
            start_time=dt(1, 23),
            end_time=dt(2, 1),
            rrule="FREQ=DAILY",
        )

        result = RecurrenceExpander().expand(event, dt(3, 0), dt(3, 12))

        assert result == [RawOccurrence(dt(2, 23), dt(3, 1))]

    def test_unbounded_rule_stops_at_range_end(self) -> None:
        event = minimal_event(rrule="FREQ=HOURLY")

        result = RecurrenceExpander().expand(event, dt(2, 0), dt(3, 0))

        assert len(result) == 24
        assert result[-1].start_time == dt(2, 23)

    def test_selectors_that_never_match_yield_nothing(self) -> None:
        event = minimal_event(rrule="FREQ=YEARLY;BYMONTH=2;BYMONTHDAY=30")

        assert RecurrenceExpander().expand(event, *JANUARY) == []

    def test_subsecond_start_is_preserved(self) -> None:
        start = dt(1).replace(microsecond=250000)
        event = minimal_event(
            start_time=start,
            end_time=start + timedelta(minutes=30),
            rrule="FREQ=DAILY;COUNT=2",
        )

        result = RecurrenceExpander().expand(event, *JANUARY)

        assert [o.start_time for o in result] == [
            start,
            start + timedelta(days=1),
        ]

    def test_occurrence_cap_limits_output(self, caplog) -> None:
        event = minimal_event(rrule="FREQ=MINUTELY")

        with caplog.at_level(logging.WARNING, logger="calcore.recurrence"):
            result = RecurrenceExpander(max_occurrences=10).expand(
                event, *JANUARY
            )

        assert len(result) == 10
        assert "Occurrence cap reached" in caplog.text

    def test_malformed_rule_yields_nothing_and_warns(self, caplog) -> None:
        # Bypass validation to simulate a bad row already in the store
        event = Event.model_construct(
            event_id=7,
            owner_user_id=1,
            title="Broken",
            start_time=dt(1),
            end_time=dt(1, 11),
            rrule="FREQ=SOMETIMES",
            created_at=CREATED,
            updated_at=CREATED,
            deleted_at=None,
        )

        with caplog.at_level(logging.WARNING, logger="calcore.recurrence"):
            result = RecurrenceExpander().expand(event, *JANUARY)

        assert result == []
        assert "malformed recurrence rule" in caplog.text


class TestIsOccurrence:
    def test_generated_start_is_an_occurrence(self) -> None:
        event = minimal_event(rrule="FREQ=WEEKLY")

        assert RecurrenceExpander().is_occurrence(event, dt(15))

    def test_off_rule_time_is_not_an_occurrence(self) -> None:
        event = minimal_event(rrule="FREQ=WEEKLY")
        expander = RecurrenceExpander()

        assert not expander.is_occurrence(event, dt(16))
        assert not expander.is_occurrence(event, dt(15, 11))
        assert not expander.is_occurrence(event, dt(1) - timedelta(days=7))

    def test_instances_past_count_are_not_occurrences(self) -> None:
        event = minimal_event(rrule="FREQ=WEEKLY;COUNT=2")
        expander = RecurrenceExpander()

        assert expander.is_occurrence(event, dt(8))
        assert not expander.is_occurrence(event, dt(15))


class TestRuleParsing:
    @pytest.mark.parametrize(
        "text",
        [
            "",
            "COUNT=3",
            "FREQ=SOMETIMES",
            "FREQ=DAILY;COUNT=abc",
            "FREQ=DAILY;INTERVAL=0",
            "FREQ=DAILY;BYDAY=XX",
            "FREQ=DAILY;COUNT",
        ],
    )
    def test_invalid_rules_are_rejected(self, text: str) -> None:
        with pytest.raises(RecurrenceRuleError):
            RecurrenceRule.parse(text)

    def test_validate_rrule_strips_whitespace(self) -> None:
        assert validate_rrule("  FREQ=DAILY;COUNT=3\n") == "FREQ=DAILY;COUNT=3"

    def test_until_is_capped_by_the_tighter_bound(self) -> None:
        rule = RecurrenceRule.parse("FREQ=DAILY;UNTIL=20240110T000000Z")

        assert "UNTIL=20240105T000000Z" in rule.to_string(dt(5, 0))
        assert "UNTIL=20240110T000000Z" in rule.to_string(dt(20, 0))

    def test_intersects_is_half_open(self) -> None:
        assert intersects(dt(1, 9), dt(1, 11), dt(1, 10), dt(1, 12))
        assert not intersects(dt(1, 9), dt(1, 10), dt(1, 10), dt(1, 12))
        assert not intersects(dt(1, 12), dt(1, 13), dt(1, 10), dt(1, 12))


# --- Properties ---


@composite
def utc_datetime(draw):
    return draw(
        st.datetimes(
            min_value=datetime(2020, 1, 1),
            max_value=datetime(2030, 12, 31),
            timezones=st.just(timezone.utc),
        )
    )


@composite
def window(draw):
    start = draw(utc_datetime())
    minutes = draw(st.integers(min_value=1, max_value=60 * 24 * 30))
    return start, start + timedelta(minutes=minutes)


@given(event_window=window(), query=window())
def test_non_recurring_expansion_is_zero_or_one_exact_window(
    event_window, query
) -> None:
    """Property: a one-off event yields at most its own, unmodified window,
    and only when it intersects the range."""
    start, end = event_window
    event = minimal_event(start_time=start, end_time=end)

    result = RecurrenceExpander().expand(event, *query)

    if start < query[1] and end > query[0]:
        assert result == [RawOccurrence(start, end)]
    else:
        assert result == []


@given(
    event_window=window(),
    query_offset=st.integers(
        min_value=-60 * 24 * 10, max_value=60 * 24 * 60
    ),
    query_minutes=st.integers(min_value=1, max_value=60 * 24 * 30),
    freq=st.sampled_from(["HOURLY", "DAILY", "WEEKLY", "MONTHLY"]),
    count=st.one_of(st.none(), st.integers(min_value=0, max_value=50)),
)
def test_recurring_expansion_invariants(
    event_window, query_offset, query_minutes, freq, count
) -> None:
    """Property: occurrences are ordered, intersect the range, keep the
    base duration, and never exceed COUNT."""
    start, end = event_window
    query_start = start + timedelta(minutes=query_offset)
    query = (query_start, query_start + timedelta(minutes=query_minutes))
    rrule = f"FREQ={freq}" + (f";COUNT={count}" if count is not None else "")
    event = minimal_event(start_time=start, end_time=end, rrule=rrule)

    result = RecurrenceExpander(max_occurrences=500).expand(event, *query)

    starts = [o.start_time for o in result]
    assert starts == sorted(starts)
    assert len(set(starts)) == len(starts)
    for occurrence in result:
        assert occurrence.start_time >= start
        assert occurrence.end_time - occurrence.start_time == end - start
        assert intersects(
            occurrence.start_time, occurrence.end_time, *query
        )
    if count is not None:
        assert len(result) <= count
