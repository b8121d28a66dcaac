"""Tests for the recurrence-rule evaluator."""

from __future__ import annotations

from itertools import islice

import pytest

from calendar_occurrences.expansion.recurrence import RecurrenceRule
from calendar_occurrences.utils.exceptions import RecurrenceRuleError

from factories import utc

ANCHOR = utc(2024, 1, 1, 10)  # a Monday


def _starts(text, window_start, window_end, recurrence_end=None, anchor=ANCHOR):
    return list(RecurrenceRule(text).iter_starts(anchor, window_start, window_end, recurrence_end))


def test_weekly_rule_is_inclusive_of_window_bounds():
    starts = _starts("FREQ=WEEKLY", utc(2024, 1, 1, 10), utc(2024, 1, 15, 10))
    assert starts == [utc(2024, 1, 1, 10), utc(2024, 1, 8, 10), utc(2024, 1, 15, 10)]


def test_rrule_prefix_is_accepted():
    assert _starts("RRULE:FREQ=DAILY;COUNT=3", utc(2024, 1, 1), utc(2024, 2, 1)) == [
        utc(2024, 1, 1, 10),
        utc(2024, 1, 2, 10),
        utc(2024, 1, 3, 10),
    ]


def test_count_is_counted_from_the_anchor_not_the_window():
    starts = _starts("FREQ=DAILY;COUNT=3", utc(2024, 1, 2), utc(2024, 2, 1))
    assert starts == [utc(2024, 1, 2, 10), utc(2024, 1, 3, 10)]


def test_interval_and_by_weekday():
    starts = _starts("FREQ=WEEKLY;INTERVAL=2;BYDAY=MO,WE", utc(2024, 1, 1), utc(2024, 2, 1))
    assert starts == [
        utc(2024, 1, 1, 10),
        utc(2024, 1, 3, 10),
        utc(2024, 1, 15, 10),
        utc(2024, 1, 17, 10),
        utc(2024, 1, 29, 10),
        utc(2024, 1, 31, 10),
    ]


def test_monthly_by_month_day():
    starts = _starts(
        "FREQ=MONTHLY;BYMONTHDAY=15",
        utc(2024, 1, 1),
        utc(2024, 4, 1),
        anchor=utc(2024, 1, 15, 8, 30),
    )
    assert starts == [utc(2024, 1, 15, 8, 30), utc(2024, 2, 15, 8, 30), utc(2024, 3, 15, 8, 30)]


def test_yearly_rule():
    starts = _starts("FREQ=YEARLY", utc(2024, 1, 1), utc(2027, 1, 1))
    assert [s.year for s in starts] == [2024, 2025, 2026]


def test_recurrence_end_tighter_than_rule_until():
    starts = _starts(
        "FREQ=WEEKLY;UNTIL=20240120T000000Z",
        utc(2024, 1, 1),
        utc(2024, 2, 1),
        recurrence_end=utc(2024, 1, 10),
    )
    assert starts == [utc(2024, 1, 1, 10), utc(2024, 1, 8, 10)]


def test_rule_until_tighter_than_recurrence_end():
    starts = _starts(
        "FREQ=WEEKLY;UNTIL=20240110T000000Z",
        utc(2024, 1, 1),
        utc(2024, 2, 1),
        recurrence_end=utc(2024, 1, 20),
    )
    assert starts == [utc(2024, 1, 1, 10), utc(2024, 1, 8, 10)]


def test_open_ended_rule_is_lazy():
    rule = RecurrenceRule("FREQ=DAILY")
    starts = rule.iter_starts(ANCHOR, utc(2024, 1, 1), utc(9999, 1, 1))
    assert list(islice(starts, 3)) == [utc(2024, 1, 1, 10), utc(2024, 1, 2, 10), utc(2024, 1, 3, 10)]


def test_iteration_is_restartable():
    rule = RecurrenceRule("FREQ=WEEKLY;COUNT=4")
    first = list(rule.iter_starts(ANCHOR, utc(2024, 1, 1), utc(2024, 3, 1)))
    second = list(rule.iter_starts(ANCHOR, utc(2024, 1, 1), utc(2024, 3, 1)))
    assert first == second
    assert len(first) == 4


def test_starts_are_truncated_to_the_second():
    anchor = ANCHOR.replace(microsecond=750000)
    starts = _starts("FREQ=DAILY;COUNT=2", utc(2024, 1, 1), utc(2024, 1, 5), anchor=anchor)
    assert all(s.microsecond == 0 for s in starts)
    assert starts[0] == utc(2024, 1, 1, 10)


def test_frequency_property():
    assert RecurrenceRule("rrule:freq=monthly;bymonthday=1").frequency == "MONTHLY"


@pytest.mark.parametrize(
    "text",
    [
        "",
        "   ",
        "DTSTART:20240101T100000Z\nRRULE:FREQ=DAILY",
        "FREQ=DAILY;DTSTART=20240101T100000Z",
        "RRULE:FREQ=DAILY\nRRULE:FREQ=WEEKLY",
        "EXDATE:20240101T100000Z",
        "INTERVAL=2",
        "FREQ=DAILY;INTERVAL=0",
        "FREQ=DAILY;INTERVAL=two",
        "FREQ=DAILY;COUNT=3;UNTIL=20240110T000000Z",
        "FREQ=DAILY;COUNT",
    ],
)
def test_structurally_invalid_rules_are_rejected(text):
    with pytest.raises(RecurrenceRuleError):
        RecurrenceRule(text)


@pytest.mark.parametrize(
    "text",
    [
        "FREQ=SOMETIMES",
        "FREQ=WEEKLY;BYDAY=XX",
        "FREQ=WEEKLY;FOO=1",
        # Floating UNTIL with an absolute anchor
        "FREQ=WEEKLY;UNTIL=20240110T000000",
    ],
)
def test_rules_rejected_by_the_parser(text):
    with pytest.raises(RecurrenceRuleError):
        RecurrenceRule.parse(text)


def test_parse_error_surfaces_on_first_iteration():
    starts = RecurrenceRule("FREQ=SOMETIMES").iter_starts(ANCHOR, utc(2024, 1, 1), utc(2024, 2, 1))
    with pytest.raises(RecurrenceRuleError):
        next(starts)
