"""
Unit tests for duplicate detection and structured predicates.
"""

from datetime import datetime

import pytest

from account_calendar_sync.models import CalendarEvent
from account_calendar_sync.models import MatchPolicy
from account_calendar_sync.models import Occurrence
from account_calendar_sync.provider import Predicate
from account_calendar_sync.provider import matches_all
from account_calendar_sync.provider import window_restriction
from account_calendar_sync.sync.dedupe import exists
from account_calendar_sync.sync.dedupe import match_restriction

SUBJECT = "Bob : Planning"
CANDIDATE = Occurrence(SUBJECT, datetime(2026, 3, 5, 10, 0), datetime(2026, 3, 5, 12, 0))


def _item(subject: str, start_hour: int, end_hour: int, day: int = 5) -> CalendarEvent:
    return CalendarEvent(
        subject, datetime(2026, 3, day, start_hour, 0), datetime(2026, 3, day, end_hour, 0)
    )


# ---------------------------------------------------------------------------
# Subject-only policy
# ---------------------------------------------------------------------------


class TestSubjectPolicy:
    def test_same_subject_any_time_is_duplicate(self):
        other_day = _item(SUBJECT, 15, 16, day=20)
        assert exists([other_day], CANDIDATE, MatchPolicy.SUBJECT)

    def test_subject_comparison_is_case_sensitive(self):
        assert not exists([_item(SUBJECT.lower(), 10, 12)], CANDIDATE, MatchPolicy.SUBJECT)

    def test_empty_destination(self):
        assert not exists([], CANDIDATE, MatchPolicy.SUBJECT)

    def test_restriction_has_subject_only(self):
        assert match_restriction(CANDIDATE, MatchPolicy.SUBJECT) == (
            Predicate("subject", "==", SUBJECT),
        )


# ---------------------------------------------------------------------------
# Subject-and-time policy
# ---------------------------------------------------------------------------


class TestSubjectAndTimePolicy:
    policy = MatchPolicy.SUBJECT_AND_TIME

    def test_exact_interval_is_duplicate(self):
        assert exists([_item(SUBJECT, 10, 12)], CANDIDATE, self.policy)

    def test_narrower_interval_is_duplicate(self):
        assert exists([_item(SUBJECT, 10, 11)], CANDIDATE, self.policy)

    def test_wider_interval_is_not_duplicate(self):
        assert not exists([_item(SUBJECT, 9, 13)], CANDIDATE, self.policy)

    def test_overlapping_but_later_end_is_not_duplicate(self):
        assert not exists([_item(SUBJECT, 11, 13)], CANDIDATE, self.policy)

    def test_same_subject_other_day_is_not_duplicate(self):
        assert not exists([_item(SUBJECT, 10, 12, day=6)], CANDIDATE, self.policy)

    def test_different_subject_same_time_is_not_duplicate(self):
        assert not exists([_item("Alice : Planning", 10, 12)], CANDIDATE, self.policy)

    def test_any_matching_item_is_enough(self):
        items = [_item("Other", 10, 12), _item(SUBJECT, 9, 13), _item(SUBJECT, 10, 12)]
        assert exists(items, CANDIDATE, self.policy)


# ---------------------------------------------------------------------------
# Predicates
# ---------------------------------------------------------------------------


class TestPredicates:
    def test_subject_with_quotes_is_compared_literally(self):
        quoted = "Bob : O'Brien \"1:1\""
        item = _item(quoted, 10, 12)
        candidate = Occurrence(quoted, item.start, item.end)
        assert exists([item], candidate, MatchPolicy.SUBJECT_AND_TIME)

    def test_unknown_field_rejected(self):
        with pytest.raises(ValueError):
            Predicate("location", "==", "x")

    def test_unknown_operator_rejected(self):
        with pytest.raises(ValueError):
            Predicate("subject", "LIKE", "x")

    def test_empty_restriction_matches_everything(self):
        assert matches_all((), _item("anything", 1, 2))

    def test_window_restriction_selects_single_events_by_start(self):
        restriction = window_restriction(datetime(2026, 3, 5, 0, 0), datetime(2026, 3, 6, 0, 0))
        inside = _item("in", 10, 11)
        on_end = CalendarEvent("edge", datetime(2026, 3, 6, 0, 0), datetime(2026, 3, 6, 1, 0))
        before = _item("before", 10, 11, day=4)
        series = CalendarEvent("series", inside.start, inside.end, is_recurring=True)

        assert matches_all(restriction, inside)
        assert matches_all(restriction, on_end)
        assert not matches_all(restriction, before)
        assert not matches_all(restriction, series)
