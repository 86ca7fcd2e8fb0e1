"""
Unit tests for EDSRecurrencePattern on parsed VEVENT components.

Needs PyGObject with the ICalGLib typelib; no running Evolution Data Server.
"""

import logging
from datetime import date
from datetime import datetime

import pytest

pytest.importorskip("gi")

try:
    from account_calendar_sync import eds_client
except (ImportError, ValueError) as e:
    pytest.skip(f"libical-glib not available: {e}", allow_module_level=True)

from account_calendar_sync.sync.expander import expand_occurrences  # noqa: E402


def _master(*lines: str):
    return eds_client._parse_component(
        "\r\n".join(["BEGIN:VEVENT", "UID:series-1", "SUMMARY:Standup", *lines, "END:VEVENT", ""])
    )


def _expand(master, window):
    event = eds_client._to_event(master)
    pattern = eds_client.EDSRecurrencePattern(master, [])
    return event, expand_occurrences(event, pattern, window)


# ---------------------------------------------------------------------------
# TZID and UNTIL handling
# ---------------------------------------------------------------------------


class TestWindowsTimezoneSeries:
    LINES = (
        "DTSTART;TZID=W. Europe Standard Time:20260302T090000",
        "DTEND;TZID=W. Europe Standard Time:20260302T093000",
        "RRULE:FREQ=DAILY;UNTIL=20260306",
    )

    def test_unknown_tzid_still_expands(self, window):
        _, occurrences = _expand(_master(*self.LINES), window)
        assert occurrences

    def test_stops_at_date_only_until(self, window):
        event, occurrences = _expand(_master(*self.LINES), window)
        assert [o.start.date() for o in occurrences] == [date(2026, 3, d) for d in range(3, 7)]
        assert {o.start.time() for o in occurrences} == {event.start.time()}


def test_iterator_failure_yields_no_occurrences(window, monkeypatch, caplog):
    def broken(rule, dtstart):
        raise RuntimeError("unknown timezone")

    monkeypatch.setattr(eds_client, "_recur_iterator", broken)
    master = _master("DTSTART:20260302T090000", "DTEND:20260302T093000", "RRULE:FREQ=DAILY")

    with caplog.at_level(logging.WARNING):
        _, occurrences = _expand(master, window)

    assert occurrences == []
    assert "Cannot expand recurrence of 'Standup'" in caplog.text


# ---------------------------------------------------------------------------
# Series length
# ---------------------------------------------------------------------------


def test_long_running_series_reaches_the_window(window):
    master = _master("DTSTART:20000103T090000", "DTEND:20000103T093000", "RRULE:FREQ=DAILY")
    _, occurrences = _expand(master, window)
    assert [o.start for o in occurrences] == [datetime(2026, 3, d, 9, 0) for d in range(3, 12)]


def test_iteration_cap_is_logged(window, caplog):
    master = _master("DTSTART:20260303T090000", "DTEND:20260303T090100", "RRULE:FREQ=MINUTELY")
    with caplog.at_level(logging.WARNING):
        _, occurrences = _expand(master, window)

    assert occurrences
    assert len(occurrences) < len(window.dates())
    assert "truncated" in caplog.text
