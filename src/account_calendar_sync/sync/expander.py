"""
Recurring series → concrete occurrences inside the sync window.
"""

import logging
from collections.abc import Iterable

from account_calendar_sync.models import CalendarEvent
from account_calendar_sync.models import Occurrence
from account_calendar_sync.models import SyncWindow
from account_calendar_sync.provider import RecurrencePattern
from account_calendar_sync.provider import at_time_of_day

_logger = logging.getLogger(__name__)


def expand_occurrences(
    event: CalendarEvent,
    pattern: RecurrencePattern | None,
    window: SyncWindow,
) -> list[Occurrence]:
    """Return the occurrences of event that fall inside window.

    A non-recurring event is returned unchanged as a single occurrence.

    For a series, every calendar date of the window is probed at the
    series' time of day.  Dates the pattern has no occurrence for are
    skipped silently: a weekly meeting simply has nothing on most days.

    Recorded exceptions replace the pattern occurrence of their original
    date.  A deleted exception removes it; a modified one contributes its
    replacement appointment when that appointment starts inside the window,
    even if it was moved there from a date outside the window.  A modified
    exception whose appointment could not be read leaves the pattern
    occurrence of its date in place.
    """
    if not event.is_recurring:
        return [Occurrence.from_event(event)]
    if pattern is None:
        raise ValueError(f"Recurring event {event.subject!r} has no recurrence pattern")

    exceptions = pattern.exceptions()
    overridden = set()
    for exc in exceptions:
        if exc.deleted or exc.appointment is not None:
            overridden.add(exc.original_date)
        else:
            _logger.warning(
                "Exception of %r on %s has no readable appointment; keeping the pattern occurrence",
                event.subject,
                exc.original_date,
            )

    occurrences: list[Occurrence] = []
    for day in window.dates():
        if day in overridden:
            continue
        instance = pattern.occurrence_at(at_time_of_day(day, event.start))
        if instance is None:
            continue
        occurrences.append(Occurrence.from_event(instance, source=event))

    for exc in exceptions:
        if exc.deleted or exc.appointment is None:
            continue
        if window.contains(exc.appointment.start):
            occurrences.append(Occurrence.from_event(exc.appointment, source=event))

    _logger.debug(
        "expand_occurrences: %r → %d occurrence(s), %d exception(s)",
        event.subject,
        len(occurrences),
        len(exceptions),
    )
    return occurrences


def sort_occurrences(occurrences: Iterable[Occurrence]) -> list[Occurrence]:
    """Order occurrences by start ascending, then end and subject for ties."""
    return sorted(occurrences, key=lambda o: (o.start, o.end, o.subject))
