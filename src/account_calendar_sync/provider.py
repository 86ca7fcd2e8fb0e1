"""
Calendar Store Provider contract and structured item restrictions.

Concrete providers (Outlook COM, Evolution Data Server) live in their own
modules and are only imported when selected, so the sync engine and its
tests never need a running mail client.
"""

import logging
import operator
import time
from collections.abc import Callable
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date
from datetime import datetime
from typing import Any
from typing import Protocol
from typing import TypeVar

from account_calendar_sync.models import CalendarEvent
from account_calendar_sync.models import Folder
from account_calendar_sync.models import ProviderUnavailableError
from account_calendar_sync.models import RecurrenceException
from account_calendar_sync.models import Store

logger = logging.getLogger(__name__)

# Acquiring the mail client handle: fixed delay, fixed attempt count, no backoff.
CONNECT_ATTEMPTS = 5
CONNECT_DELAY_SECONDS = 2.0

FIELDS = ("subject", "start", "end", "is_recurring")

_OPERATORS: dict[str, Callable[[Any, Any], bool]] = {
    "==": operator.eq,
    ">=": operator.ge,
    "<=": operator.le,
}


@dataclass(frozen=True)
class Predicate:
    """One ``field op value`` test against a calendar item.

    A restriction is a sequence of predicates that must all hold.  Providers
    either evaluate predicates in Python via ``matches`` or render them into
    their native query language, escaping values as that language requires.
    """

    field: str
    op: str
    value: Any

    def __post_init__(self):
        if self.field not in FIELDS:
            raise ValueError(f"Unsupported field: {self.field!r}")
        if self.op not in _OPERATORS:
            raise ValueError(f"Unsupported operator: {self.op!r}")

    def matches(self, event: CalendarEvent) -> bool:
        return _OPERATORS[self.op](getattr(event, self.field), self.value)


Restriction = Sequence[Predicate]


def matches_all(restriction: Restriction, event: CalendarEvent) -> bool:
    """Return True if every predicate in the restriction holds for event."""
    return all(p.matches(event) for p in restriction)


def window_restriction(start: datetime, end: datetime) -> tuple[Predicate, ...]:
    """Non-recurring items whose start lies inside [start, end]."""
    return (
        Predicate("is_recurring", "==", False),
        Predicate("start", ">=", start),
        Predicate("start", "<=", end),
    )


SERIES_RESTRICTION = (Predicate("is_recurring", "==", True),)


class RecurrencePattern(Protocol):
    """Recurrence rule of a series, as exposed by the provider."""

    def occurrence_at(self, moment: datetime) -> CalendarEvent | None:
        """Return the occurrence starting at moment, or None if there is none."""
        ...

    def exceptions(self) -> list[RecurrenceException]: ...


class CalendarStoreProvider(Protocol):
    """Read/write access to the mail client's stores and calendar folders."""

    def list_stores(self) -> list[Store]: ...

    def get_root_folder(self, store: Store) -> Folder: ...

    def get_folder_by_name(self, folder: Folder, name: str) -> Folder | None: ...

    def list_subfolders(self, folder: Folder) -> list[Folder]: ...

    def list_items(self, folder: Folder, restriction: Restriction = ()) -> list[CalendarEvent]: ...

    def create_calendar_item(
        self, folder: Folder, subject: str, start: datetime, end: datetime
    ) -> CalendarEvent: ...

    def get_recurrence_pattern(self, event: CalendarEvent) -> RecurrencePattern: ...


P = TypeVar("P")


def connect_with_retry(
    factory: Callable[[], P],
    attempts: int = CONNECT_ATTEMPTS,
    delay: float = CONNECT_DELAY_SECONDS,
    sleep: Callable[[float], None] = time.sleep,
) -> P:
    """Call factory until it returns a provider, waiting a fixed delay between tries.

    factory signals a failed attempt by raising ProviderUnavailableError.
    After the last attempt the error is re-raised with the attempt count.
    """
    last_error: ProviderUnavailableError | None = None
    for attempt in range(1, attempts + 1):
        try:
            return factory()
        except ProviderUnavailableError as e:
            last_error = e
            logger.warning(f"Mail client not available (attempt {attempt}/{attempts}): {e}")
            if attempt < attempts:
                sleep(delay)
    raise ProviderUnavailableError(
        f"Could not connect to the mail client after {attempts} attempts: {last_error}"
    )


def at_time_of_day(day: date, template: datetime) -> datetime:
    """Combine a calendar date with the time-of-day of template."""
    return datetime.combine(day, template.time())
