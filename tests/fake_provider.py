"""
In-memory fake calendar store provider for testing.

Duck-type-compatible stand-in for the Outlook and EDS providers.  No mail
client is required — stores, folders and events are plain model objects.
"""

from datetime import date
from datetime import datetime
from datetime import timedelta

from account_calendar_sync.models import CalendarEvent
from account_calendar_sync.models import CalendarSyncError
from account_calendar_sync.models import Folder
from account_calendar_sync.models import FolderNotFoundError
from account_calendar_sync.models import ItemCreationError
from account_calendar_sync.models import RecurrenceException
from account_calendar_sync.models import Store
from account_calendar_sync.provider import Restriction
from account_calendar_sync.provider import matches_all


class FakePattern:
    """Daily or weekly recurrence starting at the series' start.

    ``weekdays`` restricts a weekly rule to those ``date.weekday()`` values
    (defaults to the weekday of the series start).  ``until`` is an inclusive
    last date.
    """

    def __init__(
        self,
        series: CalendarEvent,
        freq: str = "daily",
        weekdays: tuple[int, ...] | None = None,
        until: date | None = None,
        exceptions: list[RecurrenceException] | None = None,
    ):
        self.series = series
        self.freq = freq
        self.weekdays = weekdays if weekdays is not None else (series.start.weekday(),)
        self.until = until
        self._exceptions = list(exceptions or [])
        self.probes: list[datetime] = []

    def occurrence_at(self, moment: datetime) -> CalendarEvent | None:
        self.probes.append(moment)
        if moment < self.series.start or moment.time() != self.series.start.time():
            return None
        if self.until is not None and moment.date() > self.until:
            return None
        if self.freq == "weekly" and moment.weekday() not in self.weekdays:
            return None
        if any(e.deleted and e.original_date == moment.date() for e in self._exceptions):
            return None
        return CalendarEvent(self.series.subject, moment, moment + self.series.duration)

    def exceptions(self) -> list[RecurrenceException]:
        return list(self._exceptions)


class FakeStoreProvider:
    """In-memory stub that satisfies the CalendarStoreProvider contract."""

    def __init__(self):
        self.stores: list[Store] = []
        self._roots: dict[str, Folder] = {}
        self._patterns: dict[int, FakePattern] = {}
        self.creates: list[CalendarEvent] = []
        self.fail_creates_for: set[str] = set()
        self.broken_stores: set[str] = set()
        self.unreadable_folders: set[str] = set()

    # ------------------------------------------------------------------ #
    # Test setup helpers                                                    #
    # ------------------------------------------------------------------ #

    def add_store(self, display_name: str, with_calendar: bool = True) -> Folder:
        """Create a store and return its root folder."""
        root = Folder(name=display_name)
        self.stores.append(Store(display_name=display_name, handle=display_name))
        self._roots[display_name] = root
        if with_calendar:
            root.add_child(Folder(name="Calendar"))
        return root

    def calendar(self, display_name: str) -> Folder:
        return self.get_folder_by_name(self._roots[display_name], "Calendar")

    def add_event(
        self, folder: Folder, subject: str, start: datetime, end: datetime
    ) -> CalendarEvent:
        event = CalendarEvent(subject, start, end)
        folder.items.append(event)
        return event

    def add_series(
        self,
        folder: Folder,
        subject: str,
        start: datetime,
        duration: timedelta = timedelta(hours=1),
        **pattern_kwargs,
    ) -> CalendarEvent:
        series = CalendarEvent(subject, start, start + duration, is_recurring=True)
        folder.items.append(series)
        self._patterns[id(series)] = FakePattern(series, **pattern_kwargs)
        return series

    # ------------------------------------------------------------------ #
    # CalendarStoreProvider interface                                      #
    # ------------------------------------------------------------------ #

    def list_stores(self) -> list[Store]:
        return list(self.stores)

    def get_root_folder(self, store: Store) -> Folder:
        if store.display_name in self.broken_stores:
            raise FolderNotFoundError(f"{store.display_name} is offline")
        return self._roots[store.display_name]

    def get_folder_by_name(self, folder: Folder, name: str) -> Folder | None:
        return next((f for f in folder.children if f.name == name), None)

    def list_subfolders(self, folder: Folder) -> list[Folder]:
        return list(folder.children)

    def list_items(self, folder: Folder, restriction: Restriction = ()) -> list[CalendarEvent]:
        if folder.path in self.unreadable_folders:
            raise CalendarSyncError(f"{folder.path} is offline")
        return [e for e in folder.items if matches_all(restriction, e)]

    def create_calendar_item(
        self, folder: Folder, subject: str, start: datetime, end: datetime
    ) -> CalendarEvent:
        if subject in self.fail_creates_for:
            raise ItemCreationError(f"Rejected {subject!r}")
        event = CalendarEvent(subject, start, end)
        folder.items.append(event)
        self.creates.append(event)
        return event

    def get_recurrence_pattern(self, event: CalendarEvent) -> FakePattern:
        return self._patterns[id(event)]

    # ------------------------------------------------------------------ #
    # Test helpers                                                          #
    # ------------------------------------------------------------------ #

    def reset_counters(self):
        """Clear the create list between sync runs."""
        self.creates.clear()
