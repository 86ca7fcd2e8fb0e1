"""
Pure data models — no provider or console imports.
"""

import enum
from dataclasses import dataclass
from dataclasses import field
from datetime import date
from datetime import datetime
from datetime import timedelta
from pathlib import Path
from typing import Any

DEFAULT_CONFIG = Path.home() / ".config/account-calendar-sync.conf"

CALENDAR_FOLDER_NAME = "Calendar"
DEFAULT_EXCLUSIONS = ("Public Folders", "Shared")
DEFAULT_BEFORE_DAYS = 1
DEFAULT_AFTER_DAYS = 7


class CalendarSyncError(Exception):
    """Base exception for calendar sync errors."""

    pass


class ProviderUnavailableError(CalendarSyncError):
    """The mail client could not be reached within the retry budget."""


class DestinationNotFoundError(CalendarSyncError):
    """No store matches the destination name, or it has no Calendar folder."""


class FolderNotFoundError(CalendarSyncError):
    """A store lacks a folder the sync expected to find."""


class ItemCreationError(CalendarSyncError):
    """The provider rejected creating or saving a destination item."""


class MatchPolicy(str, enum.Enum):
    """How an occurrence is compared against existing destination items."""

    SUBJECT = "subject"
    SUBJECT_AND_TIME = "subject-and-time"


@dataclass
class Store:
    """A mail account's data container."""

    display_name: str
    handle: Any = field(default=None, repr=False, compare=False)


@dataclass(eq=False)
class Folder:
    """Node in a store's folder tree.

    ``parent`` is a back-reference only.  Providers that expose their tree
    lazily leave ``children`` empty and answer ``list_subfolders`` instead.
    """

    name: str
    parent: "Folder | None" = field(default=None, repr=False)
    children: list["Folder"] = field(default_factory=list, repr=False)
    items: list["CalendarEvent"] = field(default_factory=list, repr=False)
    handle: Any = field(default=None, repr=False)

    def add_child(self, child: "Folder") -> "Folder":
        child.parent = self
        self.children.append(child)
        return child

    @property
    def path(self) -> str:
        parts = []
        node: Folder | None = self
        while node is not None:
            parts.append(node.name)
            node = node.parent
        return "/".join(reversed(parts))


@dataclass
class CalendarEvent:
    """A single appointment or the master of a recurring series."""

    subject: str
    start: datetime
    end: datetime
    is_recurring: bool = False
    handle: Any = field(default=None, repr=False, compare=False)

    @property
    def duration(self) -> timedelta:
        return self.end - self.start


@dataclass
class RecurrenceException:
    """A deviation from a series' pattern for one original date."""

    original_date: date
    deleted: bool = False
    appointment: CalendarEvent | None = None


@dataclass(frozen=True)
class Occurrence:
    """One concrete instance of an event, computed per run."""

    subject: str
    start: datetime
    end: datetime
    source: CalendarEvent | None = field(default=None, compare=False, repr=False)

    @classmethod
    def from_event(cls, event: CalendarEvent, source: CalendarEvent | None = None) -> "Occurrence":
        return cls(event.subject, event.start, event.end, source=source or event)


@dataclass(frozen=True)
class SyncWindow:
    """Immutable date-time range considered for source events in one run."""

    start: datetime
    end: datetime

    @classmethod
    def around(cls, now: datetime, before_days: int, after_days: int) -> "SyncWindow":
        return cls(now - timedelta(days=before_days), now + timedelta(days=after_days))

    def contains(self, moment: datetime) -> bool:
        return self.start <= moment <= self.end

    def dates(self) -> list[date]:
        """Every calendar date from start to end, both inclusive."""
        first = self.start.date()
        last = self.end.date()
        return [first + timedelta(days=n) for n in range((last - first).days + 1)]


@dataclass
class SyncConfig:
    """Configuration for calendar sync operation."""

    destination: str
    before_days: int = DEFAULT_BEFORE_DAYS
    after_days: int = DEFAULT_AFTER_DAYS
    dry_run: bool = False
    extra_folder_names: list[str] = field(default_factory=list)
    exclusions: list[str] = field(default_factory=lambda: list(DEFAULT_EXCLUSIONS))
    abbreviate: bool = False
    match_policy: MatchPolicy = MatchPolicy.SUBJECT_AND_TIME
    prune_excluded: bool = False
    verbose: bool = False
    provider: str = "outlook"


@dataclass
class SyncStats:
    """Statistics for sync operation."""

    created: int = 0
    would_create: int = 0
    skipped: int = 0
    errors: int = 0
    stores: int = 0
    folders: int = 0
    outcomes: list[str] = field(default_factory=list)
