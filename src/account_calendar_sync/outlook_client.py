"""
Outlook (desktop, COM object model) calendar store provider.
"""

import logging
from datetime import datetime

import pywintypes
import win32com.client

from account_calendar_sync.models import CalendarEvent
from account_calendar_sync.models import CalendarSyncError
from account_calendar_sync.models import Folder
from account_calendar_sync.models import FolderNotFoundError
from account_calendar_sync.models import ItemCreationError
from account_calendar_sync.models import ProviderUnavailableError
from account_calendar_sync.models import RecurrenceException
from account_calendar_sync.models import Store
from account_calendar_sync.provider import Restriction

logger = logging.getLogger(__name__)

# Outlook constants
olAppointmentItem = 1
olAppointment = 26

# Jet filter syntax expects US-style dates without seconds.
_FILTER_DATE_FORMAT = "%m/%d/%Y %I:%M %p"

_FILTER_FIELDS = {
    "subject": "Subject",
    "start": "Start",
    "end": "End",
    "is_recurring": "IsRecurring",
}
_FILTER_OPS = {"==": "=", ">=": ">=", "<=": "<="}


def _naive(value) -> datetime:
    """Convert a COM date (pywintypes.TimeType) into a naive local datetime."""
    return datetime(value.year, value.month, value.day, value.hour, value.minute, value.second)


def _filter_value(value) -> str:
    if isinstance(value, bool):
        return "True" if value else "False"
    if isinstance(value, datetime):
        return f"'{value.strftime(_FILTER_DATE_FORMAT)}'"
    # Jet filters escape a single quote by doubling it.
    return "'" + str(value).replace("'", "''") + "'"


def render_filter(restriction: Restriction) -> str:
    """Render structured predicates as an Items.Restrict() filter string."""
    return " AND ".join(
        f"[{_FILTER_FIELDS[p.field]}] {_FILTER_OPS[p.op]} {_filter_value(p.value)}"
        for p in restriction
    )


def _to_event(item) -> CalendarEvent:
    return CalendarEvent(
        subject=getattr(item, "Subject", "") or "",
        start=_naive(item.Start),
        end=_naive(item.End),
        is_recurring=bool(getattr(item, "IsRecurring", False)),
        handle=item,
    )


class OutlookRecurrencePattern:
    """Wraps an Outlook RecurrencePattern."""

    def __init__(self, pattern):
        self.pattern = pattern

    def occurrence_at(self, moment: datetime) -> CalendarEvent | None:
        try:
            return _to_event(self.pattern.GetOccurrence(moment))
        except pywintypes.com_error:
            # No occurrence on that date: not an error for the caller.
            return None

    def exceptions(self) -> list[RecurrenceException]:
        result = []
        for exc in self.pattern.Exceptions:
            original = _naive(exc.OriginalDate)
            if exc.Deleted:
                result.append(RecurrenceException(original_date=original.date(), deleted=True))
                continue
            try:
                appointment = _to_event(exc.AppointmentItem)
            except pywintypes.com_error as ce:
                logger.warning(f"Unreadable exception for {original:%Y-%m-%d}: {ce}")
                appointment = None
            result.append(RecurrenceException(original_date=original.date(), appointment=appointment))
        return result


class OutlookStoreProvider:
    """Calendar store provider backed by a running Outlook instance."""

    def __init__(self, namespace):
        self.namespace = namespace

    @classmethod
    def connect(cls) -> "OutlookStoreProvider":
        """Attach to a running Outlook, launching it if necessary.

        Raises ProviderUnavailableError on failure so that callers can retry.
        """
        logger.info("Connecting to Outlook...")
        try:
            try:
                outlook = win32com.client.GetActiveObject("Outlook.Application")
                logger.debug("Connected to active Outlook instance.")
            except pywintypes.com_error:
                logger.debug("No active Outlook instance found, launching new one...")
                outlook = win32com.client.Dispatch("Outlook.Application")
            namespace = outlook.GetNamespace("MAPI")
        except pywintypes.com_error as ce:
            raise ProviderUnavailableError(f"Failed to connect to Outlook (COM Error): {ce}") from ce
        return cls(namespace)

    def list_stores(self) -> list[Store]:
        return [Store(display_name=s.DisplayName, handle=s) for s in self.namespace.Stores]

    def get_root_folder(self, store: Store) -> Folder:
        try:
            root = store.handle.GetRootFolder()
        except pywintypes.com_error as ce:
            raise FolderNotFoundError(f"Cannot open root folder of {store.display_name}: {ce}") from ce
        return Folder(name=root.Name, handle=root)

    def get_folder_by_name(self, folder: Folder, name: str) -> Folder | None:
        try:
            child = folder.handle.Folders(name)
        except pywintypes.com_error:
            logger.debug(f"Folder '{name}' not found under '{folder.name}'")
            return None
        return Folder(name=child.Name, parent=folder, handle=child)

    def list_subfolders(self, folder: Folder) -> list[Folder]:
        try:
            return [Folder(name=f.Name, parent=folder, handle=f) for f in folder.handle.Folders]
        except pywintypes.com_error as ce:
            # Offline or permission-restricted folders (shared mailboxes).
            logger.debug(f"Cannot list subfolders of {folder.path}: {ce}")
            return []

    def list_items(self, folder: Folder, restriction: Restriction = ()) -> list[CalendarEvent]:
        try:
            items = folder.handle.Items
            if restriction:
                items = items.Restrict(render_filter(restriction))
            return [_to_event(item) for item in items if getattr(item, "Class", None) == olAppointment]
        except pywintypes.com_error as ce:
            raise CalendarSyncError(f"Cannot read items of {folder.path}: {ce}") from ce

    def create_calendar_item(
        self, folder: Folder, subject: str, start: datetime, end: datetime
    ) -> CalendarEvent:
        try:
            item = folder.handle.Items.Add(olAppointmentItem)
            item.Subject = subject
            item.Start = start
            item.End = end
            item.Save()
        except pywintypes.com_error as ce:
            raise ItemCreationError(f"Outlook rejected the new appointment: {ce}") from ce
        return CalendarEvent(subject, start, end, handle=item)

    def get_recurrence_pattern(self, event: CalendarEvent) -> OutlookRecurrencePattern:
        try:
            return OutlookRecurrencePattern(event.handle.GetRecurrencePattern())
        except pywintypes.com_error as ce:
            raise CalendarSyncError(f"Cannot read recurrence pattern: {ce}") from ce
