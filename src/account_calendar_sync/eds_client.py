"""
Evolution Data Server calendar store provider.

EDS has no folder tree in the Outlook sense: each account (collection
source) is treated as a store whose root folder holds that account's
calendar sources as children.  Calendars without a parent account are
grouped under the built-in "On This Computer" store.
"""

import logging
import re
import uuid
from datetime import date
from datetime import datetime
from datetime import time
from datetime import timedelta
from datetime import timezone

import gi

gi.require_version("EDataServer", "1.2")
gi.require_version("ECal", "2.0")
gi.require_version("ICalGLib", "3.0")
from gi.repository import ECal
from gi.repository import EDataServer
from gi.repository import GLib
from gi.repository import ICalGLib

from account_calendar_sync.models import CalendarEvent
from account_calendar_sync.models import CalendarSyncError
from account_calendar_sync.models import Folder
from account_calendar_sync.models import FolderNotFoundError
from account_calendar_sync.models import ItemCreationError
from account_calendar_sync.models import ProviderUnavailableError
from account_calendar_sync.models import RecurrenceException
from account_calendar_sync.models import Store
from account_calendar_sync.provider import Restriction
from account_calendar_sync.provider import matches_all

logger = logging.getLogger(__name__)

LOCAL_STORE_NAME = "On This Computer"

# Matches both VALUE=DATE (EXDATE;VALUE=DATE:20260216) and TZID datetime
# (EXDATE;TZID=...:20260216T110000) forms; captures the YYYYMMDD prefix.
# Used when get_exdate() returns null_time for VALUE=DATE properties.
_EXDATE_DATE_RE = re.compile(r"^EXDATE[^:\n]*:(\d{8})", re.MULTILINE)

# Date portion of the RRULE's UNTIL, both date-only (UNTIL=20260316) and
# UTC datetime (UNTIL=20260316T100000Z).
_RRULE_UNTIL_RE = re.compile(r"UNTIL=(\d{8})")

# Upper bound on occurrences kept per series, counted from the first probed date.
_MAX_ITERATIONS = 5000


def _parse_component(obj) -> ICalGLib.Component:
    """Return the VEVENT of an EDS object (string or Component, bare or wrapped)."""
    comp = ICalGLib.Component.new_from_string(obj) if isinstance(obj, str) else obj
    if comp.isa() == ICalGLib.ComponentKind.VCALENDAR_COMPONENT:
        return comp.get_first_component(ICalGLib.ComponentKind.VEVENT_COMPONENT)
    return comp


def _to_local(t: ICalGLib.Time) -> datetime:
    """Convert an ICalGLib.Time into a naive local datetime."""
    if t.is_date():
        return datetime(t.get_year(), t.get_month(), t.get_day())
    if not t.is_utc() and t.get_timezone() is not None:
        try:
            t = t.convert_to_zone(ICalGLib.Timezone.get_utc_timezone())
        except Exception as e:
            logger.debug(f"Timezone conversion failed, using floating time: {e}")
    value = datetime(
        t.get_year(), t.get_month(), t.get_day(), t.get_hour(), t.get_minute(), t.get_second()
    )
    if t.is_utc():
        return value.replace(tzinfo=timezone.utc).astimezone().replace(tzinfo=None)
    return value


def _summary(comp: ICalGLib.Component) -> str:
    prop = comp.get_first_property(ICalGLib.PropertyKind.SUMMARY_PROPERTY)
    return (prop.get_summary() or "") if prop else ""


def _to_event(comp: ICalGLib.Component, handle=None) -> CalendarEvent:
    start = _to_local(comp.get_dtstart())
    dtend = comp.get_dtend()
    end = _to_local(dtend) if dtend and not dtend.is_null_time() else start
    is_recurring = comp.get_first_property(ICalGLib.PropertyKind.RRULE_PROPERTY) is not None
    return CalendarEvent(_summary(comp), start, end, is_recurring=is_recurring, handle=handle)


def _ical_text(comp: ICalGLib.Component) -> str:
    # as_ical_string() on a child component may raise or return nothing in
    # some libical-glib builds.
    try:
        return comp.as_ical_string() or ""
    except Exception as e:
        logger.debug(f"as_ical_string() failed: {e}")
        return ""


def _wall_clock(t: ICalGLib.Time) -> datetime:
    return datetime(
        t.get_year(), t.get_month(), t.get_day(), t.get_hour(), t.get_minute(), t.get_second()
    )


def _floating(t: ICalGLib.Time) -> ICalGLib.Time:
    """Timezone-free copy of t.

    RecurIterator.new() raises when DTSTART carries a TZID libical does not
    know (Windows zone names from Exchange, for instance).
    """
    try:
        return ICalGLib.Time.new_from_string(f"{_wall_clock(t):%Y%m%dT%H%M%S}")
    except Exception as e:
        logger.debug(f"Cannot build floating DTSTART, using the original: {e}")
        return t


def _recur_iterator(rule: ICalGLib.Recurrence, dtstart: ICalGLib.Time) -> ICalGLib.RecurIterator:
    return ICalGLib.RecurIterator.new(rule, dtstart)


def _until_date(comp: ICalGLib.Component, rule: ICalGLib.Recurrence) -> date | None:
    """UNTIL of the series as a date, or None for an open-ended rule."""
    m = _RRULE_UNTIL_RE.search(_ical_text(comp))
    if m:
        return datetime.strptime(m.group(1), "%Y%m%d").date()
    until = rule.get_until()
    if until is not None and not until.is_null_time():
        return date(until.get_year(), until.get_month(), until.get_day())
    return None


def _exdates(comp: ICalGLib.Component) -> set[date]:
    """Collect EXDATE dates, falling back to the raw iCal text."""
    found: set[date] = set()
    prop = comp.get_first_property(ICalGLib.PropertyKind.EXDATE_PROPERTY)
    while prop:
        t = prop.get_exdate()
        if t and not t.is_null_time():
            found.add(date(t.get_year(), t.get_month(), t.get_day()))
        prop = comp.get_next_property(ICalGLib.PropertyKind.EXDATE_PROPERTY)
    if not found:
        for m in _EXDATE_DATE_RE.finditer(_ical_text(comp)):
            found.add(datetime.strptime(m.group(1), "%Y%m%d").date())
    return found


def _ical_time(value: datetime) -> str:
    return value.strftime("%Y%m%dT%H%M%S")


def _escape_text(value: str) -> str:
    return (
        value.replace("\\", "\\\\").replace(";", "\\;").replace(",", "\\,").replace("\n", "\\n")
    )


class EDSRecurrencePattern:
    """Occurrences of one master VEVENT, generated with ICalGLib.RecurIterator.

    The iterator runs on a floating copy of DTSTART and results are shifted
    by the master's offset between wall-clock and local start.  Iteration
    stops at the RRULE's UNTIL date: with a TZID DTSTART and a date-only
    UNTIL, libical keeps emitting occurrences past the end of the series.

    Moments must be probed in ascending order.  Steps before the first
    probed date are neither kept nor counted against _MAX_ITERATIONS.  A
    series whose iterator fails has no occurrences; a warning is logged.
    """

    def __init__(self, master: ICalGLib.Component, detached: list[ICalGLib.Component]):
        self.master = master
        self.detached = detached
        self._subject = _summary(master)
        self._duration = _to_event(master).duration
        self._excluded = _exdates(master)
        self._iterator = None
        self._until: date | None = None
        self._shift = timedelta(0)
        self._floor: datetime | None = None
        self._last: datetime | None = None
        self._generated: set[datetime] = set()
        self._exhausted = False

    def _start(self, limit: datetime) -> None:
        self._floor = datetime.combine(limit.date(), time.min)
        dtstart = self.master.get_dtstart()
        floating = _floating(dtstart)
        try:
            rule = self.master.get_first_property(ICalGLib.PropertyKind.RRULE_PROPERTY).get_rrule()
            self._iterator = _recur_iterator(rule, floating)
            self._until = _until_date(self.master, rule)
        except Exception as e:
            self._iterator = None
            logger.warning(f"Cannot expand recurrence of {self._subject!r}: {e}")
        if self._iterator is None:
            self._exhausted = True
            return
        self._shift = _to_local(dtstart) - _wall_clock(floating)

    def _next(self) -> datetime | None:
        try:
            occ = self._iterator.next()
        except Exception as e:
            logger.warning(f"Recurrence of {self._subject!r} stopped early: {e}")
            return None
        if occ is None or occ.is_null_time():
            return None
        wall = _wall_clock(occ)
        if self._until is not None and wall.date() > self._until:
            return None
        moment = wall + self._shift
        if self._last is not None and moment <= self._last:
            logger.warning(f"Recurrence of {self._subject!r} is not advancing at {moment}")
            return None
        return moment

    def _generate_until(self, limit: datetime) -> None:
        if self._iterator is None and not self._exhausted:
            self._start(limit)
        while not self._exhausted and (self._last is None or self._last < limit):
            moment = self._next()
            if moment is None:
                self._exhausted = True
                break
            self._last = moment
            if moment < self._floor:
                continue
            self._generated.add(moment)
            if len(self._generated) >= _MAX_ITERATIONS:
                logger.warning(
                    f"Recurrence of {self._subject!r} truncated after "
                    f"{_MAX_ITERATIONS} occurrences"
                )
                self._exhausted = True

    def occurrence_at(self, moment: datetime) -> CalendarEvent | None:
        self._generate_until(moment)
        if moment not in self._generated or moment.date() in self._excluded:
            return None
        return CalendarEvent(self._subject, moment, moment + self._duration)

    def exceptions(self) -> list[RecurrenceException]:
        result = []
        modified = set()
        for comp in self.detached:
            original = _to_local(comp.get_recurrenceid()).date()
            modified.add(original)
            result.append(RecurrenceException(original_date=original, appointment=_to_event(comp)))
        # Exchange lists every modified instance as an EXDATE as well; only
        # dates without a detached instance are real deletions.
        for day in sorted(self._excluded - modified):
            result.append(RecurrenceException(original_date=day, deleted=True))
        return result


class EDSStoreProvider:
    """Calendar store provider backed by the EDS source registry."""

    def __init__(self, registry: EDataServer.SourceRegistry, timeout: int = 10):
        self.registry = registry
        self.timeout = timeout
        self._clients: dict[str, ECal.Client] = {}

    @classmethod
    def connect(cls) -> "EDSStoreProvider":
        """Open the EDS source registry; raises ProviderUnavailableError on failure."""
        logger.info("Connecting to Evolution Data Server...")
        try:
            return cls(EDataServer.SourceRegistry.new_sync(None))
        except GLib.Error as e:
            raise ProviderUnavailableError(f"EDS registry unreachable: {e.message}") from e

    def _calendar_sources(self) -> list:
        return self.registry.list_sources(EDataServer.SOURCE_EXTENSION_CALENDAR)

    def _store_uid(self, source) -> str:
        return source.get_parent() or ""

    def _client(self, source) -> ECal.Client:
        uid = source.get_uid()
        if uid not in self._clients:
            try:
                self._clients[uid] = ECal.Client.connect_sync(
                    source, ECal.ClientSourceType.EVENTS, self.timeout, None
                )
            except GLib.Error as e:
                raise CalendarSyncError(f"Failed to connect to calendar {uid}: {e.message}") from e
        return self._clients[uid]

    def _objects(self, source) -> list[ICalGLib.Component]:
        try:
            # "#t" (boolean true) is the correct sexp for "all events".
            _, objects = self._client(source).get_object_list_sync("#t", None)
        except GLib.Error as e:
            raise CalendarSyncError(f"Failed to fetch events: {e.message}") from e
        return [c for c in (_parse_component(o) for o in objects) if c is not None]

    def list_stores(self) -> list[Store]:
        stores: dict[str, Store] = {}
        for source in self._calendar_sources():
            uid = self._store_uid(source)
            if uid in stores:
                continue
            parent = self.registry.ref_source(uid) if uid else None
            name = (parent.get_display_name() if parent else None) or LOCAL_STORE_NAME
            stores[uid] = Store(display_name=name, handle=uid)
        return list(stores.values())

    def get_root_folder(self, store: Store) -> Folder:
        root = Folder(name=store.display_name, handle=store.handle)
        for source in self._calendar_sources():
            if self._store_uid(source) == store.handle:
                root.add_child(Folder(name=source.get_display_name() or "", handle=source))
        if not root.children:
            raise FolderNotFoundError(f"Store {store.display_name!r} has no calendars")
        return root

    def get_folder_by_name(self, folder: Folder, name: str) -> Folder | None:
        return next((f for f in self.list_subfolders(folder) if f.name == name), None)

    def list_subfolders(self, folder: Folder) -> list[Folder]:
        return list(folder.children)

    def list_items(self, folder: Folder, restriction: Restriction = ()) -> list[CalendarEvent]:
        if folder.parent is None:
            return []
        masters: dict[str, ICalGLib.Component] = {}
        detached: dict[str, list[ICalGLib.Component]] = {}
        for comp in self._objects(folder.handle):
            uid = comp.get_uid() or ""
            if comp.get_first_property(ICalGLib.PropertyKind.RECURRENCEID_PROPERTY):
                detached.setdefault(uid, []).append(comp)
            else:
                masters[uid] = comp

        events = []
        for uid, comp in masters.items():
            event = _to_event(comp, handle=(comp, detached.get(uid, [])))
            if matches_all(restriction, event):
                events.append(event)
        return events

    def create_calendar_item(
        self, folder: Folder, subject: str, start: datetime, end: datetime
    ) -> CalendarEvent:
        ical = (
            "BEGIN:VEVENT\r\n"
            f"UID:{uuid.uuid4()}\r\n"
            f"SUMMARY:{_escape_text(subject)}\r\n"
            f"DTSTART:{_ical_time(start)}\r\n"
            f"DTEND:{_ical_time(end)}\r\n"
            f"DTSTAMP:{datetime.now(timezone.utc).strftime('%Y%m%dT%H%M%SZ')}\r\n"
            "END:VEVENT\r\n"
        )
        try:
            self._client(folder.handle).create_object_sync(
                ICalGLib.Component.new_from_string(ical), ECal.OperationFlags.NONE, None
            )
        except (GLib.Error, CalendarSyncError) as e:
            raise ItemCreationError(f"Failed to create event {subject!r}: {e}") from e
        return CalendarEvent(subject, start, end)

    def get_recurrence_pattern(self, event: CalendarEvent) -> EDSRecurrencePattern:
        master, detached = event.handle
        return EDSRecurrencePattern(master, detached)
