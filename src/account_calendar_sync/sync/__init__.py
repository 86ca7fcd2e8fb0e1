"""
CalendarSynchronizer — thin orchestrator that delegates to sync submodules.
"""

import logging
from datetime import datetime

from rich.console import Console

from account_calendar_sync.models import CALENDAR_FOLDER_NAME
from account_calendar_sync.models import DestinationNotFoundError
from account_calendar_sync.models import Folder
from account_calendar_sync.models import FolderNotFoundError
from account_calendar_sync.models import Store
from account_calendar_sync.models import SyncConfig
from account_calendar_sync.models import SyncStats
from account_calendar_sync.models import SyncWindow
from account_calendar_sync.provider import CalendarStoreProvider
from account_calendar_sync.sync.one_way import run_copy


def resolve_destination(
    provider: CalendarStoreProvider, display_name: str
) -> tuple[Store, Folder]:
    """Find the destination store by exact display name and its Calendar folder."""
    store = next((s for s in provider.list_stores() if s.display_name == display_name), None)
    if store is None:
        raise DestinationNotFoundError(f"No mail store named {display_name!r}")
    try:
        root = provider.get_root_folder(store)
    except FolderNotFoundError as e:
        raise DestinationNotFoundError(f"Store {display_name!r} has no root folder: {e}") from e
    calendar = provider.get_folder_by_name(root, CALENDAR_FOLDER_NAME)
    if calendar is None:
        raise DestinationNotFoundError(
            f"Store {display_name!r} has no {CALENDAR_FOLDER_NAME!r} folder"
        )
    return store, calendar


class CalendarSynchronizer:
    """Main synchronization engine."""

    def __init__(
        self,
        config: SyncConfig,
        provider: CalendarStoreProvider,
        console: Console | None = None,
    ):
        self.config = config
        self.provider = provider
        self.console = console or Console()
        self.logger = logging.getLogger(__name__)
        self.stats = SyncStats()

    def _emit(self, line: str) -> None:
        self.console.print(line, markup=False, highlight=False, soft_wrap=True)

    def run(self, now: datetime | None = None) -> SyncStats:
        """Execute the synchronization process."""
        window = SyncWindow.around(
            now or datetime.now(), self.config.before_days, self.config.after_days
        )
        self.logger.info(f"Sync window: {window.start:%Y-%m-%d %H:%M} → {window.end:%Y-%m-%d %H:%M}")

        # Resolved once; a missing destination aborts before any store is read.
        destination_store, destination = resolve_destination(self.provider, self.config.destination)
        self.logger.debug(f"Destination calendar: {destination.path}")

        run_copy(
            self.config,
            self.stats,
            self.logger,
            self._emit,
            self.provider,
            destination_store,
            destination,
            window,
        )
        return self.stats
