"""
Source stores → destination calendar one-way copy.
"""

from collections.abc import Callable

from account_calendar_sync.models import CalendarEvent
from account_calendar_sync.models import CalendarSyncError
from account_calendar_sync.models import Folder
from account_calendar_sync.models import FolderNotFoundError
from account_calendar_sync.models import Occurrence
from account_calendar_sync.models import Store
from account_calendar_sync.models import SyncConfig
from account_calendar_sync.models import SyncStats
from account_calendar_sync.models import SyncWindow
from account_calendar_sync.provider import SERIES_RESTRICTION
from account_calendar_sync.provider import CalendarStoreProvider
from account_calendar_sync.provider import window_restriction
from account_calendar_sync.sync.dedupe import exists
from account_calendar_sync.sync.dedupe import match_restriction
from account_calendar_sync.sync.expander import expand_occurrences
from account_calendar_sync.sync.expander import sort_occurrences
from account_calendar_sync.sync.subject import transform_subject
from account_calendar_sync.sync.walker import walk_folders

Emit = Callable[[str], None]


def collect_occurrences(
    provider: CalendarStoreProvider,
    folder: Folder,
    window: SyncWindow,
    logger,
) -> list[Occurrence]:
    """Return every occurrence in folder inside window, sorted by start."""
    occurrences: list[Occurrence] = []

    for event in provider.list_items(folder, window_restriction(window.start, window.end)):
        occurrences.extend(expand_occurrences(event, None, window))

    for series in provider.list_items(folder, SERIES_RESTRICTION):
        try:
            pattern = provider.get_recurrence_pattern(series)
        except CalendarSyncError as e:
            logger.warning(f"Cannot read recurrence of {series.subject!r} in {folder.path}: {e}")
            continue
        occurrences.extend(expand_occurrences(series, pattern, window))

    return sort_occurrences(occurrences)


def _process_occurrence(
    config: SyncConfig,
    stats: SyncStats,
    logger,
    emit: Emit,
    occurrence: Occurrence,
    store: Store,
    provider: CalendarStoreProvider,
    destination: Folder,
    planned: list[CalendarEvent],
):
    """Copy one occurrence into the destination unless it is already there."""
    subject = transform_subject(occurrence.subject, store.display_name, config.abbreviate)
    candidate = Occurrence(subject, occurrence.start, occurrence.end, source=occurrence.source)

    existing = provider.list_items(destination, match_restriction(candidate, config.match_policy))
    if exists(existing, candidate, config.match_policy) or exists(
        planned, candidate, config.match_policy
    ):
        logger.debug(f"Already in destination: {subject} ({candidate.start:%Y-%m-%d %H:%M})")
        stats.skipped += 1
        return

    if config.dry_run:
        # Remember planned items so later occurrences are matched against them
        # exactly as a live run would match against the created item.
        planned.append(CalendarEvent(subject, candidate.start, candidate.end))
        line = f"Would create: {subject}"
        stats.would_create += 1
    else:
        try:
            provider.create_calendar_item(destination, subject, candidate.start, candidate.end)
        except CalendarSyncError as e:
            logger.error(f"Failed to create {subject!r} at {candidate.start:%Y-%m-%d %H:%M}: {e}")
            stats.errors += 1
            return
        line = f"Created: {subject}"
        stats.created += 1

    stats.outcomes.append(line)
    emit(line)


def _copy_store(
    config: SyncConfig,
    stats: SyncStats,
    logger,
    emit: Emit,
    store: Store,
    provider: CalendarStoreProvider,
    destination: Folder,
    window: SyncWindow,
    planned: list[CalendarEvent],
):
    try:
        root = provider.get_root_folder(store)
    except FolderNotFoundError as e:
        logger.warning(f"Skipping store {store.display_name!r}: {e}")
        return

    stats.stores += 1
    folders = 0
    for folder in walk_folders(
        provider,
        root,
        config.extra_folder_names,
        config.exclusions,
        config.prune_excluded,
    ):
        folders += 1
        try:
            occurrences = collect_occurrences(provider, folder, window, logger)
        except CalendarSyncError as e:
            logger.warning(f"Skipping folder {folder.path}: {e}")
            stats.errors += 1
            continue
        logger.info(f"{store.display_name}: {folder.path}: {len(occurrences)} occurrence(s)")
        for occurrence in occurrences:
            _process_occurrence(
                config, stats, logger, emit,
                occurrence, store, provider, destination, planned,
            )

    if not folders:
        logger.debug(f"No calendar folders found in store {store.display_name!r}")
    stats.folders += folders


def run_copy(
    config: SyncConfig,
    stats: SyncStats,
    logger,
    emit: Emit,
    provider: CalendarStoreProvider,
    destination_store: Store,
    destination: Folder,
    window: SyncWindow,
):
    """Execute one-way copy of every source store into destination."""
    planned: list[CalendarEvent] = []

    logger.info("Listing mail stores...")
    stores = provider.list_stores()
    for store in stores:
        if store.display_name == destination_store.display_name:
            continue
        _copy_store(
            config, stats, logger, emit,
            store, provider, destination, window, planned,
        )
