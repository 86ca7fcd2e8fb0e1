"""
Depth-first walk of a store's folder tree, yielding calendar sync sources.
"""

import enum
import logging
from collections.abc import Iterator
from collections.abc import Sequence

from account_calendar_sync.models import CALENDAR_FOLDER_NAME
from account_calendar_sync.models import Folder
from account_calendar_sync.provider import CalendarStoreProvider

_logger = logging.getLogger(__name__)


class FolderVisit(enum.Enum):
    """Verdict for one folder during a walk."""

    SYNC = "sync"  # sync source, children visited
    IGNORE = "ignore"  # not a source, children visited
    SKIP_SELF = "skip-self"  # excluded, children visited
    SKIP_SUBTREE = "skip-subtree"  # excluded, children pruned


def is_excluded(name: str, exclusions: Sequence[str]) -> bool:
    """True if name contains any exclusion term, ignoring case."""
    lowered = name.lower()
    return any(term.lower() in lowered for term in exclusions if term)


def is_sync_target(name: str, extra_folder_names: Sequence[str]) -> bool:
    """True for the canonical Calendar folder or an exact extra folder name."""
    return name == CALENDAR_FOLDER_NAME or name in extra_folder_names


def classify_folder(
    name: str,
    extra_folder_names: Sequence[str],
    exclusions: Sequence[str],
    prune_excluded: bool = False,
) -> FolderVisit:
    if is_excluded(name, exclusions):
        return FolderVisit.SKIP_SUBTREE if prune_excluded else FolderVisit.SKIP_SELF
    if is_sync_target(name, extra_folder_names):
        return FolderVisit.SYNC
    return FolderVisit.IGNORE


def walk_folders(
    provider: CalendarStoreProvider,
    root: Folder,
    extra_folder_names: Sequence[str] = (),
    exclusions: Sequence[str] = (),
    prune_excluded: bool = False,
) -> Iterator[Folder]:
    """Yield every folder under root (root included) that is a sync source.

    Traversal is pre-order with an explicit stack, so an excluded folder
    only stops its own subtree when prune_excluded is set.
    """
    stack = [root]
    while stack:
        folder = stack.pop()
        verdict = classify_folder(folder.name, extra_folder_names, exclusions, prune_excluded)

        if verdict is FolderVisit.SYNC:
            yield folder
        elif verdict is not FolderVisit.IGNORE:
            _logger.debug("Excluded folder %s (%s)", folder.path, verdict.value)

        if verdict is FolderVisit.SKIP_SUBTREE:
            continue
        # Reverse so the first child is popped (and yielded) first.
        stack.extend(reversed(provider.list_subfolders(folder)))
