"""
Duplicate detection against the destination calendar.
"""

from collections.abc import Iterable

from account_calendar_sync.models import CalendarEvent
from account_calendar_sync.models import MatchPolicy
from account_calendar_sync.models import Occurrence
from account_calendar_sync.provider import Predicate
from account_calendar_sync.provider import matches_all


def match_restriction(candidate: Occurrence, policy: MatchPolicy) -> tuple[Predicate, ...]:
    """Build the destination query that finds items equivalent to candidate.

    SUBJECT matches on exact subject alone.  SUBJECT_AND_TIME additionally
    requires the existing item's interval to lie within the candidate's,
    which is deliberately looser than exact equality.
    """
    restriction = (Predicate("subject", "==", candidate.subject),)
    if policy is MatchPolicy.SUBJECT_AND_TIME:
        restriction += (
            Predicate("start", ">=", candidate.start),
            Predicate("end", "<=", candidate.end),
        )
    return restriction


def exists(
    destination_items: Iterable[CalendarEvent],
    candidate: Occurrence,
    policy: MatchPolicy,
) -> bool:
    """Return True if any destination item matches candidate under policy."""
    restriction = match_restriction(candidate, policy)
    return any(matches_all(restriction, item) for item in destination_items)
