"""
Tool: Meeting Diff
Purpose: Compute the insert/update/delete sets for one linked account

Usage:
    from linkcal.sync.diff import compute_sync_plan

    plan = compute_sync_plan(fetched, existing)
    plan.to_insert, plan.to_update, plan.to_delete

Deletion is full-replace: any stored meeting whose id is missing from the
current fetch is purged, including meetings that merely scrolled out of
the fetch window. Pass ``window`` to restrict deletion to stored meetings
whose start_date still falls inside the window.
"""

from collections.abc import Iterable, Sequence

from linkcal.models import SYNC_FIELDS, Meeting, NormalizedMeeting, SyncPlan
from linkcal.sync.window import FetchWindow


def has_changes(existing: Meeting, fetched: NormalizedMeeting) -> bool:
    """True when any synced field differs (attendees compared as lists)."""
    for name in SYNC_FIELDS:
        old = getattr(existing, name)
        new = getattr(fetched, name)
        if name == "attendees":
            if list(old or []) != list(new or []):
                return True
        elif old != new:
            return True
    return False


def compute_insert_data(
    fetched: Iterable[NormalizedMeeting],
    existing: Iterable[Meeting],
) -> list[NormalizedMeeting]:
    existing_ids = {str(m.external_event_id) for m in existing}
    return [m for m in fetched if m.external_event_id not in existing_ids]


def compute_update_data(
    fetched: Iterable[NormalizedMeeting],
    existing: Iterable[Meeting],
) -> list[NormalizedMeeting]:
    by_id = {str(m.external_event_id): m for m in existing}
    updates = []
    for meeting in fetched:
        current = by_id.get(meeting.external_event_id)
        if current is not None and has_changes(current, meeting):
            updates.append(meeting)
    return updates


def compute_deletions(
    fetched: Iterable[NormalizedMeeting],
    existing: Iterable[Meeting],
    window: FetchWindow | None = None,
) -> list[str]:
    fetched_ids = {m.external_event_id for m in fetched}
    deletions = []
    for meeting in existing:
        if meeting.external_event_id in fetched_ids:
            continue
        if window is not None and not window.contains(meeting.start_date):
            continue
        deletions.append(meeting.external_event_id)
    return deletions


def compute_sync_plan(
    fetched: Sequence[NormalizedMeeting],
    existing: Sequence[Meeting],
    window: FetchWindow | None = None,
) -> SyncPlan:
    """
    Diff a cleaned, deduplicated fetch against the stored meetings.

    Args:
        fetched: Meetings from the provider (already validated and deduped)
        existing: Meetings stored for the same linked account
        window: Optional window restricting which absent meetings are deleted

    Returns:
        SyncPlan with insert/update/delete sets
    """
    return SyncPlan(
        to_insert=compute_insert_data(fetched, existing),
        to_update=compute_update_data(fetched, existing),
        to_delete=compute_deletions(fetched, existing, window),
    )
