"""
Tool: Sync Applier
Purpose: Commit a SyncPlan to the store for one linked account

Phases run in a fixed order: deletes, then a bulk insert, then updates one
row at a time. A failed phase or a failed single update is logged and
counted; it never aborts the pass. last_synced is stamped once all three
phases have run, so it means "a pass completed", not "every row landed".

Usage:
    from linkcal.sync.applier import apply_sync_plan

    stats = apply_sync_plan(store, account_id, user_id, plan)
    stats.inserted, stats.update_failed
"""

import sqlite3
from datetime import datetime

from linkcal.logging_config import get_logger
from linkcal.models import ApplyStats, Meeting, SyncPlan, utc_now
from linkcal.store import MeetingStore

logger = get_logger(__name__)


def apply_sync_plan(
    store: MeetingStore,
    account_id: str,
    user_id: str,
    plan: SyncPlan,
    now: datetime | None = None,
) -> ApplyStats:
    """
    Apply deletes, inserts, and updates for one account.

    Args:
        store: Persistent store
        account_id: Linked account the plan belongs to
        user_id: Owner written onto inserted rows
        plan: Output of compute_sync_plan
        now: Timestamp stamped as last_synced (default: current UTC time)

    Returns:
        ApplyStats with per-category success/failure counts
    """
    stats = ApplyStats()

    # Deletes first: an id reused by a new event instance must not collide
    if plan.to_delete:
        try:
            stats.deleted = store.delete_meetings(account_id, plan.to_delete)
        except sqlite3.Error as e:
            stats.delete_failed = len(plan.to_delete)
            logger.error("meeting_delete_failed", account_id=account_id,
                         count=len(plan.to_delete), error=str(e))

    if plan.to_insert:
        rows = [Meeting.from_normalized(m, user_id, account_id) for m in plan.to_insert]
        try:
            stats.inserted = store.insert_meetings(rows)
        except sqlite3.Error as e:
            stats.insert_failed = len(rows)
            logger.error("meeting_insert_failed", account_id=account_id,
                         count=len(rows), error=str(e))

    for meeting in plan.to_update:
        try:
            matched = store.update_meeting(
                meeting.external_event_id, account_id, meeting.sync_fields()
            )
        except sqlite3.Error as e:
            stats.update_failed += 1
            logger.warning(
                "meeting_update_failed",
                account_id=account_id,
                external_event_id=meeting.external_event_id,
                error=str(e),
            )
            continue

        if matched:
            stats.updated += 1
        else:
            stats.update_failed += 1
            logger.warning(
                "meeting_update_missed",
                account_id=account_id,
                external_event_id=meeting.external_event_id,
            )

    try:
        store.update_last_synced(account_id, now or utc_now())
    except sqlite3.Error as e:
        logger.error("last_synced_update_failed", account_id=account_id, error=str(e))

    logger.info("sync_applied", account_id=account_id, **stats.to_dict())
    return stats
