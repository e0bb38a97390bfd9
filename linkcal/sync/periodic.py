"""
Tool: Periodic Sync
Purpose: Sync every linked account that is due, a few at a time

An account is due when it has never synced or its persisted last_synced
is at least ``sync.interval_hours`` old. Due accounts run through a
bounded pool; each account's own pass stays sequential.

Usage:
    from linkcal.sync.periodic import sync_all_linked_accounts

    summary = await sync_all_linked_accounts(store)
    summary = await sync_all_linked_accounts(store, user_id="u1", force=True)
"""

import asyncio
import sqlite3
from datetime import datetime, timedelta, timezone
from typing import Any

from linkcal.config import LinkcalConfig, load_config
from linkcal.logging_config import get_logger
from linkcal.models import LinkedAccount, SyncResult, utc_now
from linkcal.store import MeetingStore
from linkcal.sync.engine import sync_account

logger = get_logger(__name__)


def is_due(account: LinkedAccount, now: datetime, interval_hours: float) -> bool:
    if account.last_synced is None:
        return True
    last_synced = account.last_synced
    if last_synced.tzinfo is None:
        last_synced = last_synced.replace(tzinfo=timezone.utc)
    return now - last_synced >= timedelta(hours=interval_hours)


async def sync_all_linked_accounts(
    store: MeetingStore,
    user_id: str | None = None,
    now: datetime | None = None,
    force: bool = False,
    config: LinkcalConfig | None = None,
) -> dict[str, Any]:
    """
    Sync all due accounts.

    Args:
        store: Persistent store
        user_id: Only sync this user's accounts (default: every user)
        now: Clock override
        force: Ignore the interval gate
        config: Optional configuration

    Returns:
        dict with per-account results and synced/skipped/failed counts
    """
    config = config or load_config()
    now = now or utc_now()

    accounts = store.list_linked_accounts(user_id)
    due = [
        a for a in accounts
        if force or is_due(a, now, config.sync.interval_hours)
    ]
    skipped = len(accounts) - len(due)

    semaphore = asyncio.Semaphore(config.sync.max_concurrent_accounts)

    async def run(account: LinkedAccount) -> dict[str, Any]:
        async with semaphore:
            try:
                result = await sync_account(
                    store, account.id, account=account, config=config, now=now
                )
            except sqlite3.Error as e:
                logger.error("sync_store_error", account_id=account.id, error=str(e))
                result = SyncResult(account_id=account.id, error=str(e))
            return result.to_dict()

    results = await asyncio.gather(*(run(a) for a in due))

    synced = sum(1 for r in results if r["success"])
    failed = len(results) - synced

    logger.info(
        "periodic_sync_completed",
        user_id=user_id,
        total=len(accounts),
        synced=synced,
        skipped=skipped,
        failed=failed,
    )
    return {
        "success": failed == 0,
        "total": len(accounts),
        "synced": synced,
        "skipped": skipped,
        "failed": failed,
        "results": list(results),
    }
