"""
Tool: Sync Engine
Purpose: Fetch, clean, diff, and apply meetings for one linked account

Entry points:
    fetch_meetings            token refresh + provider fetch + normalize
    sync_meetings_to_database clean, dedupe, diff, and apply a fetched batch
    sync_account              both of the above under the per-account lock,
                              tracked through the SyncState machine

Each accepts a pre-resolved LinkedAccount (``account=``) so webhook
handlers and background jobs can drive a sync without a user session.

Usage:
    from linkcal.sync.engine import sync_account

    result = await sync_account(store, account_id)
    result.state, result.stats
"""

import sqlite3
from datetime import datetime

from linkcal.config import LinkcalConfig, load_config
from linkcal.errors import AccountNotFoundError, LinkcalError
from linkcal.forwarder import forward_meetings
from linkcal.logging_config import get_logger, sync_context
from linkcal.models import (
    LinkedAccount,
    Meeting,
    NormalizedMeeting,
    SyncResult,
    SyncState,
)
from linkcal.providers import get_provider
from linkcal.store import MeetingStore
from linkcal.sync.applier import apply_sync_plan
from linkcal.sync.dedupe import deduplicate_meetings
from linkcal.sync.diff import compute_sync_plan
from linkcal.sync.locks import account_locks
from linkcal.sync.validation import clean_meetings
from linkcal.sync.window import FetchWindow
from linkcal.token_manager import refresh_and_persist

logger = get_logger(__name__)


def resolve_account(
    store: MeetingStore,
    account_id: str,
    account: LinkedAccount | None = None,
    user_id: str | None = None,
) -> LinkedAccount:
    """
    Load the account unless one was handed in, checking ownership.

    Raises:
        AccountNotFoundError: if missing or owned by another user
    """
    if account is not None:
        return account

    account = store.get_linked_account(account_id)
    if account is None or (user_id and account.user_id != user_id):
        raise AccountNotFoundError(account_id)
    return account


def current_window(config: LinkcalConfig, now: datetime | None = None) -> FetchWindow:
    return FetchWindow.current(
        now,
        months_back=config.sync.window_months_back,
        months_ahead=config.sync.window_months_ahead,
    )


def deletion_window(config: LinkcalConfig, window: FetchWindow) -> FetchWindow | None:
    """Window that restricts deletions, or None for full-replace."""
    return window if config.sync.delete_scope == "window" else None


async def _fetch(
    store: MeetingStore,
    account: LinkedAccount,
    config: LinkcalConfig,
    window: FetchWindow,
) -> list[NormalizedMeeting]:
    access_token = await refresh_and_persist(
        store, account.id, account.provider, account.refresh_token
    )
    provider = get_provider(account.provider, account.id, access_token, config)
    raw_events = await provider.fetch_raw(window)
    return provider.normalize(raw_events, account.id)


async def fetch_meetings(
    store: MeetingStore,
    account_id: str,
    account: LinkedAccount | None = None,
    user_id: str | None = None,
    config: LinkcalConfig | None = None,
    window: FetchWindow | None = None,
) -> list[NormalizedMeeting] | None:
    """
    Fetch and normalize the current window of events for an account.

    Args:
        store: Persistent store
        account_id: Linked account ID
        account: Pre-resolved account (skips lookup and ownership check)
        user_id: When given, the account must belong to this user
        config: Optional configuration
        window: Fetch window (default: recomputed now)

    Returns:
        List of NormalizedMeeting, or None if the fetch failed
    """
    config = config or load_config()
    try:
        account = resolve_account(store, account_id, account, user_id)
        return await _fetch(store, account, config, window or current_window(config))
    except LinkcalError as e:
        logger.error("fetch_failed", account_id=account_id, error=str(e))
        return None


def prepare_meetings(
    meetings: list[NormalizedMeeting],
    config: LinkcalConfig,
) -> list[NormalizedMeeting]:
    """Validate, drop self-generated events, and dedupe a fetched batch."""
    return deduplicate_meetings(clean_meetings(meetings, config.markers))


def sync_meetings_to_database(
    store: MeetingStore,
    meetings: list[NormalizedMeeting] | None,
    account_id: str,
    user_id: str,
    config: LinkcalConfig | None = None,
    window: FetchWindow | None = None,
) -> list[Meeting] | None:
    """
    Reconcile stored meetings for an account with a fetched batch.

    Args:
        store: Persistent store
        meetings: Output of fetch_meetings (None is passed through)
        account_id: Linked account ID
        user_id: Owner of the account
        config: Optional configuration
        window: Window the batch was fetched for (used with delete_scope=window)

    Returns:
        Meetings stored for the account after the pass, or None if the
        batch was None or the stored state could not be read
    """
    if meetings is None:
        return None

    config = config or load_config()
    window = window or current_window(config)
    prepared = prepare_meetings(meetings, config)

    try:
        existing = store.list_meetings(account_id)
    except sqlite3.Error as e:
        logger.error("stored_meetings_unreadable", account_id=account_id, error=str(e))
        return None

    plan = compute_sync_plan(prepared, existing, deletion_window(config, window))
    apply_sync_plan(store, account_id, user_id, plan)

    try:
        return store.list_meetings(account_id)
    except sqlite3.Error as e:
        logger.error("stored_meetings_unreadable", account_id=account_id, error=str(e))
        return None


async def sync_account(
    store: MeetingStore,
    account_id: str,
    account: LinkedAccount | None = None,
    user_id: str | None = None,
    config: LinkcalConfig | None = None,
    forward_to: str | None = None,
    now: datetime | None = None,
) -> SyncResult:
    """
    Run one full sync attempt for an account.

    PENDING -> FETCHING -> VALIDATING -> DIFFING -> APPLYING -> DONE.
    Any failure while resolving the account, refreshing the token, or
    fetching ends in FAILED with the stored meetings and last_synced
    untouched. Syncs of the same account are serialised.

    Args:
        store: Persistent store
        account_id: Linked account ID
        account: Pre-resolved account (webhook/background path); its
            stored record is re-read once the lock is held
        user_id: When given, the account must belong to this user
        config: Optional configuration
        forward_to: Target account to forward placeholders to after DONE
        now: Clock override for the fetch window and last_synced

    Returns:
        SyncResult
    """
    config = config or load_config()
    result = SyncResult(account_id=account_id)

    with sync_context(account_id):
        async with account_locks.get(account_id):
            result.transition(SyncState.FETCHING)
            window = current_window(config, now)
            try:
                if account is not None:
                    # The previous lock holder may have rotated the refresh token
                    account = resolve_account(store, account.id, user_id=user_id)
                else:
                    account = resolve_account(store, account_id, user_id=user_id)
                fetched = await _fetch(store, account, config, window)
            except LinkcalError as e:
                result.fail(str(e))
                logger.error("sync_failed", error=str(e))
                return result
            result.fetched = len(fetched)

            result.transition(SyncState.VALIDATING)
            prepared = prepare_meetings(fetched, config)
            result.kept = len(prepared)

            result.transition(SyncState.DIFFING)
            existing = store.list_meetings(account_id)
            result.plan = compute_sync_plan(prepared, existing, deletion_window(config, window))

            result.transition(SyncState.APPLYING)
            result.stats = apply_sync_plan(
                store, account_id, account.user_id, result.plan, now=now
            )

            result.transition(SyncState.DONE)

        logger.info(
            "sync_completed",
            provider=account.provider.value,
            fetched=result.fetched,
            kept=result.kept,
            **result.plan.counts(),
        )

        if forward_to:
            result.forwarded = await forward_meetings(
                store, account_id, forward_to, user_id=user_id, config=config
            )

    return result
