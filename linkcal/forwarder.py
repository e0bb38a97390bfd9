"""
Tool: Meeting Forwarder
Purpose: Mirror one account's meetings as busy-time placeholders on another

Handles:
- Building "Linkcal Timeblock | <name>" placeholders with a text summary
- Skipping meetings that already have a placeholder on the target
- Skipping meetings that were themselves forwarded from the target
- Bounded per-meeting retry with linear backoff
- Removing every placeholder from an account, and unlinking accounts

Placeholders are created free/transparent; attendance and invitations
are never copied.

Usage:
    from linkcal.forwarder import forward_meetings, delete_linkcal_events

    result = await forward_meetings(store, source_id, target_id)
    result = await delete_linkcal_events(store, account_id)
"""

from functools import partial
from typing import Any

from linkcal.config import ForwardingConfig, LinkcalConfig, load_config
from linkcal.errors import (
    AccountNotFoundError,
    LinkcalError,
    ProviderFetchError,
    ProviderWriteError,
)
from linkcal.logging_config import get_logger
from linkcal.models import DEFAULT_LINK, DEFAULT_MESSAGE, LinkedAccount, Meeting
from linkcal.providers import CalendarProvider, get_provider
from linkcal.retry import linear_backoff, retry_async
from linkcal.store import MeetingStore
from linkcal.sync.locks import account_locks
from linkcal.sync.window import parse_instant
from linkcal.token_manager import refresh_and_persist

logger = get_logger(__name__)


TIME_FORMAT = "%I:%M %p"


# =============================================================================
# Placeholder content
# =============================================================================

def build_placeholder_title(name: str, forwarding: ForwardingConfig | None = None) -> str:
    forwarding = forwarding or ForwardingConfig()
    return f"{forwarding.title_prefix} | {name}"


def build_placeholder_body(meeting: Meeting, forwarding: ForwardingConfig | None = None) -> str:
    """
    Text summary carried by a placeholder.

    Body and Link lines are omitted when the meeting only has the
    "No description"/"No link" defaults.
    """
    forwarding = forwarding or ForwardingConfig()
    start = parse_instant(meeting.start_date)
    end = parse_instant(meeting.end_date) or start
    time_range = (
        f"{start.strftime(TIME_FORMAT)} - {end.strftime(TIME_FORMAT)} UTC"
        if start else "Unknown time"
    )

    lines = [
        f"Name: {meeting.name}",
        f"Time: {time_range}",
        f"Attendees: {', '.join(meeting.attendees) or 'No attendees'}",
    ]
    if meeting.message and meeting.message != DEFAULT_MESSAGE:
        lines.append(f"Body: {meeting.message}")
    if meeting.link and meeting.link != DEFAULT_LINK:
        lines.append(f"Link: {meeting.link}")
    lines.extend(["", "-----", forwarding.footer])
    return "\n".join(lines)


def is_forwarded_from(meeting: Meeting, account_id: str) -> bool:
    return f"forwarded from {account_id}" in (meeting.name or "")


async def _forward_one(
    provider: CalendarProvider,
    meeting: Meeting,
    forwarding: ForwardingConfig,
) -> bool:
    """Create the placeholder unless one exists. Returns True if created."""
    title = build_placeholder_title(meeting.name, forwarding)
    start = parse_instant(meeting.start_date)
    end = parse_instant(meeting.end_date) or start

    if await provider.find_event_by_title(title, start, end):
        logger.debug("placeholder_exists", meeting_id=meeting.id, title=title)
        return False

    await provider.create_placeholder(
        title, build_placeholder_body(meeting, forwarding), start, end
    )
    return True


# =============================================================================
# Account helpers
# =============================================================================

def _load_account(
    store: MeetingStore,
    account_id: str,
    user_id: str | None = None,
) -> LinkedAccount:
    account = store.get_linked_account(account_id)
    if account is None or (user_id and account.user_id != user_id):
        raise AccountNotFoundError(account_id)
    return account


async def _provider_for(
    store: MeetingStore,
    account: LinkedAccount,
    config: LinkcalConfig,
) -> CalendarProvider:
    access_token = await refresh_and_persist(
        store, account.id, account.provider, account.refresh_token
    )
    return get_provider(account.provider, account.id, access_token, config)


# =============================================================================
# Operations
# =============================================================================

async def forward_meetings(
    store: MeetingStore,
    source_id: str,
    target_id: str,
    user_id: str | None = None,
    config: LinkcalConfig | None = None,
) -> dict[str, Any]:
    """
    Create placeholders on the target calendar for every source meeting.

    Both accounts must belong to the same user (``user_id`` when given,
    otherwise the source account's owner). Forwards into one target are
    serialised so two runs do not both pass the existence check.

    Args:
        store: Persistent store
        source_id: Account whose stored meetings are forwarded
        target_id: Account whose calendar receives the placeholders
        user_id: Optional owner check
        config: Optional configuration

    Returns:
        dict with success, count (created), skipped, failed, total
    """
    config = config or load_config()
    forwarding = config.forwarding

    if source_id == target_id:
        return {"success": False, "error": "Source and target accounts must differ"}

    try:
        source = _load_account(store, source_id, user_id)
        target = _load_account(store, target_id, source.user_id)
        meetings = store.list_meetings(source.id, user_id=source.user_id)
        provider = await _provider_for(store, target, config)
    except LinkcalError as e:
        logger.error("forward_failed", source_id=source_id, target_id=target_id, error=str(e))
        return {"success": False, "error": str(e)}

    created = skipped = failed = 0

    async with account_locks.get(f"forward:{target_id}"):
        for meeting in meetings:
            if is_forwarded_from(meeting, target_id):
                skipped += 1
                continue

            try:
                was_created = await retry_async(
                    partial(_forward_one, provider, meeting, forwarding),
                    max_attempts=forwarding.max_attempts,
                    backoff=linear_backoff(forwarding.backoff_seconds),
                    retry_on=(ProviderFetchError, ProviderWriteError),
                    description="forward_meeting",
                )
            except (ProviderFetchError, ProviderWriteError) as e:
                failed += 1
                logger.warning(
                    "meeting_forward_failed",
                    meeting_id=meeting.id,
                    target_id=target_id,
                    error=str(e),
                )
                continue

            if was_created:
                created += 1
            else:
                skipped += 1

    logger.info(
        "forward_completed",
        source_id=source_id,
        target_id=target_id,
        total=len(meetings),
        created=created,
        skipped=skipped,
        failed=failed,
    )
    return {
        "success": True,
        "count": created,
        "skipped": skipped,
        "failed": failed,
        "total": len(meetings),
    }


async def delete_linkcal_events(
    store: MeetingStore,
    account_id: str,
    user_id: str | None = None,
    config: LinkcalConfig | None = None,
) -> dict[str, Any]:
    """
    Delete every placeholder from an account's calendar.

    Matches events whose title contains the cleanup marker. Individual
    delete failures are counted and skipped.

    Returns:
        dict with success, deleted, failed, total
    """
    config = config or load_config()

    try:
        account = _load_account(store, account_id, user_id)
        provider = await _provider_for(store, account, config)
        events = await provider.list_events_matching(config.markers.cleanup_marker)
    except LinkcalError as e:
        logger.error("cleanup_failed", account_id=account_id, error=str(e))
        return {"success": False, "error": str(e)}

    deleted = failed = 0
    for event in events:
        try:
            await provider.delete_event(event["id"])
            deleted += 1
        except ProviderWriteError as e:
            failed += 1
            logger.warning(
                "placeholder_delete_failed",
                account_id=account_id,
                event_id=event["id"],
                error=str(e),
            )

    logger.info(
        "cleanup_completed",
        account_id=account_id,
        total=len(events),
        deleted=deleted,
        failed=failed,
    )
    return {"success": True, "deleted": deleted, "failed": failed, "total": len(events)}


async def unlink_account(
    store: MeetingStore,
    account_id: str,
    user_id: str | None = None,
    config: LinkcalConfig | None = None,
) -> dict[str, Any]:
    """
    Remove placeholders from the account's calendar, then delete the account.

    The account and its meetings are deleted even if cleanup fails (a
    revoked token must not block unlinking).

    Returns:
        dict with success, cleanup (the delete_linkcal_events result)
    """
    try:
        _load_account(store, account_id, user_id)
    except AccountNotFoundError as e:
        return {"success": False, "error": str(e)}

    cleanup = await delete_linkcal_events(store, account_id, user_id=user_id, config=config)
    if not cleanup.get("success"):
        logger.warning("unlink_cleanup_skipped", account_id=account_id, error=cleanup.get("error"))

    async with account_locks.get(account_id):
        deleted = store.delete_linked_account(account_id)

    return {"success": deleted, "account_id": account_id, "cleanup": cleanup}
