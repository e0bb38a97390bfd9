"""
Tool: Webhook Dispatch
Purpose: Turn calendar push notifications into account syncs

The HTTP receiver (validation-token echo, signature checks) lives outside
this package. It hands over the Google channel id header or the parsed
Microsoft notification payload; this module resolves each channel to a
LinkedAccount and syncs it without any user session.

Usage:
    from linkcal.webhooks import handle_calendar_notification

    result = await handle_calendar_notification(store, request_headers, payload)
"""

from collections.abc import Mapping
from typing import Any

from linkcal.config import LinkcalConfig
from linkcal.logging_config import get_logger
from linkcal.store import MeetingStore
from linkcal.sync.engine import sync_account

logger = get_logger(__name__)


GOOGLE_CHANNEL_HEADER = "X-Goog-Channel-ID"


async def _sync_channel(
    store: MeetingStore,
    channel_id: str,
    provider: str,
    config: LinkcalConfig | None,
) -> dict[str, Any] | None:
    account = store.get_account_by_channel(channel_id)
    if account is None:
        logger.warning("webhook_unknown_channel", provider=provider, channel_id=channel_id)
        return None

    result = await sync_account(store, account.id, account=account, config=config)
    if not result.success:
        logger.error(
            "webhook_sync_failed",
            provider=provider,
            account_id=account.id,
            error=result.error,
        )
    return result.to_dict()


async def handle_google_notification(
    store: MeetingStore,
    channel_id: str | None,
    config: LinkcalConfig | None = None,
) -> dict[str, Any]:
    """Sync the account watching ``channel_id``."""
    if not channel_id:
        return {"success": True, "message": "No channel id.", "results": []}

    result = await _sync_channel(store, channel_id, "google", config)
    if result is None:
        return {"success": True, "message": "Linked account not found.", "results": []}
    return {"success": True, "message": "Google webhook processed.", "results": [result]}


async def handle_microsoft_notifications(
    store: MeetingStore,
    payload: Mapping[str, Any] | None,
    config: LinkcalConfig | None = None,
) -> dict[str, Any]:
    """
    Sync every account referenced by a Graph notification batch.

    The channel is taken from each notification's ``clientState``. Graph
    batches several changes to one subscription into one delivery, so each
    channel is synced at most once per payload.
    """
    notifications = (payload or {}).get("value")
    if not isinstance(notifications, list):
        return {"success": True, "message": "No notifications.", "results": []}

    seen: set[str] = set()
    results = []
    for notification in notifications:
        channel_id = (notification or {}).get("clientState")
        if not channel_id or channel_id in seen:
            continue
        seen.add(channel_id)

        result = await _sync_channel(store, channel_id, "microsoft", config)
        if result is not None:
            results.append(result)

    return {"success": True, "message": "Microsoft webhook processed.", "results": results}


async def handle_calendar_notification(
    store: MeetingStore,
    headers: Mapping[str, str],
    payload: Mapping[str, Any] | None = None,
    config: LinkcalConfig | None = None,
) -> dict[str, Any]:
    """Dispatch on whichever provider sent the notification."""
    normalized = {k.lower(): v for k, v in headers.items()}
    channel_id = normalized.get(GOOGLE_CHANNEL_HEADER.lower())
    if channel_id:
        return await handle_google_notification(store, channel_id, config)

    if payload and isinstance(payload.get("value"), list):
        return await handle_microsoft_notifications(store, payload, config)

    logger.info("webhook_ignored")
    return {"success": True, "message": "No action taken.", "results": []}
