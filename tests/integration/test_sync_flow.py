"""
Integration tests for the sync and forward flow.

Runs the real token manager, provider adapters, engine, and store against
in-memory calendars: a Google account is synced and forwarded into a
Microsoft account, whose own sync must then ignore the placeholders.
"""

import pytest

from linkcal.forwarder import forward_meetings
from linkcal.models import SyncState
from linkcal.sync.engine import sync_account
from linkcal.webhooks import handle_microsoft_notifications


pytestmark = pytest.mark.integration


GOOGLE_EVENTS = [
    {
        "id": "g-standup",
        "summary": "Standup",
        "start": {"dateTime": "2024-01-20T09:00:00Z"},
        "end": {"dateTime": "2024-01-20T09:15:00Z"},
        "attendees": [{"email": "alex@gmail.com"}],
    },
    {
        "id": "g-dentist",
        "summary": "Dentist",
        "start": {"dateTime": "2024-01-22T15:00:00Z"},
        "end": {"dateTime": "2024-01-22T16:00:00Z"},
    },
]

MICROSOFT_EVENT = {
    "id": "m-review",
    "subject": "Quarterly review",
    "start": {"dateTime": "2024-01-25T13:00:00.0000000"},
    "end": {"dateTime": "2024-01-25T14:00:00.0000000"},
    "showAs": "busy",
}


class TestSyncAndForward:
    @pytest.mark.asyncio
    async def test_full_flow(
        self, store, google_account, microsoft_account, config, fixed_now,
        calendars, token_endpoint,
    ):
        calendars.google.extend(GOOGLE_EVENTS)
        calendars.microsoft.append(MICROSOFT_EVENT)

        result = await sync_account(
            store, google_account.id, config=config, now=fixed_now,
            forward_to=microsoft_account.id,
        )

        assert result.state == SyncState.DONE
        assert result.stats.inserted == 2
        assert result.forwarded["count"] == 2
        placeholders = [e for e in calendars.microsoft if e["subject"].startswith("Linkcal Timeblock")]
        assert sorted(e["subject"] for e in placeholders) == [
            "Linkcal Timeblock | Dentist",
            "Linkcal Timeblock | Standup",
        ]
        assert all(e["showAs"] == "free" for e in placeholders)

        # The Microsoft account's own sync sees the placeholders and drops them
        ms_result = await sync_account(store, microsoft_account.id, config=config, now=fixed_now)

        assert ms_result.fetched == 1
        [stored] = store.list_meetings(microsoft_account.id)
        assert stored.external_event_id == "m-review"
        assert stored.start_date == "2024-01-25T13:00:00Z"

        # Forwarding again creates nothing new
        again = await forward_meetings(store, google_account.id, microsoft_account.id, config=config)

        assert again["count"] == 0
        assert again["skipped"] == 2
        assert len(calendars.microsoft) == 3

        assert store.get_linked_account(google_account.id).refresh_token == "rotated"
        assert store.get_linked_account(microsoft_account.id).refresh_token == "rotated"

    @pytest.mark.asyncio
    async def test_remote_deletion_propagates(
        self, store, google_account, config, fixed_now, calendars, token_endpoint,
    ):
        calendars.google.extend(GOOGLE_EVENTS)
        await sync_account(store, google_account.id, config=config, now=fixed_now)

        calendars.google.pop()
        calendars.google[0] = {**calendars.google[0], "summary": "Standup (moved)"}
        result = await sync_account(store, google_account.id, config=config, now=fixed_now)

        assert result.plan.counts() == {"insert": 0, "update": 1, "delete": 1}
        [stored] = store.list_meetings(google_account.id)
        assert stored.name == "Standup (moved)"

    @pytest.mark.asyncio
    async def test_webhook_drives_sync(
        self, store, microsoft_account, config, calendars, token_endpoint,
    ):
        result = await handle_microsoft_notifications(
            store, {"value": [{"clientState": "channel-microsoft"}]}, config=config,
        )

        [sync_result] = result["results"]
        assert sync_result["state"] == "done"
        assert sync_result["fetched"] == 0
        assert store.get_linked_account(microsoft_account.id).last_synced is not None
