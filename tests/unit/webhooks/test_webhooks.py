"""Tests for linkcal/webhooks.py"""

from unittest.mock import patch

import pytest

from linkcal.models import SyncResult, SyncState
from linkcal.webhooks import (
    handle_calendar_notification,
    handle_google_notification,
    handle_microsoft_notifications,
)


def done_result(account_id):
    result = SyncResult(account_id=account_id)
    for state in (SyncState.FETCHING, SyncState.VALIDATING, SyncState.DIFFING,
                  SyncState.APPLYING, SyncState.DONE):
        result.transition(state)
    return result


@pytest.fixture
def synced():
    calls = []

    async def fake_sync(store, account_id, account=None, config=None):
        calls.append((account_id, account))
        return done_result(account_id)

    with patch("linkcal.webhooks.sync_account", side_effect=fake_sync):
        yield calls


class TestGoogleNotification:
    @pytest.mark.asyncio
    async def test_syncs_resolved_account(self, store, google_account, synced):
        result = await handle_google_notification(store, "channel-google")

        assert result["success"]
        [(account_id, account)] = synced
        assert account_id == google_account.id
        assert account.id == google_account.id
        assert result["results"][0]["state"] == "done"

    @pytest.mark.asyncio
    async def test_unknown_channel_ignored(self, store, google_account, synced):
        result = await handle_google_notification(store, "nope")

        assert result["success"]
        assert result["message"] == "Linked account not found."
        assert synced == []


class TestMicrosoftNotifications:
    @pytest.mark.asyncio
    async def test_each_channel_synced_once(self, store, google_account, microsoft_account, synced):
        payload = {"value": [
            {"clientState": "channel-microsoft", "changeType": "updated"},
            {"clientState": "channel-microsoft", "changeType": "created"},
            {"clientState": "unknown"},
            {"changeType": "deleted"},
        ]}

        result = await handle_microsoft_notifications(store, payload)

        assert [c[0] for c in synced] == [microsoft_account.id]
        assert len(result["results"]) == 1

    @pytest.mark.asyncio
    async def test_missing_value(self, store, synced):
        result = await handle_microsoft_notifications(store, {})
        assert result["success"]
        assert synced == []


class TestDispatch:
    @pytest.mark.asyncio
    async def test_google_header_case_insensitive(self, store, google_account, synced):
        await handle_calendar_notification(store, {"x-goog-channel-id": "channel-google"})
        assert [c[0] for c in synced] == [google_account.id]

    @pytest.mark.asyncio
    async def test_microsoft_payload(self, store, microsoft_account, synced):
        await handle_calendar_notification(
            store, {}, {"value": [{"clientState": "channel-microsoft"}]}
        )
        assert [c[0] for c in synced] == [microsoft_account.id]

    @pytest.mark.asyncio
    async def test_nothing_to_do(self, store, synced):
        result = await handle_calendar_notification(store, {"Content-Type": "application/json"}, None)
        assert result["message"] == "No action taken."
        assert synced == []
