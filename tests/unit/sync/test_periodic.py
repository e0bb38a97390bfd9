"""Tests for linkcal/sync/periodic.py"""

import asyncio
import sqlite3
from datetime import timedelta
from unittest.mock import patch

import pytest

from linkcal.config import LinkcalConfig, SyncConfig
from linkcal.models import LinkedAccount, SyncResult, SyncState
from linkcal.sync.periodic import is_due, sync_all_linked_accounts


def done_result(account_id):
    result = SyncResult(account_id=account_id)
    for state in (SyncState.FETCHING, SyncState.VALIDATING, SyncState.DIFFING,
                  SyncState.APPLYING, SyncState.DONE):
        result.transition(state)
    return result


def failed_result(account_id):
    result = SyncResult(account_id=account_id)
    result.transition(SyncState.FETCHING)
    result.fail("revoked")
    return result


class TestIsDue:
    def test_never_synced(self, google_account, fixed_now):
        assert is_due(google_account, fixed_now, 12)

    def test_interval_gate(self, google_account, fixed_now):
        google_account.last_synced = fixed_now - timedelta(hours=11, minutes=59)
        assert not is_due(google_account, fixed_now, 12)
        google_account.last_synced = fixed_now - timedelta(hours=12)
        assert is_due(google_account, fixed_now, 12)

    def test_naive_last_synced_treated_as_utc(self, google_account, fixed_now):
        google_account.last_synced = (fixed_now - timedelta(hours=1)).replace(tzinfo=None)
        assert not is_due(google_account, fixed_now, 12)


class TestSyncAllLinkedAccounts:
    @pytest.mark.asyncio
    async def test_only_due_accounts_synced(
        self, store, google_account, microsoft_account, config, fixed_now
    ):
        store.update_last_synced(microsoft_account.id, fixed_now - timedelta(hours=1))
        calls = []

        async def fake_sync(store_, account_id, **kwargs):
            calls.append((account_id, kwargs["account"].id))
            return done_result(account_id)

        with patch("linkcal.sync.periodic.sync_account", side_effect=fake_sync):
            summary = await sync_all_linked_accounts(store, now=fixed_now, config=config)

        assert calls == [(google_account.id, google_account.id)]
        assert summary["synced"] == 1
        assert summary["skipped"] == 1
        assert summary["success"]

    @pytest.mark.asyncio
    async def test_force_ignores_gate(self, store, google_account, microsoft_account, config, fixed_now):
        store.update_last_synced(google_account.id, fixed_now)
        store.update_last_synced(microsoft_account.id, fixed_now)

        async def fake_sync(store_, account_id, **kwargs):
            return done_result(account_id)

        with patch("linkcal.sync.periodic.sync_account", side_effect=fake_sync):
            summary = await sync_all_linked_accounts(store, now=fixed_now, force=True, config=config)

        assert summary["synced"] == 2
        assert summary["skipped"] == 0

    @pytest.mark.asyncio
    async def test_user_filter(self, store, google_account, config, fixed_now):
        store.save_linked_account(LinkedAccount(
            id="acct-other", user_id="other", provider="google", email="o@x.com", refresh_token="t",
        ))
        seen = []

        async def fake_sync(store_, account_id, **kwargs):
            seen.append(account_id)
            return done_result(account_id)

        with patch("linkcal.sync.periodic.sync_account", side_effect=fake_sync):
            await sync_all_linked_accounts(store, user_id="other", now=fixed_now, config=config)

        assert seen == ["acct-other"]

    @pytest.mark.asyncio
    async def test_failures_counted_not_raised(
        self, store, google_account, microsoft_account, config, fixed_now
    ):
        async def fake_sync(store_, account_id, **kwargs):
            if account_id == google_account.id:
                return failed_result(account_id)
            raise sqlite3.OperationalError("disk I/O error")

        with patch("linkcal.sync.periodic.sync_account", side_effect=fake_sync):
            summary = await sync_all_linked_accounts(store, now=fixed_now, config=config)

        assert summary["failed"] == 2
        assert not summary["success"]
        errors = {r["account_id"]: r["error"] for r in summary["results"]}
        assert errors[google_account.id] == "revoked"
        assert "disk I/O" in errors[microsoft_account.id]

    @pytest.mark.asyncio
    async def test_pool_is_bounded(self, store, mock_user_id, fixed_now):
        for i in range(5):
            store.save_linked_account(LinkedAccount(
                id=f"acct-{i}", user_id=mock_user_id, provider="google",
                email=f"user{i}@example.com", refresh_token="t",
            ))
        config = LinkcalConfig(sync=SyncConfig(max_concurrent_accounts=2))
        active = 0
        peak = 0

        async def fake_sync(store_, account_id, **kwargs):
            nonlocal active, peak
            active += 1
            peak = max(peak, active)
            await asyncio.sleep(0.01)
            active -= 1
            return done_result(account_id)

        with patch("linkcal.sync.periodic.sync_account", side_effect=fake_sync):
            summary = await sync_all_linked_accounts(store, now=fixed_now, config=config)

        assert summary["synced"] == 5
        assert peak == 2
