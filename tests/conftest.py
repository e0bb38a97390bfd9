"""Shared test fixtures for Linkcal tests.

This module provides common fixtures used across all test modules:
- Database isolation with temporary files
- Linked accounts saved into a temporary store
- NormalizedMeeting factory
- Configuration with retry backoff disabled

Usage:
    def test_something(store, google_account):
        # store is backed by a temporary SQLite file
        ...
"""

import os
import tempfile
from collections.abc import Callable, Generator
from datetime import datetime, timezone
from pathlib import Path

import pytest

from linkcal.config import ForwardingConfig, LinkcalConfig
from linkcal.models import LinkedAccount, NormalizedMeeting, Provider
from linkcal.store import MeetingStore


# ─────────────────────────────────────────────────────────────────────────────
# Database Fixtures
# ─────────────────────────────────────────────────────────────────────────────


@pytest.fixture
def temp_db() -> Generator[Path, None, None]:
    """Create a temporary database file for testing.

    The database file is automatically deleted after the test completes.

    Yields:
        Path to the temporary database file
    """
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        db_path = Path(f.name)

    yield db_path

    # Cleanup
    if db_path.exists():
        os.unlink(db_path)


@pytest.fixture
def store(temp_db: Path) -> MeetingStore:
    """MeetingStore backed by the temporary database."""
    return MeetingStore(temp_db)


# ─────────────────────────────────────────────────────────────────────────────
# Config Fixtures
# ─────────────────────────────────────────────────────────────────────────────


@pytest.fixture
def config() -> LinkcalConfig:
    """Default configuration with retry sleeps disabled."""
    return LinkcalConfig(forwarding=ForwardingConfig(backoff_seconds=0))


@pytest.fixture
def fixed_now() -> datetime:
    """A fixed clock inside the sample meetings' fetch window."""
    return datetime(2024, 1, 15, 12, 0, tzinfo=timezone.utc)


# ─────────────────────────────────────────────────────────────────────────────
# Account Fixtures
# ─────────────────────────────────────────────────────────────────────────────


@pytest.fixture
def mock_user_id() -> str:
    """Standard test user ID."""
    return "test_user_123"


@pytest.fixture
def google_account(store: MeetingStore, mock_user_id: str) -> LinkedAccount:
    """A linked Google account saved in the store."""
    return store.save_linked_account(LinkedAccount(
        id="acct-google",
        user_id=mock_user_id,
        provider=Provider.GOOGLE,
        email="alex@gmail.com",
        refresh_token="google-refresh-1",
        display_name="Personal",
        webhook_channel_id="channel-google",
    ))


@pytest.fixture
def microsoft_account(store: MeetingStore, mock_user_id: str) -> LinkedAccount:
    """A linked Microsoft account saved in the store."""
    return store.save_linked_account(LinkedAccount(
        id="acct-microsoft",
        user_id=mock_user_id,
        provider="azure-ad",
        email="alex@contoso.com",
        refresh_token="microsoft-refresh-1",
        display_name="Work",
        webhook_channel_id="channel-microsoft",
    ))


# ─────────────────────────────────────────────────────────────────────────────
# Meeting Fixtures
# ─────────────────────────────────────────────────────────────────────────────


@pytest.fixture
def make_meeting() -> Callable[..., NormalizedMeeting]:
    """Factory for NormalizedMeetings owned by the Google account.

    Returns:
        callable taking external_event_id plus field overrides
    """
    def _make(external_event_id: str, **overrides) -> NormalizedMeeting:
        fields = {
            "provider": Provider.GOOGLE,
            "linked_account_id": "acct-google",
            "name": f"Meeting {external_event_id}",
            "start_date": "2024-01-20T09:00:00Z",
            "end_date": "2024-01-20T09:30:00Z",
            "attendees": ["alex@gmail.com", "sam@example.com"],
            "location": "Room 4",
            "link": "https://meet.google.com/abc-defg-hij",
            "message": "Weekly check-in",
            "status": "confirmed",
        }
        fields.update(overrides)
        return NormalizedMeeting(external_event_id=external_event_id, **fields)

    return _make


@pytest.fixture(autouse=True)
def reset_account_locks():
    """Drop per-account locks so no lock outlives its test's event loop."""
    from linkcal.sync.locks import account_locks

    account_locks.clear()
    yield
    account_locks.clear()
