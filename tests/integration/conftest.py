"""
Integration test fixtures for Linkcal.

Provides fixtures specific to integration testing:
- In-memory Google and Microsoft calendars behind the provider HTTP layer
- OAuth token endpoint stub with refresh-token rotation
"""

from typing import Any
from unittest.mock import AsyncMock, patch

import pytest

from linkcal.providers.base import CalendarProvider
from linkcal.providers.google import PRIMARY_EVENTS_URL
from linkcal.providers.microsoft import CALENDAR_VIEW_URL, EVENTS_URL


# ─────────────────────────────────────────────────────────────────────────────
# Fake Calendars
# ─────────────────────────────────────────────────────────────────────────────


class FakeCalendars:
    """Routes provider requests to two in-memory calendars."""

    def __init__(self):
        self.google: list[dict[str, Any]] = []
        self.microsoft: list[dict[str, Any]] = []
        self.requests: list[tuple[str, str]] = []

    async def request(self, provider, method, url, data=None, params=None, headers=None):
        self.requests.append((method, url))
        params = params or {}

        if url == PRIMARY_EVENTS_URL and method == "GET":
            query = params.get("q")
            items = [
                e for e in self.google
                if query is None or query.lower() in e.get("summary", "").lower()
            ]
            return {"success": True, "status": 200, "data": {"items": items}}

        if url == PRIMARY_EVENTS_URL and method == "POST":
            event = {"id": f"g-{len(self.google)}", **data}
            self.google.append(event)
            return {"success": True, "status": 200, "data": event}

        if url == CALENDAR_VIEW_URL:
            return {"success": True, "status": 200, "data": {"value": list(self.microsoft)}}

        if url == EVENTS_URL and method == "GET":
            subject_filter = params.get("$filter", "")
            subject = subject_filter.split("subject eq '", 1)[1].split("' and start", 1)[0]
            subject = subject.replace("''", "'")
            matches = [e for e in self.microsoft if e.get("subject") == subject]
            return {"success": True, "status": 200, "data": {"value": matches[:1]}}

        if url == EVENTS_URL and method == "POST":
            event = {"id": f"m-{len(self.microsoft)}", **data}
            self.microsoft.append(event)
            return {"success": True, "status": 201, "data": event}

        return {"success": False, "status": 404, "error": "Resource not found"}


@pytest.fixture
def calendars():
    fake = FakeCalendars()

    async def routed(self, method, url, data=None, params=None, headers=None):
        return await fake.request(self, method, url, data=data, params=params, headers=headers)

    with patch.object(CalendarProvider, "_make_request", routed):
        yield fake


@pytest.fixture
def token_endpoint(monkeypatch):
    monkeypatch.setenv("GOOGLE_CLIENT_ID", "g-id")
    monkeypatch.setenv("GOOGLE_CLIENT_SECRET", "g-secret")
    monkeypatch.setenv("MICROSOFT_CLIENT_ID", "m-id")
    monkeypatch.setenv("MICROSOFT_CLIENT_SECRET", "m-secret")

    response = {"success": True, "data": {"access_token": "at", "refresh_token": "rotated"}}
    with patch("linkcal.token_manager._post_token_request", AsyncMock(return_value=response)) as post:
        yield post
