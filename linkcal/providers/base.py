"""
Tool: Calendar Provider Base
Purpose: Abstract base class for calendar provider adapters

Defines the common interface that every provider implements, so the sync
engine and forwarder never branch on provider names. Adding a provider
means adding a subclass and registering it in linkcal.providers.

Usage:
    from linkcal.providers import get_provider

    provider = get_provider(account.provider, account.id, access_token)
    meetings = await provider.fetch_meetings()
"""

import asyncio
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any

import aiohttp

from linkcal.config import LinkcalConfig, load_config
from linkcal.models import NormalizedMeeting, Provider
from linkcal.sync.window import FetchWindow


REQUEST_TIMEOUT = aiohttp.ClientTimeout(total=60)


class CalendarProvider(ABC):
    """
    Abstract base class for calendar providers.

    Adapters perform no retries of their own. Read failures surface as
    ProviderFetchError, write failures as ProviderWriteError; retrying is
    the caller's decision.
    """

    def __init__(
        self,
        account_id: str,
        access_token: str,
        config: LinkcalConfig | None = None,
    ):
        """
        Initialize provider for one linked account.

        Args:
            account_id: Linked account the fetched meetings belong to
            access_token: OAuth access token for the provider API
            config: Optional configuration (default: args/linkcal.yaml)
        """
        self.account_id = account_id
        self.access_token = access_token
        self.config = config or load_config()

    @property
    @abstractmethod
    def provider(self) -> Provider:
        """Return the provider tag."""

    def _get_headers(self, extra: dict[str, str] | None = None) -> dict[str, str]:
        """Get authorization headers for API requests."""
        headers = {
            "Authorization": f"Bearer {self.access_token}",
            "Content-Type": "application/json",
        }
        if extra:
            headers.update(extra)
        return headers

    async def _make_request(
        self,
        method: str,
        url: str,
        data: dict | None = None,
        params: dict | None = None,
        headers: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        """
        Make an authenticated API request.

        Args:
            method: HTTP method
            url: Full API URL
            data: JSON request body (for POST/PATCH)
            params: Query parameters
            headers: Extra headers merged over the defaults

        Returns:
            dict with success flag, status, and response data or error
        """
        try:
            async with aiohttp.ClientSession(timeout=REQUEST_TIMEOUT) as session:
                async with session.request(
                    method,
                    url,
                    headers=self._get_headers(headers),
                    json=data,
                    params=params,
                ) as resp:
                    return await self._handle_response(resp)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            return {"success": False, "status": None, "error": f"Request failed: {e!s}"}

    async def _handle_response(self, resp) -> dict[str, Any]:
        """Handle API response."""
        if resp.status == 204:
            return {"success": True, "status": 204, "data": {}}

        try:
            data = await resp.json()
        except (aiohttp.ContentTypeError, ValueError):
            data = {}

        if resp.status in (200, 201):
            return {"success": True, "status": resp.status, "data": data}

        if resp.status == 401:
            error = "Authentication failed - token may be expired"
        elif resp.status == 403:
            error = "Permission denied - insufficient scopes"
        elif resp.status == 404:
            error = "Resource not found"
        else:
            error_body = data.get("error") if isinstance(data, dict) else None
            if isinstance(error_body, dict):
                error = error_body.get("message", f"HTTP {resp.status}")
            else:
                error = f"HTTP {resp.status}"
        return {"success": False, "status": resp.status, "error": error}

    def current_window(self) -> FetchWindow:
        return FetchWindow.current(
            months_back=self.config.sync.window_months_back,
            months_ahead=self.config.sync.window_months_ahead,
        )

    # =========================================================================
    # Read
    # =========================================================================

    @abstractmethod
    async def fetch_raw(self, window: FetchWindow | None = None) -> list[dict[str, Any]]:
        """
        Fetch raw provider events inside the fetch window.

        Follows pagination to the end and drops the provider's own
        timeblock placeholders by title.

        Raises:
            ProviderFetchError: on transport or authorization failure
        """

    @abstractmethod
    def normalize(
        self,
        raw_events: list[dict[str, Any]],
        linked_account_id: str,
    ) -> list[NormalizedMeeting]:
        """Translate raw provider events into NormalizedMeetings."""

    async def fetch_meetings(self, window: FetchWindow | None = None) -> list[NormalizedMeeting]:
        """Fetch and normalize in one step."""
        raw_events = await self.fetch_raw(window)
        return self.normalize(raw_events, self.account_id)

    # =========================================================================
    # Placeholder operations (used by the forwarder)
    # =========================================================================

    @abstractmethod
    async def find_event_by_title(
        self,
        title: str,
        start: datetime,
        end: datetime,
    ) -> bool:
        """Whether an event titled exactly ``title`` exists in [start, end]."""

    @abstractmethod
    async def create_placeholder(
        self,
        title: str,
        body: str,
        start: datetime,
        end: datetime,
    ) -> str:
        """
        Create a free/transparent busy-time placeholder.

        Returns:
            Provider event ID

        Raises:
            ProviderWriteError: if the provider rejected the event
        """

    @abstractmethod
    async def list_events_matching(self, marker: str) -> list[dict[str, str]]:
        """List events (``{"id", "title"}``) whose title contains ``marker``."""

    @abstractmethod
    async def delete_event(self, event_id: str) -> None:
        """Delete an event; already-missing events count as deleted."""
