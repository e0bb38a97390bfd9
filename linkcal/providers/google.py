"""
Tool: Google Calendar Provider
Purpose: Google Calendar read/write via the Calendar v3 REST API

Implements the CalendarProvider interface for Google accounts.

Usage:
    from linkcal.providers.google import GoogleCalendarProvider

    provider = GoogleCalendarProvider(account_id, access_token)
    raw = await provider.fetch_raw()
    meetings = provider.normalize(raw, account_id)

Dependencies:
    - aiohttp (pip install aiohttp)
"""

from datetime import datetime, timedelta
from typing import Any

from linkcal.errors import ProviderFetchError, ProviderWriteError
from linkcal.logging_config import get_logger
from linkcal.models import (
    DEFAULT_LINK,
    DEFAULT_LOCATION,
    DEFAULT_MESSAGE,
    DEFAULT_NAME,
    NormalizedMeeting,
    Provider,
)
from linkcal.providers.base import CalendarProvider
from linkcal.sync.validation import filter_marker_events
from linkcal.sync.window import FetchWindow, canonical_timestamp, format_instant

logger = get_logger(__name__)


# Google API endpoints
CALENDAR_API_BASE = "https://www.googleapis.com/calendar/v3"
PRIMARY_EVENTS_URL = f"{CALENDAR_API_BASE}/calendars/primary/events"

EVENT_FIELDS = (
    "nextPageToken,"
    "items(id,status,summary,start,end,attendees,location,hangoutLink,description)"
)

# Largest page the events.list endpoint accepts
CLEANUP_PAGE_SIZE = 2500


class GoogleCalendarProvider(CalendarProvider):
    """Google Calendar provider for the user's primary calendar."""

    @property
    def provider(self) -> Provider:
        return Provider.GOOGLE

    async def _list_events(self, params: dict[str, Any]) -> list[dict[str, Any]]:
        """Follow nextPageToken until the listing is exhausted."""
        items: list[dict[str, Any]] = []
        page_token = None
        while True:
            page_params = dict(params)
            if page_token:
                page_params["pageToken"] = page_token

            result = await self._make_request("GET", PRIMARY_EVENTS_URL, params=page_params)
            if not result.get("success"):
                raise ProviderFetchError(
                    self.provider.value, result.get("error", "unknown error"), result.get("status")
                )

            data = result.get("data", {})
            items.extend(data.get("items", []))
            page_token = data.get("nextPageToken")
            if not page_token:
                return items

    async def fetch_raw(self, window: FetchWindow | None = None) -> list[dict[str, Any]]:
        window = window or self.current_window()
        params = {
            "singleEvents": "true",
            "timeMin": window.start_iso,
            "timeMax": window.end_iso,
            "timeZone": "UTC",
            "maxResults": self.config.sync.page_size,
            "fields": EVENT_FIELDS,
        }
        items = await self._list_events(params)
        kept = filter_marker_events(items, self.config.markers.timeblock_name, "summary")

        logger.debug(
            "provider_fetched",
            provider=self.provider.value,
            account_id=self.account_id,
            fetched=len(items),
            kept=len(kept),
        )
        return kept

    def normalize(
        self,
        raw_events: list[dict[str, Any]],
        linked_account_id: str,
    ) -> list[NormalizedMeeting]:
        """Parse Google Calendar events into NormalizedMeeting objects."""
        meetings = []
        for data in raw_events:
            start_data = data.get("start") or {}
            end_data = data.get("end") or {}

            # All-day events carry "date" instead of "dateTime"
            start = start_data.get("dateTime") or start_data.get("date")
            end = end_data.get("dateTime") or end_data.get("date")

            attendees = [
                att["email"] for att in data.get("attendees") or [] if att.get("email")
            ]

            meetings.append(NormalizedMeeting(
                external_event_id=data.get("id", ""),
                provider=self.provider,
                linked_account_id=linked_account_id,
                name=data.get("summary") or DEFAULT_NAME,
                start_date=canonical_timestamp(start),
                end_date=canonical_timestamp(end),
                attendees=attendees,
                location=data.get("location") or DEFAULT_LOCATION,
                link=data.get("hangoutLink") or DEFAULT_LINK,
                message=data.get("description") or DEFAULT_MESSAGE,
                status=data.get("status") or "confirmed",
            ))
        return meetings

    async def find_event_by_title(self, title: str, start: datetime, end: datetime) -> bool:
        lookahead = timedelta(hours=self.config.forwarding.lookahead_hours)
        params = {
            "q": title,
            "timeMin": format_instant(start),
            "timeMax": format_instant(end + lookahead),
            "singleEvents": "true",
        }
        result = await self._make_request("GET", PRIMARY_EVENTS_URL, params=params)
        if not result.get("success"):
            raise ProviderFetchError(
                self.provider.value, result.get("error", "unknown error"), result.get("status")
            )

        # q is a full-text match, so confirm the exact title
        items = result.get("data", {}).get("items", [])
        return any(item.get("summary") == title for item in items)

    async def create_placeholder(self, title: str, body: str, start: datetime, end: datetime) -> str:
        data = {
            "summary": title,
            "description": body,
            "start": {"dateTime": format_instant(start), "timeZone": "UTC"},
            "end": {"dateTime": format_instant(end), "timeZone": "UTC"},
            "transparency": "transparent",
            "visibility": "private",
        }
        result = await self._make_request("POST", PRIMARY_EVENTS_URL, data=data)
        if not result.get("success"):
            raise ProviderWriteError(
                self.provider.value, result.get("error", "unknown error"), result.get("status")
            )
        return result.get("data", {}).get("id", "")

    async def list_events_matching(self, marker: str) -> list[dict[str, str]]:
        params = {
            "q": marker,
            "maxResults": CLEANUP_PAGE_SIZE,
            "singleEvents": "true",
            "showDeleted": "false",
        }
        items = await self._list_events(params)
        needle = marker.lower()
        return [
            {"id": item["id"], "title": item.get("summary", "")}
            for item in items
            if item.get("id") and needle in (item.get("summary") or "").lower()
        ]

    async def delete_event(self, event_id: str) -> None:
        url = f"{PRIMARY_EVENTS_URL}/{event_id}"
        result = await self._make_request("DELETE", url)
        # 410 Gone: already deleted
        if not result.get("success") and result.get("status") not in (404, 410):
            raise ProviderWriteError(
                self.provider.value, result.get("error", "unknown error"), result.get("status")
            )
