"""
Tool: Microsoft Calendar Provider
Purpose: Outlook calendar read/write via Microsoft Graph

Implements the CalendarProvider interface for Microsoft accounts
(linked under either the "microsoft" or "azure-ad" provider name).

Usage:
    from linkcal.providers.microsoft import MicrosoftCalendarProvider

    provider = MicrosoftCalendarProvider(account_id, access_token)
    meetings = await provider.fetch_meetings()

Dependencies:
    - aiohttp (pip install aiohttp)
"""

from datetime import datetime, timezone
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
from linkcal.sync.window import FetchWindow, canonical_timestamp, ensure_utc_marker

logger = get_logger(__name__)


# Microsoft Graph API endpoints
GRAPH_API_BASE = "https://graph.microsoft.com/v1.0"
CALENDAR_VIEW_URL = f"{GRAPH_API_BASE}/me/calendarView"
EVENTS_URL = f"{GRAPH_API_BASE}/me/events"

EVENT_SELECT = (
    "id,subject,start,end,attendees,location,onlineMeeting,"
    "bodyPreview,showAs,responseStatus"
)

# Graph returns event times in this zone
UTC_PREFER_HEADER = {"Prefer": 'outlook.timezone="UTC"'}

CLEANUP_PAGE_SIZE = 100

# Graph dateTime values carry no offset; the zone travels separately
GRAPH_DATETIME_FORMAT = "%Y-%m-%dT%H:%M:%S"


def _graph_datetime(moment: datetime) -> str:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc).strftime(GRAPH_DATETIME_FORMAT)


def _odata_quote(value: str) -> str:
    """Quote a string literal for an OData $filter expression."""
    return "'" + value.replace("'", "''") + "'"


class MicrosoftCalendarProvider(CalendarProvider):
    """Microsoft Graph provider for the signed-in user's default calendar."""

    @property
    def provider(self) -> Provider:
        return Provider.MICROSOFT

    async def _list_pages(
        self,
        url: str,
        params: dict[str, Any],
        headers: dict[str, str] | None = None,
    ) -> list[dict[str, Any]]:
        """Follow @odata.nextLink until the collection is exhausted."""
        items: list[dict[str, Any]] = []
        next_url: str | None = url
        page_params: dict[str, Any] | None = params
        while next_url:
            result = await self._make_request("GET", next_url, params=page_params, headers=headers)
            if not result.get("success"):
                raise ProviderFetchError(
                    self.provider.value, result.get("error", "unknown error"), result.get("status")
                )

            data = result.get("data", {})
            items.extend(data.get("value", []))
            # nextLink already embeds the query
            next_url = data.get("@odata.nextLink")
            page_params = None
        return items

    async def fetch_raw(self, window: FetchWindow | None = None) -> list[dict[str, Any]]:
        window = window or self.current_window()
        params = {
            "startDateTime": window.start_iso,
            "endDateTime": window.end_iso,
            "$select": EVENT_SELECT,
            "$top": self.config.sync.page_size,
        }
        items = await self._list_pages(CALENDAR_VIEW_URL, params, headers=UTC_PREFER_HEADER)
        kept = filter_marker_events(items, self.config.markers.timeblock_name, "subject")

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
        """Parse Graph events into NormalizedMeeting objects."""
        meetings = []
        for data in raw_events:
            start = (data.get("start") or {}).get("dateTime")
            end = (data.get("end") or {}).get("dateTime")

            attendees = []
            for att in data.get("attendees") or []:
                address = (att.get("emailAddress") or {}).get("address")
                if address:
                    attendees.append(address)

            online = data.get("onlineMeeting") or {}
            join_url = online.get("joinUrl")
            location = (data.get("location") or {}).get("displayName")
            response = (data.get("responseStatus") or {}).get("response")

            meetings.append(NormalizedMeeting(
                external_event_id=data.get("id", ""),
                provider=self.provider,
                linked_account_id=linked_account_id,
                name=data.get("subject") or DEFAULT_NAME,
                start_date=canonical_timestamp(ensure_utc_marker(start)),
                end_date=canonical_timestamp(ensure_utc_marker(end)),
                attendees=attendees,
                location=location or join_url or DEFAULT_LOCATION,
                link=join_url or DEFAULT_LINK,
                message=data.get("bodyPreview") or DEFAULT_MESSAGE,
                status=data.get("showAs") or response or "unknown",
            ))
        return meetings

    async def find_event_by_title(self, title: str, start: datetime, end: datetime) -> bool:
        params = {
            "$filter": (
                f"subject eq {_odata_quote(title)} "
                f"and start/dateTime ge {_odata_quote(_graph_datetime(start))}"
            ),
            "$top": 1,
        }
        result = await self._make_request("GET", EVENTS_URL, params=params)
        if not result.get("success"):
            raise ProviderFetchError(
                self.provider.value, result.get("error", "unknown error"), result.get("status")
            )
        return bool(result.get("data", {}).get("value"))

    async def create_placeholder(self, title: str, body: str, start: datetime, end: datetime) -> str:
        data = {
            "subject": title,
            "body": {
                "contentType": "text",
                "content": body,
            },
            "start": {
                "dateTime": _graph_datetime(start),
                "timeZone": "UTC",
            },
            "end": {
                "dateTime": _graph_datetime(end),
                "timeZone": "UTC",
            },
            "isAllDay": False,
            "showAs": "free",
        }
        result = await self._make_request("POST", EVENTS_URL, data=data)
        if not result.get("success"):
            raise ProviderWriteError(
                self.provider.value, result.get("error", "unknown error"), result.get("status")
            )
        return result.get("data", {}).get("id", "")

    async def list_events_matching(self, marker: str) -> list[dict[str, str]]:
        params = {
            "$filter": f"contains(subject,{_odata_quote(marker.lower())})",
            "$select": "id,subject",
            "$top": CLEANUP_PAGE_SIZE,
        }
        items = await self._list_pages(EVENTS_URL, params)
        return [
            {"id": item["id"], "title": item.get("subject", "")}
            for item in items
            if item.get("id")
        ]

    async def delete_event(self, event_id: str) -> None:
        result = await self._make_request("DELETE", f"{EVENTS_URL}/{event_id}")
        if not result.get("success") and result.get("status") != 404:
            raise ProviderWriteError(
                self.provider.value, result.get("error", "unknown error"), result.get("status")
            )
