"""
Tool: Fetch Window
Purpose: Sliding fetch window and timestamp canonicalisation

The window is recomputed on every call: one month back through three
months ahead by default. Anything outside it is invisible to the sync,
so with full-replace deletion those meetings are purged locally.
"""

import calendar
import re
from dataclasses import dataclass
from datetime import date, datetime, timezone


CANONICAL_FORMAT = "%Y-%m-%dT%H:%M:%SZ"

_DATE_ONLY = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_FRACTION = re.compile(r"\.(\d+)")
_HAS_OFFSET = re.compile(r"([zZ]|[+-]\d{2}:?\d{2})$")


def add_months(moment: datetime, months: int) -> datetime:
    """Shift by whole calendar months, clamping to the last day of month."""
    month_index = moment.month - 1 + months
    year = moment.year + month_index // 12
    month = month_index % 12 + 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


@dataclass(frozen=True)
class FetchWindow:
    start: datetime
    end: datetime

    @classmethod
    def current(
        cls,
        now: datetime | None = None,
        months_back: int = 1,
        months_ahead: int = 3,
    ) -> "FetchWindow":
        now = now or datetime.now(timezone.utc)
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        return cls(
            start=add_months(now, -months_back),
            end=add_months(now, months_ahead),
        )

    @property
    def start_iso(self) -> str:
        return format_instant(self.start)

    @property
    def end_iso(self) -> str:
        return format_instant(self.end)

    def contains(self, value: str) -> bool:
        moment = parse_instant(value)
        if moment is None:
            return False
        return self.start <= moment <= self.end


def parse_instant(value: str | None) -> datetime | None:
    """
    Parse an ISO 8601 timestamp into an aware UTC datetime.

    Date-only values are midnight UTC; values without an offset are
    treated as UTC. Fractional seconds beyond microseconds are truncated.
    Returns None for anything unparseable.
    """
    if not value or not isinstance(value, str):
        return None

    text = value.strip()
    try:
        if _DATE_ONLY.match(text):
            parsed = date.fromisoformat(text)
            return datetime(parsed.year, parsed.month, parsed.day, tzinfo=timezone.utc)

        text = _FRACTION.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), text, count=1)
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        moment = datetime.fromisoformat(text)
    except ValueError:
        return None

    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def format_instant(moment: datetime) -> str:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc).strftime(CANONICAL_FORMAT)


def canonical_timestamp(value: str | None) -> str:
    """Canonical UTC form of value, or value unchanged if it won't parse."""
    moment = parse_instant(value)
    if moment is None:
        return value or ""
    return format_instant(moment)


def ensure_utc_marker(value: str | None) -> str:
    """Append the zero-offset marker to timestamps that carry no offset."""
    if not value:
        return ""
    if _DATE_ONLY.match(value) or _HAS_OFFSET.search(value):
        return value
    return f"{value}Z"
