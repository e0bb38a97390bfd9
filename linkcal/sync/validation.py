"""
Tool: Meeting Validation
Purpose: Drop malformed events and Linkcal's own placeholder events

Two layers are applied:
    - filter_marker_events: adapter level, on raw provider payloads, using
      the configured timeblock name against the event title
    - filter_self_generated: sync level, on normalized meetings, using
      substring markers in the name and the forwarding footer in the body

Placeholders re-ingested as real events would be forwarded again and
multiply across every linked account.
"""

from collections.abc import Iterable

from linkcal.config import MarkerConfig
from linkcal.logging_config import get_logger
from linkcal.models import NormalizedMeeting
from linkcal.sync.window import parse_instant

logger = get_logger(__name__)


def is_valid_meeting(meeting: NormalizedMeeting) -> bool:
    return parse_instant(meeting.start_date) is not None


def validate_meetings(meetings: Iterable[NormalizedMeeting]) -> list[NormalizedMeeting]:
    """Keep only meetings whose start_date parses to a real instant."""
    valid = []
    for meeting in meetings:
        if is_valid_meeting(meeting):
            valid.append(meeting)
        else:
            logger.debug(
                "meeting_dropped_invalid_date",
                external_event_id=meeting.external_event_id,
                start_date=meeting.start_date,
            )
    return valid


def is_self_generated(
    meeting: NormalizedMeeting,
    markers: MarkerConfig | None = None,
) -> bool:
    markers = markers or MarkerConfig()
    name = (meeting.name or "").lower()
    message = (meeting.message or "").lower()

    if any(marker.lower() in name for marker in markers.name_markers if marker):
        return True
    return bool(markers.forwarded_phrase) and markers.forwarded_phrase.lower() in message


def filter_self_generated(
    meetings: Iterable[NormalizedMeeting],
    markers: MarkerConfig | None = None,
) -> list[NormalizedMeeting]:
    """Exclude placeholder events created by the forwarder."""
    markers = markers or MarkerConfig()
    kept = []
    for meeting in meetings:
        if is_self_generated(meeting, markers):
            logger.debug(
                "meeting_dropped_self_generated",
                external_event_id=meeting.external_event_id,
                name=meeting.name,
            )
            continue
        kept.append(meeting)
    return kept


def filter_marker_events(
    raw_events: Iterable[dict],
    marker: str | None,
    title_key: str,
) -> list[dict]:
    """Drop raw provider events whose title contains the timeblock marker."""
    if not marker:
        return list(raw_events)
    needle = marker.lower()
    return [
        event for event in raw_events
        if needle not in (event.get(title_key) or "").lower()
    ]


def clean_meetings(
    meetings: Iterable[NormalizedMeeting],
    markers: MarkerConfig | None = None,
) -> list[NormalizedMeeting]:
    """Validate dates, then strip self-generated events."""
    return filter_self_generated(validate_meetings(meetings), markers)
