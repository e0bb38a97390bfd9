"""Collapse repeated external ids within one fetch batch."""

from collections.abc import Iterable

from linkcal.models import NormalizedMeeting


def deduplicate_meetings(meetings: Iterable[NormalizedMeeting]) -> list[NormalizedMeeting]:
    """
    Keep one meeting per external_event_id.

    The last occurrence wins; the surviving meetings keep the position of
    the first occurrence of their id, matching insertion-ordered dict
    semantics.
    """
    by_id: dict[str, NormalizedMeeting] = {}
    for meeting in meetings:
        by_id[meeting.external_event_id] = meeting
    return list(by_id.values())
