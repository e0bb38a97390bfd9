"""Tests for linkcal/sync/window.py"""

from datetime import datetime, timezone

from linkcal.sync.window import (
    FetchWindow,
    add_months,
    canonical_timestamp,
    ensure_utc_marker,
    parse_instant,
)


class TestAddMonths:
    def test_clamps_to_month_end(self):
        assert add_months(datetime(2024, 3, 31), -1) == datetime(2024, 2, 29)
        assert add_months(datetime(2023, 11, 30), 3) == datetime(2024, 2, 29)

    def test_crosses_years(self):
        assert add_months(datetime(2024, 1, 15), -1) == datetime(2023, 12, 15)
        assert add_months(datetime(2024, 11, 15), 3) == datetime(2025, 2, 15)


class TestFetchWindow:
    def test_one_month_back_three_ahead(self):
        window = FetchWindow.current(datetime(2024, 1, 15, 12, 0, tzinfo=timezone.utc))
        assert window.start_iso == "2023-12-15T12:00:00Z"
        assert window.end_iso == "2024-04-15T12:00:00Z"

    def test_naive_now_treated_as_utc(self):
        window = FetchWindow.current(datetime(2024, 1, 15, 12, 0))
        assert window.start.tzinfo is not None

    def test_contains(self):
        window = FetchWindow.current(datetime(2024, 1, 15, tzinfo=timezone.utc))
        assert window.contains("2024-02-01T00:00:00Z")
        assert not window.contains("2024-06-01T00:00:00Z")
        assert not window.contains("garbage")


class TestTimestamps:
    def test_parse_variants(self):
        expected = datetime(2024, 1, 1, 9, 0, tzinfo=timezone.utc)
        assert parse_instant("2024-01-01T09:00:00Z") == expected
        assert parse_instant("2024-01-01T10:00:00+01:00") == expected
        assert parse_instant("2024-01-01T09:00:00") == expected
        assert parse_instant("2024-01-01T09:00:00.0000000Z") == expected
        assert parse_instant("2024-01-01") == datetime(2024, 1, 1, tzinfo=timezone.utc)

    def test_parse_rejects_garbage(self):
        assert parse_instant("not-a-date") is None
        assert parse_instant("") is None
        assert parse_instant(None) is None

    def test_canonical_form(self):
        assert canonical_timestamp("2024-01-01T10:00:00+01:00") == "2024-01-01T09:00:00Z"
        assert canonical_timestamp("2024-01-01") == "2024-01-01T00:00:00Z"
        assert canonical_timestamp("not-a-date") == "not-a-date"

    def test_ensure_utc_marker(self):
        assert ensure_utc_marker("2024-01-01T09:00:00.0000000") == "2024-01-01T09:00:00.0000000Z"
        assert ensure_utc_marker("2024-01-01T09:00:00Z") == "2024-01-01T09:00:00Z"
        assert ensure_utc_marker("2024-01-01T09:00:00+02:00") == "2024-01-01T09:00:00+02:00"
        assert ensure_utc_marker(None) == ""
