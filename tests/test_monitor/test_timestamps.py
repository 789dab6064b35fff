"""Tests for board date parsing."""

from datetime import datetime, timezone

import pytest

from cafewatch.monitor.timestamps import parse_published_at

# 12:00 in Seoul
NOW = datetime(2025, 8, 4, 3, 0, 0, tzinfo=timezone.utc)


def _utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


class TestParsePublishedAt:
    """Tests for parse_published_at."""

    def test_time_only_is_today_local(self):
        """'04:09' means 04:09 Seoul time today."""
        assert parse_published_at("04:09", now=NOW) == _utc(2025, 8, 3, 19, 9)

    @pytest.mark.parametrize("text", ["2025.08.01.", "2025.08.01", "2025.8.1"])
    def test_full_date(self, text):
        assert parse_published_at(text, now=NOW) == _utc(2025, 7, 31, 15, 0)

    def test_month_day_uses_current_year(self):
        assert parse_published_at("08.02", now=NOW) == _utc(2025, 8, 1, 15, 0)

    def test_yesterday(self):
        assert parse_published_at("어제", now=NOW) == _utc(2025, 8, 3, 3, 0)

    def test_two_days_ago(self):
        assert parse_published_at("그저께", now=NOW) == _utc(2025, 8, 2, 3, 0)

    def test_iso_with_zulu(self):
        assert parse_published_at("2025-08-01T10:00:00Z", now=NOW) == _utc(2025, 8, 1, 10, 0)

    def test_naive_iso_is_board_local(self):
        assert parse_published_at("2025-08-01T10:00:00", now=NOW) == _utc(2025, 8, 1, 1, 0)

    @pytest.mark.parametrize("text", [None, "", "   ", "조금 전", "25:99", "2025.13.40."])
    def test_unparseable_falls_back_to_now(self, text):
        """Parsing never raises; junk resolves to the reference time."""
        assert parse_published_at(text, now=NOW) == NOW

    def test_result_is_aware_utc(self):
        parsed = parse_published_at("04:09", now=NOW)
        assert parsed.tzinfo is not None
        assert parsed.utcoffset().total_seconds() == 0
