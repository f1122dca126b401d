"""Season ids, challenge expiry boundaries and UTC day windows."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from poiking.calendar_utils import challenge_expiry, get_previous_season, get_season, utc_day_bounds


class TestSeasons:
    def test_season_is_year_month(self):
        assert get_season(datetime(2026, 3, 15, tzinfo=timezone.utc)) == "2026-03"

    def test_previous_season_mid_year(self):
        assert get_previous_season(datetime(2026, 7, 1, 0, 1, tzinfo=timezone.utc)) == "2026-06"

    def test_previous_season_wraps_year(self):
        assert get_previous_season(datetime(2026, 1, 1, 0, 1, tzinfo=timezone.utc)) == "2025-12"


class TestChallengeExpiry:
    def test_daily_ends_today(self):
        now = datetime(2026, 10, 14, 9, 30, tzinfo=timezone.utc)
        assert challenge_expiry("daily", now) == datetime(2026, 10, 14, 23, 59, 59, 999000, tzinfo=timezone.utc)

    def test_weekly_ends_next_monday(self):
        wednesday = datetime(2026, 10, 14, 9, 30, tzinfo=timezone.utc)
        expires = challenge_expiry("weekly", wednesday)
        assert expires.weekday() == 0
        assert expires.date() == datetime(2026, 10, 19).date()
        assert (expires.hour, expires.minute, expires.second) == (23, 59, 59)

    def test_weekly_on_monday_rolls_a_full_week(self):
        monday = datetime(2026, 10, 12, 0, 10, tzinfo=timezone.utc)
        assert challenge_expiry("weekly", monday).date() == datetime(2026, 10, 19).date()

    def test_monthly_ends_last_day(self):
        now = datetime(2026, 2, 3, tzinfo=timezone.utc)
        assert challenge_expiry("monthly", now) == datetime(2026, 2, 28, 23, 59, 59, 999000, tzinfo=timezone.utc)

    def test_local_timezone_is_converted_to_utc(self):
        now = datetime(2026, 7, 1, 12, 0, tzinfo=timezone.utc)
        expires = challenge_expiry("daily", now, "Europe/Amsterdam")
        # 23:59:59.999 CEST is 21:59:59.999 UTC
        assert expires == datetime(2026, 7, 1, 21, 59, 59, 999000, tzinfo=timezone.utc)

    def test_unknown_period(self):
        with pytest.raises(ValueError):
            challenge_expiry("hourly")


class TestUtcDayBounds:
    def test_bounds_cover_one_day(self):
        start, end = utc_day_bounds(datetime(2026, 5, 5, 17, 45, tzinfo=timezone.utc))
        assert start == datetime(2026, 5, 5, tzinfo=timezone.utc)
        assert end - start == timedelta(days=1)
