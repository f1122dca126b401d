"""Calendar helpers: season ids, challenge expiry boundaries, UTC day windows.

Challenge periods follow the local calendar of the configured game timezone;
everything stored in the database is UTC.
"""

from __future__ import annotations

import calendar
from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo

END_OF_DAY = time(23, 59, 59, 999_000)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def get_season(dt: datetime | None = None) -> str:
    """Season id (calendar month) e.g. '2026-10'."""
    if dt is None:
        dt = utcnow()
    return dt.strftime("%Y-%m")


def get_previous_season(dt: datetime | None = None) -> str:
    """Season id of the calendar month before dt."""
    if dt is None:
        dt = utcnow()
    first = dt.date().replace(day=1)
    return get_season(datetime.combine(first - timedelta(days=1), time.min))


def _end_of_local_day(d: date, tz: ZoneInfo) -> datetime:
    return datetime.combine(d, END_OF_DAY, tzinfo=tz).astimezone(timezone.utc)


def challenge_expiry(period: str, now: datetime | None = None, tz_name: str = "UTC") -> datetime:
    """Compute ``expiresAt`` for a challenge generated at ``now``.

    daily   -> today 23:59:59.999 local
    weekly  -> next Monday 23:59:59.999 local (a Monday rolls to the following Monday)
    monthly -> last day of the current month 23:59:59.999 local
    """
    tz = ZoneInfo(tz_name)
    if now is None:
        now = utcnow()
    local_today = now.astimezone(tz).date()

    if period == "daily":
        return _end_of_local_day(local_today, tz)
    if period == "weekly":
        days_until_monday = (7 - local_today.weekday()) % 7 or 7
        return _end_of_local_day(local_today + timedelta(days=days_until_monday), tz)
    if period == "monthly":
        last_day = calendar.monthrange(local_today.year, local_today.month)[1]
        return _end_of_local_day(local_today.replace(day=last_day), tz)

    msg = f"Unknown challenge period: {period}"
    raise ValueError(msg)


def utc_day_bounds(dt: datetime) -> tuple[datetime, datetime]:
    """[start, end) of the UTC calendar day containing dt."""
    start = datetime.combine(dt.astimezone(timezone.utc).date(), time.min, tzinfo=timezone.utc)
    return start, start + timedelta(days=1)
