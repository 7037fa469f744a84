from __future__ import annotations

from datetime import datetime, timedelta
from zoneinfo import ZoneInfo

from app.core.config import settings


def local_tz() -> ZoneInfo:
    return ZoneInfo(settings.timezone)


def now_local_naive() -> datetime:
    """Return current local time as naive datetime for DATETIME columns."""
    return datetime.now(local_tz()).replace(tzinfo=None)


def to_local_naive(value: datetime) -> datetime:
    """Normalize a datetime to local time and strip tzinfo for DATETIME columns."""
    if value.tzinfo is None:
        return value
    return value.astimezone(local_tz()).replace(tzinfo=None)


def week_bounds(now: datetime) -> tuple[datetime, datetime]:
    """Monday 00:00:00 through Sunday 23:59:59 of the week containing `now`."""
    start = (now - timedelta(days=now.weekday())).replace(hour=0, minute=0, second=0, microsecond=0)
    end = start + timedelta(days=6, hours=23, minutes=59, seconds=59)
    return start, end


def month_bounds(now: datetime) -> tuple[datetime, datetime]:
    start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    if start.month == 12:
        next_month = start.replace(year=start.year + 1, month=1)
    else:
        next_month = start.replace(month=start.month + 1)
    return start, next_month - timedelta(seconds=1)
