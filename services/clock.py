from __future__ import annotations

from datetime import date, datetime, time, timezone
from typing import Optional
from zoneinfo import ZoneInfo

from settings import get_settings


def local_now(tz_name: Optional[str] = None) -> datetime:
    """Current instant in the restaurant's local timezone."""
    return datetime.now(ZoneInfo(tz_name or get_settings().timezone))


def start_of_day(now: datetime) -> datetime:
    return datetime.combine(now.date(), time(0), tzinfo=now.tzinfo)


def to_storage(instant: datetime) -> str:
    """ISO-8601 UTC representation used for stored timestamps."""
    if instant.tzinfo is None:
        instant = instant.replace(tzinfo=timezone.utc)
    return instant.astimezone(timezone.utc).isoformat()


def local_day(instant: datetime, now: datetime) -> date:
    """Calendar day of ``instant`` in the zone of ``now``."""
    if instant.tzinfo is not None and now.tzinfo is not None:
        instant = instant.astimezone(now.tzinfo)
    return instant.date()
