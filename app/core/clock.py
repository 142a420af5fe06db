"""UTC helpers. Every timestamp stored by the service is UTC."""

from datetime import datetime, timezone
from typing import Optional

import pytz


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes read back from drivers that drop tzinfo (SQLite)."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def format_local_time(value: datetime, tz_name: str) -> str:
    """Render a UTC timestamp as HH:MM in the church's timezone."""
    try:
        tz = pytz.timezone(tz_name)
    except pytz.UnknownTimeZoneError:
        tz = pytz.utc
    return as_utc(value).astimezone(tz).strftime("%H:%M")
