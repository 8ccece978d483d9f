"""Time utilities: UTC timestamps for records, local time for tickets."""

from datetime import datetime, timezone, tzinfo
from zoneinfo import ZoneInfo
from typing import Optional

from ventaveloz.config import get_settings


def local_tz(name: Optional[str] = None) -> tzinfo:
    """Return the configured restaurant timezone."""
    try:
        return ZoneInfo(name or get_settings().timezone)
    except Exception:
        # Fallback to system local timezone when tzdata is unavailable (Windows)
        return datetime.now().astimezone().tzinfo


def now_utc() -> datetime:
    """Return timezone-aware current time in UTC."""
    return datetime.now(timezone.utc)


def now_local(tz: Optional[tzinfo] = None) -> datetime:
    """Return timezone-aware current time in the restaurant timezone."""
    return datetime.now(tz or local_tz())


def to_local(dt: Optional[datetime], tz: Optional[tzinfo] = None) -> Optional[datetime]:
    """Convert a datetime to the restaurant timezone (assumes UTC if naive)."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(tz or local_tz())
