"""
Centralized datetime utilities for contextrank.

All datetimes are handled in UTC. Functions here are the single place
where the current time is read, so tests can freeze it.
"""

from datetime import datetime, timezone
from typing import Optional


_mock_time: Optional[datetime] = None


def utc_now() -> datetime:
    """
    Get current UTC datetime.

    Returns the frozen time when set_mock_time() is active.

    Returns:
        Current datetime in UTC with timezone info
    """
    if _mock_time is not None:
        return _mock_time
    return datetime.now(timezone.utc)


def ensure_utc(dt: datetime) -> datetime:
    """Ensure datetime is in UTC timezone (naive values are assumed to be UTC)."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    if dt.tzinfo == timezone.utc:
        return dt
    return dt.astimezone(timezone.utc)


def format_iso(dt: datetime) -> str:
    """
    Format datetime as ISO string with 'Z' suffix.

    Args:
        dt: Datetime to format (converted to UTC first)
    """
    return ensure_utc(dt).isoformat().replace("+00:00", "Z")


def set_mock_time(dt: Optional[datetime]) -> None:
    """
    Freeze utc_now() for tests.

    Args:
        dt: Datetime to return from utc_now(), or None to restore real time
    """
    global _mock_time
    _mock_time = ensure_utc(dt) if dt is not None else None
