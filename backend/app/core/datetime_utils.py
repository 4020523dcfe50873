"""
Datetime utility functions for handling timezone-aware datetimes.
"""
from datetime import datetime, timezone
from typing import Callable, Optional

# A time source returning the current timezone-aware UTC datetime.
# Time-dependent components accept one of these so tests can pin "now".
Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """
    Return the current datetime in UTC timezone.

    This is the default ``Clock`` for the reconciler and scheduler.

    Returns:
        A timezone-aware datetime object representing the current time in UTC.
    """
    return datetime.now(timezone.utc)


def ensure_timezone_aware(dt: Optional[datetime]) -> datetime:
    """
    Ensure a datetime object is timezone-aware (UTC).
    SQLite may return timezone-naive datetimes even when stored as timezone-aware.

    Args:
        dt: The datetime to ensure is timezone-aware

    Returns:
        A timezone-aware datetime object in UTC

    Raises:
        ValueError: If dt is None
    """
    if dt is None:
        raise ValueError("datetime cannot be None")
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def fixed_clock(moment: datetime) -> Clock:
    """Return a clock that always reports ``moment``."""
    pinned = ensure_timezone_aware(moment)
    return lambda: pinned
