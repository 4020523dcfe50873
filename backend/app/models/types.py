"""Custom SQLAlchemy types for cross-database compatibility.

This module provides custom column types that work across different
database backends (PostgreSQL, SQLite) used in production and testing.
"""

from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import DateTime, TypeDecorator


class UTCDateTime(TypeDecorator):
    """
    A timestamp type that always round-trips as a timezone-aware UTC datetime.

    - On PostgreSQL: Uses TIMESTAMP WITH TIME ZONE
    - On SQLite: Stores naive UTC text, re-attaches UTC on load

    Session windows are compared against an aware "now" both in Python and
    in SQL filters, so every value crossing this column is normalized to UTC.
    Naive inputs are taken to already be UTC.

    Usage:
        start_time = Column(UTCDateTime(), nullable=False)
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: Optional[datetime], dialect) -> Any:
        """Convert an aware datetime to UTC before storing."""
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        value = value.astimezone(timezone.utc)
        if dialect.name == "sqlite":
            # SQLite has no timezone storage; keep the UTC wall time
            return value.replace(tzinfo=None)
        return value

    def process_result_value(self, value: Any, dialect) -> Optional[datetime]:
        """Convert database value to an aware UTC datetime."""
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)
