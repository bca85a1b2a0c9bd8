"""
Timezone utilities for CreatorLink messaging.

All timestamps are stored and compared in UTC. Some dialects (SQLite)
hand back naive datetimes, so values read from the database go through
ensure_utc before any comparison.
"""

from datetime import datetime, timezone
from typing import Optional


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """
    Attach UTC to naive datetimes and normalize aware ones.

    Args:
        dt: Datetime to normalize (None passes through)

    Returns:
        Timezone-aware UTC datetime
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        # Assume UTC if no timezone info
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def isoformat_utc(dt: Optional[datetime]) -> Optional[str]:
    normalized = ensure_utc(dt)
    return normalized.isoformat() if normalized else None
