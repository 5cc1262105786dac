# backend/asset_transforms/utils/time_utils.py
"""
Centralized time utilities.

Every timestamp the transform system stores or compares is a timezone-aware
UTC datetime. Index validity checks compare row timestamps against asset and
transform timestamps coming from callers, so anything naive is normalized
through ensure_utc() before comparison.
"""

from datetime import datetime, timezone
from typing import Optional

# Constant for UTC timezone to avoid hardcoded timezone.utc references
UTC_TIMEZONE = timezone.utc


def utc_now() -> datetime:
    """
    Get current UTC timestamp as a timezone-aware datetime.

    Returns:
        Current UTC datetime object
    """
    return datetime.now(UTC_TIMEZONE)


def ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """
    Normalize a datetime to timezone-aware UTC.

    Naive datetimes are assumed to already be in UTC.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC_TIMEZONE)
    return dt.astimezone(UTC_TIMEZONE)


def from_timestamp(epoch_seconds: float) -> datetime:
    """Convert a POSIX timestamp (e.g. a file mtime) to an aware UTC datetime."""
    return datetime.fromtimestamp(epoch_seconds, UTC_TIMEZONE)


def seconds_since(dt: Optional[datetime], now: Optional[datetime] = None) -> float:
    """
    Seconds elapsed between dt and now.

    A missing timestamp counts as infinitely old so callers treating
    "older than N seconds" as stale take it over.
    """
    if dt is None:
        return float("inf")
    reference = ensure_utc(now) if now is not None else utc_now()
    return (reference - ensure_utc(dt)).total_seconds()
