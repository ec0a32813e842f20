"""Utilities for date and time operations.

Timestamps are stored as naive UTC datetimes.
"""

from datetime import datetime, timezone


def utc_now() -> datetime:
    """Return the current time as a naive UTC datetime."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(dt: datetime) -> datetime:
    """Convert an aware datetime to naive UTC; naive values are assumed to be UTC already."""
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def epoch_millis(dt: datetime | None = None) -> int:
    """Milliseconds since the Unix epoch for dt (default: now)."""
    if dt is None:
        return int(datetime.now(timezone.utc).timestamp() * 1000)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return int(dt.timestamp() * 1000)


__all__ = ["epoch_millis", "to_naive_utc", "utc_now"]
