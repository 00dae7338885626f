"""Utilities for datetime handling."""

from datetime import UTC, datetime


def now_utc() -> datetime:
    """Get current UTC datetime."""
    return datetime.now(UTC)


def to_iso(dt: datetime) -> str:
    """Convert datetime to ISO format string."""
    return dt.isoformat()


def from_iso(value: str) -> datetime:
    """Parse ISO format string to datetime.

    Naive values are assumed to be UTC so they compare with filesystem times.
    """
    # Handle both 'Z' suffix and explicit timezone
    dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt


def from_timestamp(value: float) -> datetime:
    """Convert a POSIX timestamp (e.g. st_mtime) to an aware UTC datetime."""
    return datetime.fromtimestamp(value, UTC)
