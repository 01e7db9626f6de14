"""
Centralized time utilities for the prompt catalog.

All datetime operations should use these helpers to ensure:
- Consistent timezone handling (always UTC, always aware)
- Consistent ISO format with Z suffix
"""

from datetime import datetime, timezone


def utc_now() -> datetime:
    """Return current UTC time as timezone-aware datetime."""
    return datetime.now(timezone.utc)


def to_iso_z(dt: datetime) -> str:
    """
    Format a datetime as ISO string with Z suffix.

    Naive datetimes are assumed to be UTC.
    """
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def utc_now_iso() -> str:
    """
    Return current UTC time as ISO string with Z suffix.

    Format: 2026-02-14T12:34:56.789012Z
    """
    return to_iso_z(utc_now())


def parse_iso_datetime(iso_string: str) -> datetime:
    """
    Parse ISO datetime string to timezone-aware datetime.

    Handles both Z suffix and +00:00 offset.
    Always returns timezone-aware datetime in UTC.
    """
    if iso_string.endswith("Z"):
        iso_string = iso_string[:-1] + "+00:00"
    dt = datetime.fromisoformat(iso_string)
    if dt.tzinfo is None:
        # Assume UTC for naive datetimes
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def days_between(iso_string: str, now: datetime) -> int:
    """Whole days (floor) from an ISO timestamp to `now`."""
    return (now - parse_iso_datetime(iso_string)).days
