# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""DateTime utilities.

Design Decisions:
-----------------
1. All timestamps are stored in UTC (TIMESTAMPTZ)
2. All Python datetimes are timezone-aware (with timezone.utc)
3. Naive values coming back from a driver are treated as UTC

Usage:
------
    from src.utils.datetime import utc_now

    now = utc_now()
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)
"""

from datetime import datetime, timedelta, timezone


def utc_now() -> datetime:
    """Get current UTC time as timezone-aware datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(dt: datetime | None) -> datetime | None:
    """Ensure a datetime is timezone-aware UTC.

    Args:
        dt: A datetime object (naive or aware) or None.

    Returns:
        Timezone-aware UTC datetime or None.

    Note:
        - If dt is None, returns None
        - If dt is naive, assumes UTC and adds tzinfo
        - If dt is aware, converts to UTC
    """
    if dt is None:
        return None

    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)

    return dt.astimezone(timezone.utc)


def days_ago(days: int, reference: datetime | None = None) -> datetime:
    """Get a datetime N days before reference (default: now).

    Args:
        days: Number of days to go back.
        reference: Point in time to count back from.

    Returns:
        Timezone-aware UTC datetime.
    """
    base = ensure_utc(reference) if reference is not None else utc_now()
    return base - timedelta(days=days)


def format_iso(dt: datetime | None) -> str | None:
    """Format a datetime as ISO 8601 string.

    Args:
        dt: Datetime to format.

    Returns:
        ISO 8601 formatted string or None.
    """
    if dt is None:
        return None

    dt_utc = ensure_utc(dt)
    return dt_utc.isoformat()


# Aliases for convenience
now = utc_now
