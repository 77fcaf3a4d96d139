"""
Date/time helpers: framework-agnostic.

MongoDB hands back naive datetimes unless the client is created with
``tz_aware=True``; everything in this service compares aware UTC values, so
values read from storage pass through ``ensure_utc`` first.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable, Optional

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Return the current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Return *value* as an aware UTC datetime.

    Naive datetimes (no ``tzinfo``) are assumed to be UTC. ``None`` passes
    through unchanged.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def seconds_until(moment: datetime, now: datetime) -> int:
    """Whole seconds from *now* until *moment*, never negative."""
    remaining = (ensure_utc(moment) - ensure_utc(now)).total_seconds()
    return max(0, int(remaining + 0.999))
