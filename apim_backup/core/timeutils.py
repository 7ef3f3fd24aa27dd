from __future__ import annotations

from datetime import datetime, timezone


def now_utc() -> datetime:
    """Return the current UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes and convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def minute_stamp(value: datetime) -> str:
    """Format a datetime as ``YYYYMMDDHHmm`` in UTC."""
    return ensure_utc(value).strftime("%Y%m%d%H%M")
