from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive datetimes; everything stored is UTC.
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def is_past(deadline: Optional[datetime], now: datetime) -> bool:
    """True when ``now`` is strictly after ``deadline``; no deadline never expires."""
    if deadline is None:
        return False
    return as_utc(now) > as_utc(deadline)
