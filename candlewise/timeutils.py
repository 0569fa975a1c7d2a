"""UTC helpers shared by the window, outcome and rerank layers."""

from datetime import datetime, timedelta, timezone

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def ensure_utc(dt: datetime) -> datetime:
    """Return a timezone-aware UTC datetime (naive values are taken as UTC)."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def to_unix_seconds(dt: datetime) -> int:
    """Whole Unix seconds, floored."""
    return (ensure_utc(dt) - EPOCH) // timedelta(seconds=1)


def to_unix_millis(dt: datetime) -> int:
    return (ensure_utc(dt) - EPOCH) // timedelta(milliseconds=1)


def from_unix_millis(ms: int) -> datetime:
    return EPOCH + timedelta(milliseconds=int(ms))


def age_in_days(then: datetime, now: datetime) -> float:
    """Days elapsed from `then` to `now`; negative when `then` is in the future."""
    return (ensure_utc(now) - ensure_utc(then)).total_seconds() / 86400.0
