from datetime import datetime, timezone
from zoneinfo import ZoneInfo


def utcnow() -> datetime:
    """Naive UTC timestamp, the form every datetime column is stored in."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_utc_naive(value: datetime, tz_name: str = "UTC") -> datetime:
    """
    Normalize a schedule timestamp for storage.

    Naive values are read as wall-clock time in `tz_name`; aware values keep
    their own offset. Raises ZoneInfoNotFoundError for unknown zones.
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=ZoneInfo(tz_name or "UTC"))
    return value.astimezone(timezone.utc).replace(tzinfo=None)
