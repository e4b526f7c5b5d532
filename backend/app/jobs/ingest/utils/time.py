from datetime import date, datetime, time, timezone
from typing import Optional

UTC = timezone.utc


def utc_now() -> datetime:
    return datetime.now(UTC)


def as_utc(value: datetime) -> datetime:
    """
    Normalise a datetime to an aware UTC datetime.
    Naive values are read as UTC (feeds and the DB layer both store UTC).
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def utc_date(value) -> date:
    """
    Calendar date of a date/datetime in UTC. Time-of-day and offset are ignored
    for plain dates; datetimes are converted to UTC first.
    """
    if isinstance(value, datetime):
        return as_utc(value).date()
    if isinstance(value, date):
        return value
    raise TypeError(f"Expected date or datetime, got {type(value).__name__}")


def utc_midnight(d: date) -> datetime:
    return datetime.combine(utc_date(d), time(0, 0), tzinfo=UTC)


def parse_iso_ts(value: Optional[str]) -> Optional[datetime]:
    """
    Parse an ISO-8601 timestamp ("2024-06-15T12:00:00Z" or with offset) into aware UTC.
    Returns None for blank.
    """
    value = (value or "").strip()
    if not value:
        return None
    if value.endswith(("Z", "z")):
        value = value[:-1] + "+00:00"
    try:
        return as_utc(datetime.fromisoformat(value))
    except ValueError:
        raise ValueError(f"Bad ISO timestamp: {value}")
