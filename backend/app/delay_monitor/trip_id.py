"""
Trip identifiers: the join key between bookings and real-time train records.

Format: "{normalized_train_number}-{YYYYMMDD}", e.g. "9007-20240615".

The normalized train number is alphanumeric only, so the separator can never
occur inside it and every (train number, date) pair maps to exactly one id.
"""

import re
from datetime import date
from typing import Optional

from app.jobs.ingest.utils.time import utc_date

TRIP_ID_SEPARATOR = "-"

_NON_ALNUM = re.compile(r"[^0-9A-Za-z]")
_TRIP_ID_RE = re.compile(r"^([0-9A-Z]+)-(\d{4})(\d{2})(\d{2})$")


def normalize_train_number(raw: Optional[str]) -> str:
    """Strip non-alphanumerics and uppercase. " es 9007 " -> "ES9007"; "" stays ""."""
    return _NON_ALNUM.sub("", raw or "").upper()


def format_date_for_trip_id(value) -> str:
    """YYYYMMDD from the UTC calendar fields of a date or datetime."""
    d = utc_date(value)
    return f"{d.year:04d}{d.month:02d}{d.day:02d}"


def build_trip_id(train_number: str, value) -> str:
    return f"{normalize_train_number(train_number)}{TRIP_ID_SEPARATOR}{format_date_for_trip_id(value)}"


def is_same_day(a, b) -> bool:
    return utc_date(a) == utc_date(b)


def parse_trip_id(trip_id: Optional[str]) -> Optional[tuple[str, date]]:
    """
    Inverse of build_trip_id. Returns (train_number, date) or None when the
    value is not a well-formed trip id (including impossible dates).
    """
    m = _TRIP_ID_RE.match((trip_id or "").strip().upper())
    if not m:
        return None
    train_number, year, month, day = m.groups()
    try:
        return train_number, date(int(year), int(month), int(day))
    except ValueError:
        return None
