"""
Claim timing rules.

  - claims open CLAIM_WINDOW (24h) after the journey date (UTC midnight)
  - claims close at the end of the day CLAIM_DEADLINE_MONTHS (3) calendar
    months after the journey date; the day is clamped to the target month's
    last day (Nov 30 -> Feb 28/29)
"""

import calendar
import math
from datetime import date, datetime, time, timedelta

from app.eligibility.types import CLAIM_DEADLINE_MONTHS, CLAIM_WINDOW, ClaimTimingStatus
from app.jobs.ingest.utils.time import UTC, as_utc, utc_date, utc_midnight

_HOUR = timedelta(hours=1)
_DAY = timedelta(days=1)


def add_months(d: date, months: int) -> date:
    month_index = d.month - 1 + months
    year = d.year + month_index // 12
    month = month_index % 12 + 1
    day = min(d.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def claim_window_opens_at(journey_date) -> datetime:
    return utc_midnight(utc_date(journey_date)) + CLAIM_WINDOW


def is_claim_window_open(journey_date, current_time: datetime) -> bool:
    return as_utc(current_time) >= claim_window_opens_at(journey_date)


def hours_until_claim_window_opens(journey_date, current_time: datetime) -> int:
    remaining = claim_window_opens_at(journey_date) - as_utc(current_time)
    if remaining <= timedelta(0):
        return 0
    return math.ceil(remaining / _HOUR)


def claim_deadline(journey_date) -> datetime:
    last_day = add_months(utc_date(journey_date), CLAIM_DEADLINE_MONTHS)
    return datetime.combine(last_day, time.max, tzinfo=UTC)


def is_within_claim_deadline(journey_date, current_time: datetime) -> bool:
    return as_utc(current_time) <= claim_deadline(journey_date)


def has_deadline_passed(journey_date, current_time: datetime) -> bool:
    return not is_within_claim_deadline(journey_date, current_time)


def days_until_deadline(journey_date, current_time: datetime) -> int:
    """Whole days left; negative (floored) once the deadline has passed."""
    return math.floor((claim_deadline(journey_date) - as_utc(current_time)) / _DAY)


def claim_timing_status(journey_date, current_time: datetime) -> ClaimTimingStatus:
    window_open = is_claim_window_open(journey_date, current_time)
    within_deadline = is_within_claim_deadline(journey_date, current_time)
    return ClaimTimingStatus(
        window_open=window_open,
        within_deadline=within_deadline,
        can_submit=window_open and within_deadline,
        deadline=claim_deadline(journey_date),
        days_remaining=days_until_deadline(journey_date, current_time),
        hours_until_window_opens=hours_until_claim_window_opens(journey_date, current_time),
    )
