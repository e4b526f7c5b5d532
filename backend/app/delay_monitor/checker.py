"""
Journey status classification and delay calculation.

Pure functions: the status is recomputed from (booking, train, current_time) on
every pass and never stored.

  no train record:  current_time <  journey_date 00:00 UTC          -> PENDING
                    otherwise                                        -> UNKNOWN
  with train:       current_time <  scheduled_departure              -> PENDING
                    current_time <  scheduled_arrival + buffer       -> IN_PROGRESS
                    otherwise                                        -> COMPLETED (+ delay)
"""

import math
from datetime import datetime, timedelta
from typing import Optional

from app.core.errors import ProcessingError
from app.delay_monitor.types import Booking, DelayCheckResult, JourneyStatus, TrainRecord
from app.jobs.ingest.utils.time import as_utc, utc_midnight

# Grace period after scheduled arrival for late actuals to reach the feed.
COMPLETION_BUFFER = timedelta(hours=1)


def _required_ts(train: TrainRecord, field: str) -> datetime:
    value = getattr(train, field)
    if value is None:
        raise ProcessingError(f"Train {train.train_number!r} is missing {field}")
    if not isinstance(value, datetime):
        raise ProcessingError(f"Train {train.train_number!r} has a malformed {field}: {value!r}")
    return as_utc(value)


def calculate_delay_minutes(train: TrainRecord) -> int:
    """
    Arrival delay in whole minutes, never negative.

    With both actual and scheduled arrival: (actual - scheduled) rounded half-up
    to the minute, early arrivals clamp to 0. Otherwise the feed's delay_minutes,
    or 0 when absent.
    """
    if train.actual_arrival is not None and train.scheduled_arrival is not None:
        diff = as_utc(train.actual_arrival) - as_utc(train.scheduled_arrival)
        return max(0, math.floor(diff.total_seconds() / 60.0 + 0.5))

    if train.delay_minutes is None:
        return 0
    return max(0, int(train.delay_minutes))


def completion_threshold(train: TrainRecord) -> datetime:
    return _required_ts(train, "scheduled_arrival") + COMPLETION_BUFFER


def is_journey_complete(train: TrainRecord, current_time: datetime) -> bool:
    return as_utc(current_time) >= completion_threshold(train)


def check_journey_status(
    booking: Booking,
    train: Optional[TrainRecord],
    current_time: datetime,
) -> DelayCheckResult:
    now = as_utc(current_time)

    if train is None:
        journey_start = utc_midnight(booking.journey_date)
        status = JourneyStatus.PENDING if now < journey_start else JourneyStatus.UNKNOWN
        return DelayCheckResult(
            booking_id=booking.id,
            status=status,
            delay_minutes=None,
            train=None,
            checked_at=now,
        )

    departure = _required_ts(train, "scheduled_departure")
    threshold = completion_threshold(train)

    delay_minutes = None
    if now < departure:
        status = JourneyStatus.PENDING
    elif now < threshold:
        status = JourneyStatus.IN_PROGRESS
    else:
        status = JourneyStatus.COMPLETED
        delay_minutes = calculate_delay_minutes(train)

    return DelayCheckResult(
        booking_id=booking.id,
        status=status,
        delay_minutes=delay_minutes,
        train=train,
        checked_at=now,
    )
