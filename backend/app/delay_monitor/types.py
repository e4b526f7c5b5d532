from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Optional

from app.core.errors import ProcessingError
from app.delay_monitor.trip_id import build_trip_id
from app.eligibility.types import CompensationTier
from app.jobs.ingest.utils.time import utc_date


class JourneyStatus(str, Enum):
    PENDING = "pending"          # journey has not started
    IN_PROGRESS = "in_progress"  # departed, not yet past arrival + buffer
    COMPLETED = "completed"      # past scheduled arrival + buffer
    UNKNOWN = "unknown"          # journey date reached but no train data


class MatchFailureReason(str, Enum):
    NOT_FOUND = "not_found"
    DATE_MISMATCH = "date_mismatch"
    TRAIN_NUMBER_MISMATCH = "train_number_mismatch"


@dataclass(frozen=True)
class Booking:
    id: str
    train_number: str
    journey_date: date
    origin: str
    destination: str
    final_delay_minutes: Optional[int] = None
    user_id: Optional[str] = None

    @property
    def trip_id(self) -> str:
        return build_trip_id(self.train_number, self.journey_date)


@dataclass(frozen=True)
class TrainRecord:
    """
    One real-time entry for a specific trip, as of the latest feed poll.

    service_date is the trip's calendar date; when the feed omits it, the UTC
    date of scheduled_departure is used. feed_trip_id is the upstream trip key
    verbatim (may disagree with the derived trip_id on bad data).
    """

    train_number: str
    scheduled_departure: Optional[datetime]
    scheduled_arrival: Optional[datetime]
    actual_arrival: Optional[datetime] = None
    delay_minutes: Optional[int] = None
    service_date: Optional[date] = None
    feed_trip_id: Optional[str] = None
    id: Optional[str] = None

    @property
    def journey_date(self) -> date:
        if self.service_date is not None:
            return utc_date(self.service_date)
        if self.scheduled_departure is None:
            raise ProcessingError(f"Train {self.train_number!r} has neither service_date nor scheduled_departure")
        return utc_date(self.scheduled_departure)

    @property
    def trip_id(self) -> str:
        return build_trip_id(self.train_number, self.journey_date)

    @property
    def train_id(self) -> str:
        return self.id or self.trip_id


@dataclass(frozen=True)
class MatchResult:
    matched: bool
    train: Optional[TrainRecord] = None
    reason: Optional[MatchFailureReason] = None

    def __post_init__(self):
        if self.matched and (self.train is None or self.reason is not None):
            raise ValueError("A matched result carries a train and no reason")
        if not self.matched and (self.train is not None or self.reason is None):
            raise ValueError("An unmatched result carries a reason and no train")

    @classmethod
    def found(cls, train: TrainRecord) -> "MatchResult":
        return cls(matched=True, train=train)

    @classmethod
    def not_matched(cls, reason: MatchFailureReason) -> "MatchResult":
        return cls(matched=False, reason=reason)


@dataclass(frozen=True)
class DelayCheckResult:
    booking_id: str
    status: JourneyStatus
    delay_minutes: Optional[int]  # only set when COMPLETED
    train: Optional[TrainRecord]
    checked_at: datetime


@dataclass(frozen=True)
class BookingCompletedEvent:
    booking_id: str
    train_id: str
    delay_minutes: int
    is_eligible_for_claim: bool
    completed_at: datetime
    tier_name: Optional[str] = None

    def to_payload(self) -> dict:
        return {
            "booking_id": self.booking_id,
            "train_id": self.train_id,
            "delay_minutes": self.delay_minutes,
            "is_eligible_for_claim": self.is_eligible_for_claim,
            "completed_at": self.completed_at.isoformat(),
            "tier_name": self.tier_name,
        }


@dataclass(frozen=True)
class CompletedBooking:
    booking: Booking
    train: TrainRecord
    delay_minutes: int
    completed_at: datetime
    eligible: bool
    tier: Optional[CompensationTier] = None

    def to_event(self) -> BookingCompletedEvent:
        return BookingCompletedEvent(
            booking_id=self.booking.id,
            train_id=self.train.train_id,
            delay_minutes=self.delay_minutes,
            is_eligible_for_claim=self.eligible,
            completed_at=self.completed_at,
            tier_name=self.tier.name if self.tier else None,
        )


@dataclass(frozen=True)
class BookingError:
    booking_id: str
    error: str


@dataclass(frozen=True)
class ProcessingResult:
    processed: int
    completed: tuple[CompletedBooking, ...] = ()
    skipped: int = 0      # journey due, no train record found
    in_progress: int = 0
    pending: int = 0      # journey not started yet
    errors: tuple[BookingError, ...] = ()

    @property
    def eligible_for_claim(self) -> int:
        return sum(1 for c in self.completed if c.eligible)

    def summary(self) -> dict:
        return {
            "processed": self.processed,
            "completed": len(self.completed),
            "skipped": self.skipped,
            "in_progress": self.in_progress,
            "pending": self.pending,
            "eligible": self.eligible_for_claim,
            "errors": len(self.errors),
        }
