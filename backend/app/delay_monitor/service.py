"""
Delay monitor pass: bookings + feed snapshot -> ProcessingResult.

For each booking, independently:
  match -> classify -> (COMPLETED) final delay, eligibility and tier

Every booking lands in exactly one bucket: completed, in_progress, pending,
skipped (journey due but no train record) or errors. A failure for one booking
is recorded in `errors` and never stops the rest of the batch.

The completion handler receives one BookingCompletedEvent per completed
booking, in input order. If the handler raises, that booking is reported as an
error instead of completed, so the next pass picks it up again.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional, Sequence, Union

from app.delay_monitor.checker import check_journey_status
from app.delay_monitor.matcher import FeedIndex
from app.delay_monitor.types import (
    Booking,
    BookingCompletedEvent,
    BookingError,
    CompletedBooking,
    DelayCheckResult,
    JourneyStatus,
    MatchResult,
    ProcessingResult,
    TrainRecord,
)
from app.eligibility.tiers import (
    COMPENSATION_THRESHOLD_MINUTES,
    TierTable,
    get_tier_for_delay,
    is_eligible_for_compensation,
)
from app.jobs.ingest.utils.time import as_utc

logger = logging.getLogger(__name__)

BookingCompletedHandler = Callable[[BookingCompletedEvent], None]


@dataclass(frozen=True)
class _Evaluation:
    booking: Booking
    match: MatchResult
    check: DelayCheckResult


def _error_message(e: Exception) -> str:
    return str(e) or e.__class__.__name__


class DelayMonitorService:
    def __init__(
        self,
        on_booking_completed: Optional[BookingCompletedHandler] = None,
        tiers: Optional[TierTable] = None,
        compensation_threshold_minutes: int = COMPENSATION_THRESHOLD_MINUTES,
        max_workers: int = 1,
    ):
        self.on_booking_completed = on_booking_completed
        self.tiers = tiers
        self.compensation_threshold_minutes = compensation_threshold_minutes
        self.max_workers = max(1, max_workers)

    def evaluate(self, booking: Booking, index: FeedIndex, current_time: datetime) -> _Evaluation:
        match = index.match(booking)
        check = check_journey_status(booking, match.train, current_time)
        return _Evaluation(booking=booking, match=match, check=check)

    def _evaluate_safely(
        self, booking: Booking, index: FeedIndex, current_time: datetime
    ) -> Union[_Evaluation, Exception]:
        try:
            return self.evaluate(booking, index, current_time)
        except Exception as e:
            logger.exception("Booking %s failed classification: %r", booking.id, e)
            return e

    def _evaluate_all(
        self, bookings: Sequence[Booking], index: FeedIndex, current_time: datetime
    ) -> list[Union[_Evaluation, Exception]]:
        if self.max_workers == 1 or len(bookings) < 2:
            return [self._evaluate_safely(b, index, current_time) for b in bookings]

        # Executor.map yields in input order regardless of completion order.
        with ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="delay-check") as pool:
            return list(pool.map(lambda b: self._evaluate_safely(b, index, current_time), bookings))

    def _complete(self, evaluation: _Evaluation, completed_at: datetime) -> CompletedBooking:
        delay_minutes = evaluation.check.delay_minutes or 0
        return CompletedBooking(
            booking=evaluation.booking,
            train=evaluation.match.train,
            delay_minutes=delay_minutes,
            completed_at=completed_at,
            eligible=is_eligible_for_compensation(delay_minutes, self.compensation_threshold_minutes),
            tier=get_tier_for_delay(delay_minutes, self.tiers),
        )

    def process(
        self,
        bookings: Sequence[Booking],
        feed_snapshot: Sequence[TrainRecord],
        current_time: datetime,
    ) -> ProcessingResult:
        now = as_utc(current_time)
        bookings = list(bookings)
        index = FeedIndex(feed_snapshot)

        completed: list[CompletedBooking] = []
        errors: list[BookingError] = []
        skipped = in_progress = pending = 0

        for booking, outcome in zip(bookings, self._evaluate_all(bookings, index, now)):
            if isinstance(outcome, Exception):
                errors.append(BookingError(booking_id=booking.id, error=_error_message(outcome)))
                continue

            status = outcome.check.status
            if status is JourneyStatus.COMPLETED:
                try:
                    done = self._complete(outcome, now)
                    if self.on_booking_completed is not None:
                        self.on_booking_completed(done.to_event())
                except Exception as e:
                    logger.exception("Booking %s completion handling failed: %r", booking.id, e)
                    errors.append(BookingError(booking_id=booking.id, error=_error_message(e)))
                    continue
                completed.append(done)
            elif status is JourneyStatus.IN_PROGRESS:
                in_progress += 1
            elif status is JourneyStatus.PENDING:
                pending += 1
            else:
                logger.debug("Booking %s unmatched (%s); retrying next pass", booking.id, outcome.match.reason)
                skipped += 1

        result = ProcessingResult(
            processed=len(bookings),
            completed=tuple(completed),
            skipped=skipped,
            in_progress=in_progress,
            pending=pending,
            errors=tuple(errors),
        )
        logger.info("Delay monitor pass done feed_trips=%d result=%s", len(index), result.summary())
        return result
