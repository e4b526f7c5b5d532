"""
Booking -> real-time train matching.

A booking matches the feed record whose derived trip id equals the booking's
(normalized train number + journey date). Matching depends only on the booking
and the feed snapshot, never on the current time.

Tie-break: if a snapshot holds several records for one trip id, the first one
in feed order wins. Later duplicates are ignored (and logged at debug).

Unmatched reasons, in precedence order:
  date_mismatch         - the train number runs in the feed, but on other dates
  train_number_mismatch - a record's upstream trip key names this trip, yet its
                          train number normalizes to something else
  not_found             - nothing in the feed relates to this booking
"""

import logging
from typing import Iterable, Optional, Sequence

from app.core.errors import ProcessingError
from app.delay_monitor.trip_id import normalize_train_number
from app.delay_monitor.types import Booking, MatchFailureReason, MatchResult, TrainRecord

logger = logging.getLogger(__name__)


class FeedIndex:
    """Lookup tables over one feed snapshot. Build once, match many bookings."""

    def __init__(self, records: Iterable[TrainRecord]):
        self.by_trip_id: dict[str, TrainRecord] = {}
        self.train_numbers: set[str] = set()
        self.declared_trip_ids: set[str] = set()
        self.invalid = 0

        for record in records:
            try:
                trip_id = record.trip_id
            except (ProcessingError, ValueError, TypeError) as e:
                self.invalid += 1
                logger.warning("Feed record %r left out of the index: %s", record.train_number, e)
                continue

            if trip_id in self.by_trip_id:
                logger.debug("Duplicate feed record for trip %s ignored (first wins)", trip_id)
            else:
                self.by_trip_id[trip_id] = record

            self.train_numbers.add(normalize_train_number(record.train_number))
            if record.feed_trip_id:
                self.declared_trip_ids.add(record.feed_trip_id.strip().upper())

    def __len__(self) -> int:
        return len(self.by_trip_id)

    def match(self, booking: Booking) -> MatchResult:
        number = normalize_train_number(booking.train_number)
        if not number:
            return MatchResult.not_matched(MatchFailureReason.NOT_FOUND)

        trip_id = booking.trip_id
        train = self.by_trip_id.get(trip_id)
        if train is not None:
            return MatchResult.found(train)

        if number in self.train_numbers:
            return MatchResult.not_matched(MatchFailureReason.DATE_MISMATCH)
        if trip_id in self.declared_trip_ids:
            return MatchResult.not_matched(MatchFailureReason.TRAIN_NUMBER_MISMATCH)
        return MatchResult.not_matched(MatchFailureReason.NOT_FOUND)


def match_booking_to_train(
    booking: Booking,
    feed_records: Sequence[TrainRecord],
    index: Optional[FeedIndex] = None,
) -> MatchResult:
    if index is None:
        index = FeedIndex(feed_records)
    return index.match(booking)


def match_bookings_to_trains(bookings: Sequence[Booking], feed_records: Sequence[TrainRecord]) -> list[MatchResult]:
    """One MatchResult per booking, in input order. Bookings never affect each other."""
    index = FeedIndex(feed_records)
    return [index.match(b) for b in bookings]
