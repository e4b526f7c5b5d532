from abc import ABC, abstractmethod
from datetime import datetime
from typing import Sequence

from app.delay_monitor.types import Booking, BookingCompletedEvent, CompletedBooking


class BookingSource(ABC):
    @abstractmethod
    def list_pending_bookings(self, now: datetime) -> Sequence[Booking]:
        """Bookings whose final delay is not recorded yet (and not permanently failed)."""
        raise NotImplementedError


class CompletionSink(ABC):
    @abstractmethod
    def record_completion(self, completed: CompletedBooking, event: BookingCompletedEvent) -> bool:
        """
        Write back the final delay and emit its completion event as one unit:
        either both land or neither does, so a failure leaves the booking
        pending for the next pass. Returns False when the booking was already
        finalized (no event is emitted twice).
        """
        raise NotImplementedError

    @abstractmethod
    def mark_permanently_failed(self, booking_id: str, error: str, now: datetime) -> None:
        """Stop retrying a booking that keeps failing classification."""
        raise NotImplementedError
