"""
SQLAlchemy-backed booking source and completion sink.

Pending bookings:
  final_delay_minutes IS NULL
  AND monitor_failed_at IS NULL
  AND journey_date BETWEEN (today - lookback_days) AND today   -- UTC dates

A completion writes final_delay_minutes + train_ref and its "booking_completed"
event_log row in one transaction.
"""

import logging
import uuid
from datetime import datetime, timedelta
from typing import Callable

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from app.delay_monitor.types import Booking, BookingCompletedEvent, CompletedBooking
from app.jobs.ingest.utils.time import as_utc
from app.models.bookings import BookingRow
from app.models.event_log import EventLog
from app.repositories.base import BookingSource, CompletionSink

logger = logging.getLogger(__name__)

BOOKING_COMPLETED_EVENT = "booking_completed"


def row_to_booking(row: BookingRow) -> Booking:
    return Booking(
        id=str(row.id),
        train_number=row.train_number,
        journey_date=row.journey_date,
        origin=row.origin,
        destination=row.destination,
        final_delay_minutes=row.final_delay_minutes,
        user_id=str(row.user_id) if row.user_id else None,
    )


class SqlBookingRepository(BookingSource, CompletionSink):
    def __init__(self, session_factory: Callable[[], Session], lookback_days: int = 1):
        self._session_factory = session_factory
        self.lookback_days = lookback_days

    def list_pending_bookings(self, now: datetime) -> list[Booking]:
        today = as_utc(now).date()
        since = today - timedelta(days=self.lookback_days)

        stmt = (
            select(BookingRow)
            .where(
                BookingRow.final_delay_minutes.is_(None),
                BookingRow.monitor_failed_at.is_(None),
                BookingRow.journey_date >= since,
                BookingRow.journey_date <= today,
            )
            .order_by(BookingRow.journey_date, BookingRow.created_at, BookingRow.id)
        )
        with self._session_factory() as db:
            rows = db.execute(stmt).scalars().all()
            bookings = [row_to_booking(r) for r in rows]

        logger.debug("Pending bookings %s..%s: %d", since, today, len(bookings))
        return bookings

    def record_completion(self, completed: CompletedBooking, event: BookingCompletedEvent) -> bool:
        stmt = (
            update(BookingRow)
            .where(
                BookingRow.id == uuid.UUID(completed.booking.id),
                BookingRow.final_delay_minutes.is_(None),
            )
            .values(final_delay_minutes=completed.delay_minutes, train_ref=completed.train.train_id)
        )
        with self._session_factory() as db:
            try:
                if db.execute(stmt).rowcount == 0:
                    db.rollback()
                    logger.info("Booking %s already finalized; no event emitted", completed.booking.id)
                    return False
                db.add(self._event_row(event))
                db.commit()
            except Exception:
                db.rollback()
                raise
        return True

    def _event_row(self, event: BookingCompletedEvent) -> EventLog:
        return EventLog(
            booking_id=uuid.UUID(event.booking_id),
            event_name=BOOKING_COMPLETED_EVENT,
            event_ts=event.completed_at,
            payload=event.to_payload(),
        )

    def mark_permanently_failed(self, booking_id: str, error: str, now: datetime) -> None:
        stmt = (
            update(BookingRow)
            .where(BookingRow.id == uuid.UUID(booking_id))
            .values(monitor_failed_at=as_utc(now), monitor_error=error[:1000])
        )
        self._execute(stmt)
        logger.warning("Booking %s marked permanently failed: %s", booking_id, error)

    def _execute(self, stmt) -> None:
        with self._session_factory() as db:
            try:
                db.execute(stmt)
                db.commit()
            except Exception:
                db.rollback()
                raise
