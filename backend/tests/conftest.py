"""Shared fixtures and builders for the delay monitor test suite."""

from __future__ import annotations

import os

# app.core.db builds its engine at import time; keep the suite off Postgres.
os.environ.setdefault("DATABASE_URL", "sqlite://")

import threading
import time
import uuid
from datetime import date, datetime, timezone
from typing import Callable, Optional

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.db import Base
from app.delay_monitor.types import Booking, BookingCompletedEvent, CompletedBooking, TrainRecord
from app.jobs.ingest.utils.time import parse_iso_ts
from app.models import bookings as _bookings_model  # noqa: F401
from app.models import event_log as _event_log_model  # noqa: F401
from app.models import job_runs as _job_runs_model  # noqa: F401
from app.repositories.base import CompletionSink

UTC = timezone.utc
JOURNEY_DATE = date(2024, 6, 15)


def at(value: str) -> datetime:
    """'2024-06-15T14:00:00Z' -> aware UTC datetime."""
    return parse_iso_ts(value)


def wait_for(predicate: Callable[[], bool], timeout: float = 3.0, interval: float = 0.01) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()


@pytest.fixture
def make_booking() -> Callable[..., Booking]:
    def _make(
        id: str = "b-1",
        train_number: str = "9007",
        journey_date: date = JOURNEY_DATE,
        origin: str = "MAD",
        destination: str = "BCN",
        **kwargs,
    ) -> Booking:
        return Booking(
            id=id,
            train_number=train_number,
            journey_date=journey_date,
            origin=origin,
            destination=destination,
            **kwargs,
        )

    return _make


@pytest.fixture
def make_train() -> Callable[..., TrainRecord]:
    def _make(
        train_number: str = "9007",
        departure: Optional[str] = "2024-06-15T09:00:00Z",
        arrival: Optional[str] = "2024-06-15T12:00:00Z",
        actual_arrival: Optional[str] = None,
        **kwargs,
    ) -> TrainRecord:
        return TrainRecord(
            train_number=train_number,
            scheduled_departure=at(departure) if departure else None,
            scheduled_arrival=at(arrival) if arrival else None,
            actual_arrival=at(actual_arrival) if actual_arrival else None,
            **kwargs,
        )

    return _make


class RecordingSink(CompletionSink):
    """
    In-memory sink recording every call in order. A completion only sticks
    (in `finalized` and `events`) when both its write and its publish succeed.
    """

    def __init__(self):
        self.calls: list[tuple[str, str]] = []
        self.events: list[BookingCompletedEvent] = []
        self.finalized: dict[str, int] = {}
        self.failed: dict[str, str] = {}
        self.fail_write_for: set[str] = set()
        self.fail_publish_for: set[str] = set()
        self.on_write: Optional[Callable[[CompletedBooking], None]] = None
        self._lock = threading.Lock()

    def record_completion(self, completed: CompletedBooking, event: BookingCompletedEvent) -> bool:
        booking_id = completed.booking.id
        with self._lock:
            self.calls.append(("write", booking_id))
        if self.on_write is not None:
            self.on_write(completed)
        if booking_id in self.fail_write_for:
            raise RuntimeError(f"write failed for {booking_id}")
        if booking_id in self.finalized:
            return False

        with self._lock:
            self.calls.append(("publish", booking_id))
        if booking_id in self.fail_publish_for:
            raise RuntimeError(f"publish failed for {booking_id}")
        self.finalized[booking_id] = completed.delay_minutes
        self.events.append(event)
        return True

    def mark_permanently_failed(self, booking_id: str, error: str, now: datetime) -> None:
        self.failed[booking_id] = error


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def queue_name() -> str:
    """Unique metrics label per test so counters start from zero."""
    return f"test-{uuid.uuid4().hex[:8]}"


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    factory = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
    yield factory
    Base.metadata.drop_all(engine)
    engine.dispose()
