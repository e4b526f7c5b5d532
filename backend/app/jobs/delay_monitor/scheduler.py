"""
Delay monitor scheduler: runs one monitor pass per tick.

  IDLE -> POLLING -> PROCESSING -> IDLE
             |            |
             +--> FAILED <+     (back to IDLE once the backoff wait is over)

A cycle fetches the feed snapshot and the pending bookings (both bounded by
fetch_timeout_seconds, any failure surfaces as PollError), hands them to
`process`, then records each completed booking through the sink: the final
delay write-back and its completion event land together or not at all.

Cycles are single-flight: run_cycle() called while another cycle holds the
run lock returns None immediately and counts a skipped job.
"""

import logging
import random
import threading
import time
from concurrent.futures import Future
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Callable, Optional, Sequence

from app.core.errors import PollError
from app.delay_monitor.types import Booking, ProcessingResult, TrainRecord
from app.jobs.delay_monitor.config import DELAY_MONITOR_QUEUE_NAME
from app.jobs.delay_monitor.metrics import MonitorMetrics
from app.jobs.ingest.utils.time import utc_now
from app.repositories.base import CompletionSink

logger = logging.getLogger(__name__)

ProcessFn = Callable[[Sequence[Booking], Sequence[TrainRecord], datetime], ProcessingResult]
FetchFeedFn = Callable[[float], Sequence[TrainRecord]]
ListBookingsFn = Callable[[datetime], Sequence[Booking]]

TRIGGER_MANUAL = "manual"
TRIGGER_INTERVAL = "interval"
TRIGGER_FEED_POLL = "feed_poll"
TRIGGER_STARTUP = "startup"


class SchedulerState(str, Enum):
    IDLE = "idle"
    POLLING = "polling"
    PROCESSING = "processing"
    FAILED = "failed"


@dataclass(frozen=True)
class CycleReport:
    trigger: str
    status: str  # processed | failed | abandoned
    started_at: datetime
    duration_seconds: float
    feed_records: int = 0
    bookings: int = 0
    result: Optional[ProcessingResult] = None
    error: Optional[str] = None
    persisted: int = 0
    persist_failures: int = 0
    permanently_failed: tuple[str, ...] = ()
    abandoned: bool = False

    @property
    def ok(self) -> bool:
        return self.status == "processed"

    def summary(self) -> dict:
        summary = {
            "status": self.status,
            "trigger": self.trigger,
            "duration_s": round(self.duration_seconds, 3),
            "feed_records": self.feed_records,
            "bookings": self.bookings,
            "persisted": self.persisted,
            "persist_failures": self.persist_failures,
            "permanently_failed": len(self.permanently_failed),
        }
        if self.result is not None:
            summary.update(self.result.summary())
        if self.error:
            summary["error"] = self.error
        return summary


class DelayMonitorScheduler:
    def __init__(
        self,
        process: ProcessFn,
        *,
        fetch_feed: FetchFeedFn,
        list_pending_bookings: ListBookingsFn,
        sink: Optional[CompletionSink] = None,
        poll_interval_seconds: float = 300.0,
        fetch_timeout_seconds: float = 30.0,
        failure_backoff_base: float = 5.0,
        failure_backoff_max: float = 300.0,
        jitter_seconds: float = 0.5,
        max_booking_failures: int = 5,
        clock: Callable[[], datetime] = utc_now,
        metrics: Optional[MonitorMetrics] = None,
        queue_name: str = DELAY_MONITOR_QUEUE_NAME,
    ):
        self._process = process
        self._fetch_feed = fetch_feed
        self._list_pending_bookings = list_pending_bookings
        self.sink = sink

        self.poll_interval_seconds = poll_interval_seconds
        self.fetch_timeout_seconds = fetch_timeout_seconds
        self.failure_backoff_base = failure_backoff_base
        self.failure_backoff_max = failure_backoff_max
        self.jitter_seconds = jitter_seconds
        self.max_booking_failures = max_booking_failures

        self.queue_name = queue_name
        self._clock = clock
        self.metrics = metrics or MonitorMetrics(queue_name)

        self._run_lock = threading.Lock()
        self._inflight_lock = threading.Lock()
        self._inflight: set[str] = set()
        self._state = SchedulerState.IDLE
        self._consecutive_failures = 0
        self._booking_failures: dict[str, int] = {}
        self._last_report: Optional[CycleReport] = None

        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()
        self._abandon_event = threading.Event()
        self._wake_event = threading.Event()

    # ---- run state ----

    @property
    def state(self) -> SchedulerState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    @property
    def consecutive_failures(self) -> int:
        return self._consecutive_failures

    @property
    def last_report(self) -> Optional[CycleReport]:
        return self._last_report

    def booking_failures(self, booking_id: str) -> int:
        return self._booking_failures.get(booking_id, 0)

    def compute_backoff(self, failures: int) -> float:
        """Seconds to wait before the next cycle after `failures` failed cycles in a row."""
        if failures <= 0:
            return self.poll_interval_seconds
        delay = min(self.failure_backoff_max, self.failure_backoff_base * (2 ** (failures - 1)))
        return delay + random.uniform(0, self.jitter_seconds)

    # ---- one cycle ----

    def _call_bounded(self, what: str, fn: Callable, arg):
        """
        Run fn(arg) on a daemon thread and wait at most fetch_timeout_seconds.
        A call that outlives its timeout keeps its slot, so later cycles fail
        fast instead of stacking more threads behind it.
        """
        with self._inflight_lock:
            if what in self._inflight:
                raise PollError(f"{what} from an earlier cycle is still running")
            self._inflight.add(what)

        future: Future = Future()

        def target():
            try:
                value, error = fn(arg), None
            except Exception as e:
                value, error = None, e
            with self._inflight_lock:
                self._inflight.discard(what)
            if error is None:
                future.set_result(value)
            else:
                future.set_exception(error)

        threading.Thread(target=target, name=f"{self.queue_name}-io", daemon=True).start()
        try:
            return future.result(timeout=self.fetch_timeout_seconds)
        except FutureTimeoutError as e:
            raise PollError(f"{what} timed out after {self.fetch_timeout_seconds:.1f}s") from e
        except PollError:
            raise
        except Exception as e:
            raise PollError(f"{what} failed: {e!r}") from e

    def run_cycle(self, trigger: str = TRIGGER_MANUAL) -> Optional[CycleReport]:
        if not self._run_lock.acquire(blocking=False):
            logger.info("Delay monitor cycle skipped queue=%s trigger=%s: previous cycle still running", self.queue_name, trigger)
            self.metrics.record_job("skipped")
            return None

        try:
            with self.metrics.track_active_job():
                report = self._run_cycle_locked(trigger)
        finally:
            self._run_lock.release()

        self._last_report = report
        return report

    def _run_cycle_locked(self, trigger: str) -> CycleReport:
        now = self._clock()
        t0 = time.perf_counter()
        feed: Sequence[TrainRecord] = ()
        bookings: Sequence[Booking] = ()

        def failed(error: Exception) -> CycleReport:
            self._state = SchedulerState.FAILED
            self._consecutive_failures += 1
            self.metrics.record_job("failed")
            report = CycleReport(
                trigger=trigger,
                status="failed",
                started_at=now,
                duration_seconds=time.perf_counter() - t0,
                feed_records=len(feed),
                bookings=len(bookings),
                error=str(error) or error.__class__.__name__,
            )
            logger.error(
                "Delay monitor cycle failed queue=%s trigger=%s consecutive_failures=%d error=%s",
                self.queue_name,
                trigger,
                self._consecutive_failures,
                report.error,
            )
            return report

        self._state = SchedulerState.POLLING
        poll_t0 = time.perf_counter()
        try:
            feed = list(self._call_bounded("Feed fetch", self._fetch_feed, self.fetch_timeout_seconds))
        except PollError as e:
            self.metrics.record_poll("failed", time.perf_counter() - poll_t0)
            return failed(e)
        self.metrics.record_poll("success", time.perf_counter() - poll_t0, records=len(feed))

        try:
            bookings = list(self._call_bounded("Pending bookings fetch", self._list_pending_bookings, now))
        except PollError as e:
            return failed(e)

        if self._abandon_event.is_set():
            return self._abandoned(trigger, now, t0, feed, bookings)

        self._state = SchedulerState.PROCESSING
        try:
            result = self._process(bookings, feed, now)
        except Exception as e:
            logger.exception("Delay monitor processing raised queue=%s", self.queue_name)
            return failed(e)

        persisted, persist_failures, abandoned = self._persist(result)
        permanently_failed = self._track_booking_failures(result, now)

        self.metrics.record_processing(result)
        if abandoned:
            self.metrics.record_job("skipped")
        else:
            self.metrics.record_job("processed")
        self._consecutive_failures = 0
        self._state = SchedulerState.IDLE

        report = CycleReport(
            trigger=trigger,
            status="abandoned" if abandoned else "processed",
            started_at=now,
            duration_seconds=time.perf_counter() - t0,
            feed_records=len(feed),
            bookings=len(bookings),
            result=result,
            persisted=persisted,
            persist_failures=persist_failures,
            permanently_failed=permanently_failed,
            abandoned=abandoned,
        )
        logger.info(
            "Delay monitor cycle queue=%s %s",
            self.queue_name,
            " ".join(f"{k}={v}" for k, v in report.summary().items()),
        )
        return report

    def _abandoned(self, trigger, now, t0, feed, bookings) -> CycleReport:
        logger.warning("Delay monitor cycle abandoned before processing queue=%s", self.queue_name)
        self.metrics.record_job("skipped")
        self._state = SchedulerState.IDLE
        return CycleReport(
            trigger=trigger,
            status="abandoned",
            started_at=now,
            duration_seconds=time.perf_counter() - t0,
            feed_records=len(feed),
            bookings=len(bookings),
            abandoned=True,
        )

    def _persist(self, result: ProcessingResult) -> tuple[int, int, bool]:
        """Record each completed booking (final delay plus event, atomically) through the sink.

        Returns (persisted, failures, abandoned). A booking whose completion
        fails to record keeps a NULL final delay and is picked up again next cycle.
        """
        if self.sink is None:
            return 0, 0, False

        persisted = failures = 0
        for idx, done in enumerate(result.completed):
            if self._abandon_event.is_set():
                logger.warning("Shutdown: abandoning %d unpersisted completion(s)", len(result.completed) - idx)
                return persisted, failures, True

            try:
                recorded = self.sink.record_completion(done, done.to_event())
            except Exception:
                failures += 1
                logger.exception("Completion record failed booking=%s; retrying next cycle", done.booking.id)
                continue
            if recorded:
                persisted += 1

        return persisted, failures, False

    def _track_booking_failures(self, result: ProcessingResult, now: datetime) -> tuple[str, ...]:
        counts: dict[str, int] = {}
        for err in result.errors:
            counts[err.booking_id] = self._booking_failures.get(err.booking_id, 0) + 1
        self._booking_failures = counts

        if self.sink is None or self.max_booking_failures <= 0:
            return ()

        marked: list[str] = []
        for err in result.errors:
            if counts.get(err.booking_id, 0) < self.max_booking_failures:
                continue
            try:
                self.sink.mark_permanently_failed(err.booking_id, err.error, now)
            except Exception:
                logger.exception("Could not mark booking %s permanently failed", err.booking_id)
                continue
            counts.pop(err.booking_id, None)
            marked.append(err.booking_id)
        return tuple(marked)

    # ---- loop ----

    def start(self) -> None:
        if self.is_running:
            raise RuntimeError(f"Scheduler for queue {self.queue_name!r} is already running")
        self._stop_event.clear()
        self._abandon_event.clear()
        self._wake_event.clear()
        self._thread = threading.Thread(target=self._run_loop, name=f"{self.queue_name}-scheduler", daemon=True)
        self._thread.start()
        logger.info(
            "Delay monitor started queue=%s poll_interval=%.1fs fetch_timeout=%.1fs",
            self.queue_name,
            self.poll_interval_seconds,
            self.fetch_timeout_seconds,
        )

    def _run_loop(self) -> None:
        trigger = TRIGGER_STARTUP
        while not self._stop_event.is_set():
            self.run_cycle(trigger)

            wait_s = self.compute_backoff(self._consecutive_failures)
            if self._consecutive_failures:
                logger.info("Backing off %.2fs after %d failed cycle(s)", wait_s, self._consecutive_failures)
            self._wake_event.wait(wait_s)

            if self._state is SchedulerState.FAILED:
                self._state = SchedulerState.IDLE
            trigger = TRIGGER_FEED_POLL if self._wake_event.is_set() else TRIGGER_INTERVAL
            self._wake_event.clear()

    def trigger_now(self) -> None:
        """Wake the loop for an immediate cycle (e.g. a fresh feed poll landed)."""
        self._wake_event.set()

    def stop(self, timeout: float = 10.0, abandon: bool = False) -> bool:
        """
        Stop the loop. The running cycle finishes unless `abandon` is set, in
        which case it stops before the next booking is persisted. Returns True
        once the loop thread has exited.
        """
        self._stop_event.set()
        if abandon:
            self._abandon_event.set()
        self._wake_event.set()

        thread = self._thread
        if thread is None:
            return True
        thread.join(timeout)
        stopped = not thread.is_alive()
        if stopped:
            self._thread = None
            logger.info("Delay monitor stopped queue=%s", self.queue_name)
        else:
            logger.warning("Delay monitor queue=%s did not stop within %.1fs", self.queue_name, timeout)
        return stopped
