"""Prometheus metrics for the delay monitor loop.

Metrics exported (all labelled by `queue`):
- autoclaim_feed_polls_total{status}: feed polls by outcome (success, failed)
- autoclaim_feed_poll_duration_seconds{status}: feed poll latency
- autoclaim_feed_records_ingested: train records per successful poll
- autoclaim_monitor_jobs_total{status}: cycles by outcome (processed, failed, skipped)
- autoclaim_monitor_active_jobs: cycles currently running (0 or 1)
- autoclaim_monitor_bookings_total{outcome}: per-booking outcomes across cycles
"""

from __future__ import annotations

import time
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Optional

from prometheus_client import Counter, Gauge, Histogram

from app.delay_monitor.types import ProcessingResult

feed_polls_total = Counter(
    "autoclaim_feed_polls_total",
    "Total number of real-time feed polls",
    labelnames=["queue", "status"],
)

feed_poll_duration_seconds = Histogram(
    "autoclaim_feed_poll_duration_seconds",
    "Duration of real-time feed polls in seconds",
    labelnames=["queue", "status"],
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0),
)

feed_records_ingested = Histogram(
    "autoclaim_feed_records_ingested",
    "Train records ingested per successful feed poll",
    labelnames=["queue"],
    buckets=(0, 1, 5, 10, 25, 50, 100, 250, 500, 1000, 2500),
)

monitor_jobs_total = Counter(
    "autoclaim_monitor_jobs_total",
    "Delay monitor cycles by outcome",
    labelnames=["queue", "status"],
)

monitor_active_jobs = Gauge(
    "autoclaim_monitor_active_jobs",
    "Delay monitor cycles currently running",
    labelnames=["queue"],
)

monitor_bookings_total = Counter(
    "autoclaim_monitor_bookings_total",
    "Bookings handled by the delay monitor, by outcome",
    labelnames=["queue", "outcome"],
)


class MonitorMetrics:
    """Metrics recorder bound to one queue label."""

    def __init__(self, queue: str) -> None:
        self._queue = queue

    @property
    def queue(self) -> str:
        return self._queue

    def record_poll(self, status: str, duration: float, records: Optional[int] = None) -> None:
        feed_polls_total.labels(queue=self._queue, status=status).inc()
        feed_poll_duration_seconds.labels(queue=self._queue, status=status).observe(duration)
        if records is not None:
            feed_records_ingested.labels(queue=self._queue).observe(records)

    def record_job(self, status: str) -> None:
        monitor_jobs_total.labels(queue=self._queue, status=status).inc()

    def record_bookings(self, outcome: str, count: int = 1) -> None:
        if count > 0:
            monitor_bookings_total.labels(queue=self._queue, outcome=outcome).inc(count)

    def record_processing(self, result: ProcessingResult) -> None:
        self.record_bookings("completed", len(result.completed))
        self.record_bookings("eligible", result.eligible_for_claim)
        self.record_bookings("in_progress", result.in_progress)
        self.record_bookings("pending", result.pending)
        self.record_bookings("skipped", result.skipped)
        self.record_bookings("error", len(result.errors))

    @contextmanager
    def track_active_job(self) -> Iterator[float]:
        """Raise the active gauge for the duration of a cycle; yields the start time.

        Example:
            with metrics.track_active_job():
                scheduler.run_cycle()
        """
        gauge = monitor_active_jobs.labels(queue=self._queue)
        gauge.inc()
        start = time.perf_counter()
        try:
            yield start
        finally:
            gauge.dec()
