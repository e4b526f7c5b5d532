import argparse
import logging
import signal
import threading
import uuid

from app.core.db import SessionLocal
from app.delay_monitor.service import DelayMonitorService
from app.jobs.delay_monitor.config import MonitorConfig, load_config
from app.jobs.delay_monitor.scheduler import DelayMonitorScheduler
from app.jobs.ingest.sources.feed.http import configure_logging_if_needed
from app.jobs.ingest.sources.feed.source import HttpFeedSource
from app.jobs.ingest.utils.time import utc_now
from app.models.job_runs import JobRun
from app.repositories.bookings import SqlBookingRepository

logger = logging.getLogger(__name__)

JOB_NAME = "delay_monitor"


def build_scheduler(cfg: MonitorConfig, source=None, repository=None, clock=utc_now) -> DelayMonitorScheduler:
    source = source or HttpFeedSource()
    repository = repository or SqlBookingRepository(SessionLocal, lookback_days=cfg.lookback_days)
    service = DelayMonitorService(
        tiers=cfg.tiers,
        compensation_threshold_minutes=cfg.compensation_threshold_minutes,
        max_workers=cfg.max_workers,
    )
    return DelayMonitorScheduler(
        service.process,
        fetch_feed=source.fetch_current_feed,
        list_pending_bookings=repository.list_pending_bookings,
        sink=repository,
        poll_interval_seconds=cfg.poll_interval_seconds,
        fetch_timeout_seconds=cfg.fetch_timeout_seconds,
        failure_backoff_base=cfg.failure_backoff_base,
        failure_backoff_max=cfg.failure_backoff_max,
        max_booking_failures=cfg.max_booking_failures,
        clock=clock,
        queue_name=cfg.queue_name,
    )


def run_once(scheduler: DelayMonitorScheduler, args: argparse.Namespace) -> dict:
    db = SessionLocal()
    run_id = uuid.uuid4()

    job = JobRun(
        run_id=run_id,
        job_name=JOB_NAME,
        queue_name=scheduler.queue_name,
        status="running",
        meta={"args": vars(args)},
    )
    db.add(job)
    db.commit()

    try:
        report = scheduler.run_cycle("manual")
        summary = report.summary() if report else {"status": "skipped"}

        job = db.get(JobRun, run_id)
        job.status = "success" if report is not None and report.ok else "fail"
        job.error = report.error if report is not None else None
        job.ended_at = utc_now()
        job.meta = {**(job.meta or {}), **summary}
        db.commit()
        return summary

    except Exception as e:
        db.rollback()
        job = db.get(JobRun, run_id)
        job.status = "fail"
        job.ended_at = utc_now()
        job.error = repr(e)
        db.commit()
        raise

    finally:
        db.close()


def run_forever(scheduler: DelayMonitorScheduler, shutdown_timeout: float) -> None:
    stop_requested = threading.Event()

    def handle_signal(signum, frame):
        logger.info("Received signal %s, shutting down", signal.Signals(signum).name)
        stop_requested.set()

    signal.signal(signal.SIGINT, handle_signal)
    signal.signal(signal.SIGTERM, handle_signal)

    scheduler.start()
    while not stop_requested.wait(1.0):
        if not scheduler.is_running:
            logger.error("Delay monitor loop exited unexpectedly")
            break

    if not scheduler.stop(timeout=shutdown_timeout):
        scheduler.stop(timeout=shutdown_timeout, abandon=True)


def main(argv=None):
    p = argparse.ArgumentParser(description="Monitor booked journeys against the real-time feed and record final delays")
    p.add_argument("--once", action="store_true", help="Run a single cycle, record a job_runs row and exit")
    p.add_argument("--poll-interval", type=float, help="Override AUTOCLAIM_POLL_INTERVAL_SECONDS (>= 1)")
    p.add_argument("--log-level", default="INFO")
    args = p.parse_args(argv)
    if args.poll_interval is not None and args.poll_interval < 1:
        p.error(f"--poll-interval must be >= 1, got {args.poll_interval}")

    configure_logging_if_needed()
    logging.getLogger().setLevel(args.log_level.upper())

    cfg = load_config()
    scheduler = build_scheduler(cfg)
    if args.poll_interval is not None:
        scheduler.poll_interval_seconds = args.poll_interval

    if args.once:
        print(run_once(scheduler, args))
    else:
        run_forever(scheduler, cfg.shutdown_timeout_seconds)


if __name__ == "__main__":
    main()
