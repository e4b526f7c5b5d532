import os
from dataclasses import dataclass

from app.core.errors import ConfigError
from app.eligibility.tiers import (
    COMPENSATION_THRESHOLD_MINUTES,
    DEFAULT_COMPENSATION_TIERS,
    TierTable,
    tier_table_from_json,
)

DELAY_MONITOR_QUEUE_NAME = "delay-monitor"


@dataclass(frozen=True)
class MonitorConfig:
    queue_name: str

    poll_interval_seconds: float
    fetch_timeout_seconds: float
    failure_backoff_base: float
    failure_backoff_max: float
    shutdown_timeout_seconds: float

    max_booking_failures: int
    lookback_days: int
    max_workers: int

    compensation_threshold_minutes: int
    tiers: TierTable


def _float(name: str, default: str, *, minimum: float = 0.0) -> float:
    raw = os.getenv(name, default)
    try:
        value = float(raw)
    except ValueError:
        raise ConfigError(f"{name} must be a number, got {raw!r}")
    if value < minimum:
        raise ConfigError(f"{name} must be >= {minimum}, got {value}")
    return value


def _int(name: str, default: str, *, minimum: int = 0) -> int:
    raw = os.getenv(name, default)
    try:
        value = int(raw)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {raw!r}")
    if value < minimum:
        raise ConfigError(f"{name} must be >= {minimum}, got {value}")
    return value


def load_config() -> MonitorConfig:
    tiers_json = os.getenv("AUTOCLAIM_COMPENSATION_TIERS")
    tiers = tier_table_from_json(tiers_json) if tiers_json else DEFAULT_COMPENSATION_TIERS

    cfg = MonitorConfig(
        queue_name=os.getenv("AUTOCLAIM_QUEUE_NAME", DELAY_MONITOR_QUEUE_NAME),
        poll_interval_seconds=_float("AUTOCLAIM_POLL_INTERVAL_SECONDS", "300", minimum=1.0),
        fetch_timeout_seconds=_float("AUTOCLAIM_FETCH_TIMEOUT_SECONDS", "30", minimum=1.0),
        failure_backoff_base=_float("AUTOCLAIM_FAILURE_BACKOFF_BASE_SECONDS", "5"),
        failure_backoff_max=_float("AUTOCLAIM_FAILURE_BACKOFF_MAX_SECONDS", "300"),
        shutdown_timeout_seconds=_float("AUTOCLAIM_SHUTDOWN_TIMEOUT_SECONDS", "10"),
        max_booking_failures=_int("AUTOCLAIM_MAX_BOOKING_FAILURES", "5"),
        lookback_days=_int("AUTOCLAIM_LOOKBACK_DAYS", "1"),
        max_workers=_int("AUTOCLAIM_MAX_WORKERS", "1", minimum=1),
        compensation_threshold_minutes=_int(
            "AUTOCLAIM_COMPENSATION_THRESHOLD_MINUTES", str(COMPENSATION_THRESHOLD_MINUTES)
        ),
        tiers=tiers,
    )
    if cfg.failure_backoff_max < cfg.failure_backoff_base:
        raise ConfigError("AUTOCLAIM_FAILURE_BACKOFF_MAX_SECONDS must be >= the backoff base")
    return cfg
