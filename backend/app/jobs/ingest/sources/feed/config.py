import os
from dataclasses import dataclass
from typing import Optional

from app.core.errors import ConfigError


@dataclass(frozen=True)
class FeedConfig:
    base_url: str
    path: str
    api_key: Optional[str]

    connect_timeout: float
    read_timeout: float
    write_timeout: float
    pool_timeout: float

    retries: int
    backoff_base: float


def _float(name: str, default: str) -> float:
    raw = os.getenv(name, default)
    try:
        return float(raw)
    except ValueError:
        raise ConfigError(f"{name} must be a number, got {raw!r}")


def _int(name: str, default: str) -> int:
    raw = os.getenv(name, default)
    try:
        return int(raw)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {raw!r}")


def load_config() -> FeedConfig:
    base_url = os.getenv("AUTOCLAIM_FEED_URL")
    if not base_url:
        raise ConfigError("AUTOCLAIM_FEED_URL not set in backend/.env")

    cfg = FeedConfig(
        base_url=base_url,
        path=os.getenv("AUTOCLAIM_FEED_PATH", "/trains"),
        api_key=os.getenv("AUTOCLAIM_FEED_API_KEY") or None,
        connect_timeout=_float("AUTOCLAIM_FEED_CONNECT_TIMEOUT_SECONDS", "10"),
        read_timeout=_float("AUTOCLAIM_FEED_READ_TIMEOUT_SECONDS", "30"),
        write_timeout=_float("AUTOCLAIM_FEED_WRITE_TIMEOUT_SECONDS", "30"),
        pool_timeout=_float("AUTOCLAIM_FEED_POOL_TIMEOUT_SECONDS", "30"),
        retries=_int("AUTOCLAIM_FEED_RETRIES", "3"),
        backoff_base=_float("AUTOCLAIM_FEED_BACKOFF_BASE_SECONDS", "1.0"),
    )
    if cfg.retries < 1:
        raise ConfigError("AUTOCLAIM_FEED_RETRIES must be >= 1")
    return cfg
