import logging
import time
from typing import Callable, Optional

import httpx

from app.delay_monitor.types import TrainRecord
from app.jobs.ingest.sources.base import FeedSource

from .config import FeedConfig, load_config
from .http import configure_logging_if_needed, get_with_retry, make_client
from .parser import parse_feed

logger = logging.getLogger(__name__)


class HttpFeedSource(FeedSource):
    """
    Real-time train feed over HTTP/JSON:
      - GET {base_url}{path} with retry/backoff, bounded by the caller's timeout
      - rows -> TrainRecord (malformed rows skipped)
    """

    def __init__(
        self,
        cfg: Optional[FeedConfig] = None,
        *,
        transport: Optional[httpx.BaseTransport] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        configure_logging_if_needed()
        self.cfg = cfg or load_config()
        self._transport = transport
        self._sleep = sleep

        logger.info(
            "Feed configured base_url=%s path=%s timeouts(connect=%.1f read=%.1f) retries=%d backoff_base=%.2f",
            self.cfg.base_url,
            self.cfg.path,
            self.cfg.connect_timeout,
            self.cfg.read_timeout,
            self.cfg.retries,
            self.cfg.backoff_base,
        )

    def fetch_current_feed(self, timeout: float) -> list[TrainRecord]:
        deadline = time.monotonic() + timeout
        read_timeout = min(self.cfg.read_timeout, timeout)

        t0 = time.perf_counter()
        with make_client(self.cfg, read_timeout=read_timeout, transport=self._transport) as client:
            payload = get_with_retry(self.cfg, client, self.cfg.path, deadline=deadline, sleep=self._sleep)

        parsed = parse_feed(payload)
        logger.info(
            "Feed fetched in %.2fs rows=%d records=%d invalid_skipped=%d",
            time.perf_counter() - t0,
            parsed.rows_total,
            len(parsed.records),
            parsed.invalid_skipped,
        )
        return parsed.records
