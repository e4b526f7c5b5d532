import logging
import random
import time
from typing import Callable, Optional

import httpx

from app.core.errors import PollError

from .config import FeedConfig

logger = logging.getLogger(__name__)

RETRY_STATUSES = {429, 502, 503, 504, 520, 522, 524}


def mask_api_key(value: Optional[str]) -> Optional[str]:
    if not value:
        return value
    if len(value) <= 6:
        return "****"
    return f"****{value[-4:]}"


def configure_logging_if_needed() -> None:
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(
            level="INFO",
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )


def log_request(request: httpx.Request) -> None:
    logger.debug("HTTP %s %s", request.method, request.url)
    logger.debug("HTTP X-Api-Key: %s", mask_api_key(request.headers.get("x-api-key")))


def make_client(
    cfg: FeedConfig,
    *,
    read_timeout: float,
    transport: Optional[httpx.BaseTransport] = None,
) -> httpx.Client:
    headers = {"Accept": "application/json"}
    if cfg.api_key:
        headers["X-Api-Key"] = cfg.api_key
    timeout = httpx.Timeout(
        connect=cfg.connect_timeout,
        read=read_timeout,
        write=cfg.write_timeout,
        pool=cfg.pool_timeout,
    )
    return httpx.Client(
        base_url=cfg.base_url,
        timeout=timeout,
        headers=headers,
        transport=transport,
        event_hooks={"request": [log_request]},
    )


def backoff_seconds(cfg: FeedConfig, attempt: int) -> float:
    return cfg.backoff_base * (2 ** (attempt - 1)) + random.uniform(0, 0.5)


def describe_failure(e: Exception, client: httpx.Client) -> str:
    if isinstance(e, httpx.TimeoutException):
        return (
            f"{e.__class__.__name__} (timeouts: connect={float(client.timeout.connect):.1f}s "
            f"read={float(client.timeout.read):.1f}s)"
        )
    if isinstance(e, httpx.HTTPStatusError):
        return f"HTTP {e.response.status_code} body_snippet={(e.response.text or '')[:300]!r}"
    return repr(e)


def get_once(client: httpx.Client, path: str) -> dict:
    """
    One GET. Retryable statuses raise httpx.HTTPStatusError for the caller's
    retry loop; other error statuses and undecodable bodies raise a
    non-retryable PollError straight away.
    """
    t0 = time.perf_counter()
    r = client.get(path)
    elapsed = time.perf_counter() - t0

    if r.status_code in RETRY_STATUSES:
        raise httpx.HTTPStatusError(f"Retryable status {r.status_code}", request=r.request, response=r)
    if r.is_error:
        logger.error(
            "Non-retryable HTTP %d GET %s after %.2fs body_snippet=%r",
            r.status_code,
            path,
            elapsed,
            (r.text or "")[:300],
        )
        raise PollError(f"Feed fetch failed: HTTP {r.status_code}", status_code=r.status_code, retryable=False)

    if elapsed > 10:
        logger.info("GET %s completed in %.2fs status=%d (slow)", path, elapsed, r.status_code)
    else:
        logger.debug("GET %s completed in %.2fs status=%d", path, elapsed, r.status_code)

    try:
        return r.json()
    except ValueError as e:
        raise PollError(f"Feed returned invalid JSON: {e}", retryable=False) from e


def get_with_retry(
    cfg: FeedConfig,
    client: httpx.Client,
    path: str,
    *,
    deadline: float,
    sleep: Callable[[float], None] = time.sleep,
) -> dict:
    """
    GET `path` and return the decoded JSON body.

    Timeouts, transport errors and RETRY_STATUSES are retried up to
    cfg.retries attempts with exponential backoff plus jitter, never sleeping
    past `deadline` (a time.monotonic() value). Every failure surfaces as
    PollError.
    """
    last_err: Optional[httpx.HTTPError] = None
    attempts = 0

    while attempts < cfg.retries:
        attempts += 1
        t0 = time.perf_counter()
        try:
            return get_once(client, path)
        except httpx.HTTPError as e:
            last_err = e
            logger.warning(
                "GET %s failed (attempt %d/%d) after %.2fs: %s",
                path,
                attempts,
                cfg.retries,
                time.perf_counter() - t0,
                describe_failure(e, client),
            )

        if attempts == cfg.retries:
            break
        sleep_s = backoff_seconds(cfg, attempts)
        if time.monotonic() + sleep_s >= deadline:
            logger.warning("Not retrying GET %s: next attempt would pass the fetch deadline", path)
            break
        logger.info("Sleeping %.2fs before retrying %s", sleep_s, path)
        sleep(sleep_s)

    status = None
    if isinstance(last_err, httpx.HTTPStatusError):
        status = last_err.response.status_code
    raise PollError(f"Feed fetch failed after {attempts} attempt(s): {last_err!r}", status_code=status) from last_err
