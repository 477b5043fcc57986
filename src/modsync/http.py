"""
Shared HTTP plumbing for registry and loader-meta requests.

Builds httpx clients from SyncConfig and the tenacity retry policy used
for idempotent GETs.
"""

import logging

import httpx
from tenacity import (
    Retrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from modsync.config import SyncConfig

logger = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES = (429, 502, 503, 504)


def build_client(config: SyncConfig) -> httpx.Client:
    """Create an httpx client with the configured timeout and user agent."""
    return httpx.Client(
        timeout=config.timeout_seconds,
        headers={"User-Agent": config.user_agent},
        follow_redirects=True,
    )


def is_retryable(error: BaseException) -> bool:
    """
    Decide whether a failed request is worth repeating.

    Retries on:
    - connection errors and timeouts
    - 429 (rate limit)
    - 502, 503, 504 (server errors)
    """
    if isinstance(error, httpx.HTTPStatusError):
        return error.response.status_code in RETRYABLE_STATUS_CODES
    return isinstance(error, httpx.TransportError)


def _log_retry(retry_state) -> None:
    error = retry_state.outcome.exception() if retry_state.outcome else None
    logger.debug(f"Retrying request (attempt {retry_state.attempt_number}) after: {error}")


def retry_policy(config: SyncConfig) -> Retrying:
    """Return a tenacity Retrying object for one request."""
    return Retrying(
        stop=stop_after_attempt(config.max_retries),
        wait=wait_exponential(multiplier=config.retry_backoff_seconds, min=0, max=30),
        retry=retry_if_exception(is_retryable),
        before_sleep=_log_retry,
        reraise=True,
    )
