"""Retry policies for the HTTP fetcher and paginated API requests."""

import logging

import structlog
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    retry_if_result,
    stop_after_attempt,
    wait_exponential,
    wait_incrementing,
)

from dealmonitor.core.exceptions import RetryableFetchError

logger = structlog.get_logger(__name__)


def fetch_retrying(
    max_retries: int,
    backoff_base_ms: int,
    backoff_max_ms: int,
    sleep=None,
) -> AsyncRetrying:
    """Retry controller for a single fetch.

    Total attempts are ``max_retries + 1``. The delay after attempt ``i``
    (0-indexed) is ``min(base * 2**i, max)``. Only RetryableFetchError is
    retried; the final error is re-raised.
    """
    kwargs = {}
    if sleep is not None:
        kwargs["sleep"] = sleep
    return AsyncRetrying(
        stop=stop_after_attempt(max_retries + 1),
        wait=wait_exponential(
            multiplier=backoff_base_ms / 1000.0,
            exp_base=2,
            min=0,
            max=backoff_max_ms / 1000.0,
        ),
        retry=retry_if_exception_type(RetryableFetchError),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
        **kwargs,
    )


def page_retrying(attempts: int = 3, backoff_seconds: float = 1.0, sleep=None) -> AsyncRetrying:
    """Retry controller for one API page: linear backoff, None means failure.

    Waits ``attempt * backoff_seconds`` between attempts and returns the
    last (None) result instead of raising once attempts are exhausted.
    """
    kwargs = {}
    if sleep is not None:
        kwargs["sleep"] = sleep
    return AsyncRetrying(
        stop=stop_after_attempt(attempts),
        wait=wait_incrementing(start=backoff_seconds, increment=backoff_seconds),
        retry=retry_if_result(lambda result: result is None),
        retry_error_callback=lambda retry_state: None,
        **kwargs,
    )
