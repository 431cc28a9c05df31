"""Retry policy with exponential backoff for vendor HTTP requests."""

from typing import Awaitable, Callable

import httpx
import structlog
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

logger = structlog.get_logger(__name__)

# Connection resets, timeouts and non-2xx responses are all worth another try
RETRYABLE_ERRORS = (httpx.HTTPError,)


def build_retrying(
    max_attempts: int,
    base_delay: float,
    sleep: Callable[[float], Awaitable[None]],
) -> AsyncRetrying:
    """Build an AsyncRetrying loop for one request.

    The wait before attempt n+1 is base_delay * 2 ** (n - 1), so with the
    defaults (3 attempts, 1s base) a request waits 1s then 2s.

    Args:
        max_attempts: Total attempts including the first
        base_delay: Delay in seconds after the first failure
        sleep: Awaitable sleep used between attempts

    Returns:
        AsyncRetrying iterator; raises tenacity.RetryError when exhausted
    """
    return AsyncRetrying(
        stop=stop_after_attempt(max_attempts),
        wait=wait_exponential(multiplier=base_delay, exp_base=2, min=0),
        retry=retry_if_exception_type(RETRYABLE_ERRORS),
        sleep=sleep,
        before_sleep=_log_retry,
        reraise=False,
    )


def _log_retry(retry_state) -> None:
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    logger.warning(
        "request_retry_scheduled",
        attempt=retry_state.attempt_number,
        wait_seconds=retry_state.next_action.sleep if retry_state.next_action else None,
        error=str(exc),
    )
