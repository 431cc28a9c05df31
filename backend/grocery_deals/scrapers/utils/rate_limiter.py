"""Token bucket rate limiter for outbound scraper requests."""

import asyncio
import math
import time
from typing import Callable, Optional

import structlog

from .cancellation import CancellationToken, sleep

logger = structlog.get_logger(__name__)


class RateLimiter:
    """Token bucket algorithm implementation for rate limiting.

    The bucket starts full and refills lazily, in whole tokens, from the
    time elapsed since the last refill. Each request consumes one token.
    If no token is available the caller sleeps for one refill period and
    tries again, for as long as it takes.

    One instance belongs to one scraper; buckets are never shared.
    """

    def __init__(
        self,
        max_tokens: int = 10,
        refill_rate: float = 2.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize token bucket.

        Args:
            max_tokens: Maximum tokens in bucket (burst capacity)
            refill_rate: Tokens added per second
            clock: Monotonic time source in seconds
        """
        if max_tokens < 1:
            raise ValueError("max_tokens must be at least 1")
        if refill_rate <= 0:
            raise ValueError("refill_rate must be positive")

        self.max_tokens = max_tokens
        self.refill_rate = refill_rate
        self.tokens = max_tokens
        self._clock = clock
        self.last_refill = clock()
        self._lock = asyncio.Lock()

    @property
    def wait_interval(self) -> float:
        """Seconds to sleep before re-checking an empty bucket."""
        return math.ceil(1000 / self.refill_rate) / 1000

    def _refill(self) -> None:
        """Add the whole tokens earned since the last refill."""
        now = self._clock()
        elapsed = now - self.last_refill
        new_tokens = math.floor(elapsed * self.refill_rate)

        # Fractional progress is kept by not advancing last_refill
        if new_tokens > 0:
            self.tokens = min(self.max_tokens, self.tokens + new_tokens)
            self.last_refill = now

    def try_acquire(self) -> bool:
        """Consume a token if one is available without waiting.

        Returns:
            True if a token was consumed
        """
        self._refill()
        if self.tokens > 0:
            self.tokens -= 1
            return True
        return False

    async def wait_for_token(self, cancel: Optional[CancellationToken] = None) -> None:
        """Acquire one token, waiting until the bucket refills if necessary.

        Args:
            cancel: Optional token that aborts the wait

        Raises:
            ScrapeCancelledError: If cancelled while waiting
        """
        async with self._lock:
            while not self.try_acquire():
                logger.debug(
                    "rate_limit_wait",
                    wait_seconds=self.wait_interval,
                    refill_rate=self.refill_rate,
                )
                await sleep(self.wait_interval, cancel)
