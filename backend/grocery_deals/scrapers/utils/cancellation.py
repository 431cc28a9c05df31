"""Cooperative cancellation for long-running scrapes."""

import asyncio
import time
from typing import Optional

from grocery_deals.core.exceptions import ScrapeCancelledError


class CancellationToken:
    """Cancellation signal with an optional deadline.

    Threaded through the rate limiter wait loop and the fetch retry loop so
    a caller can abort a scrape, or bound it by an overall timeout, without
    waiting for every retry to run its course.
    """

    def __init__(self, timeout: Optional[float] = None):
        """Initialize token.

        Args:
            timeout: Seconds from now after which the token counts as
                cancelled (None = no deadline)
        """
        self._event = asyncio.Event()
        self.deadline: Optional[float] = (
            time.monotonic() + timeout if timeout is not None else None
        )

    def cancel(self) -> None:
        """Signal cancellation to every waiter."""
        self._event.set()

    @property
    def cancelled(self) -> bool:
        """True once cancel() was called or the deadline passed."""
        if self._event.is_set():
            return True
        return self.deadline is not None and time.monotonic() >= self.deadline

    def remaining(self) -> Optional[float]:
        """Seconds left before the deadline, or None without one."""
        if self.deadline is None:
            return None
        return max(0.0, self.deadline - time.monotonic())

    def raise_if_cancelled(self) -> None:
        """Raise ScrapeCancelledError when the token is cancelled."""
        if self._event.is_set():
            raise ScrapeCancelledError()
        if self.cancelled:
            raise ScrapeCancelledError("Scrape deadline exceeded")

    async def sleep(self, seconds: float) -> None:
        """Sleep for up to `seconds`, waking early on cancellation.

        Raises:
            ScrapeCancelledError: If cancelled before or during the sleep
        """
        self.raise_if_cancelled()
        remaining = self.remaining()
        wait = seconds if remaining is None else min(seconds, remaining)
        try:
            await asyncio.wait_for(self._event.wait(), timeout=wait)
        except asyncio.TimeoutError:
            pass
        self.raise_if_cancelled()


async def sleep(seconds: float, cancel: Optional[CancellationToken] = None) -> None:
    """Sleep that honours an optional cancellation token."""
    if cancel is None:
        await asyncio.sleep(seconds)
    else:
        await cancel.sleep(seconds)
