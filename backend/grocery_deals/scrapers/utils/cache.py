"""In-process TTL cache for scrape results.

Entries expire lazily on read; a background asyncio task additionally
sweeps expired entries on an interval so keys that are written but never
read again do not accumulate.
"""

import asyncio
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

import structlog

logger = structlog.get_logger(__name__)


@dataclass
class CacheEntry:
    """Cached value with an absolute expiry (clock seconds)."""

    value: Any
    expires_at: float

    def is_expired(self, now: float) -> bool:
        return self.expires_at < now


class Cache:
    """Key/value cache with per-entry TTL.

    Keys are caller-defined strings (e.g. "store_deals_1"); the last write
    wins. get() returns None for missing or expired keys.
    """

    def __init__(
        self,
        default_ttl: float = 3600.0,
        sweep_interval: Optional[float] = 300.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize cache.

        Args:
            default_ttl: TTL in seconds used when set() gets none (default 1 hour)
            sweep_interval: Seconds between background sweeps (None disables)
            clock: Monotonic time source in seconds
        """
        self.default_ttl = default_ttl
        self.sweep_interval = sweep_interval
        self._clock = clock
        self._store: Dict[str, CacheEntry] = {}
        self._sweeper: Optional[asyncio.Task] = None
        self.logger = logger.bind(component="cache")

    def __len__(self) -> int:
        return len(self._store)

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None

    def get(self, key: str) -> Optional[Any]:
        """Get a value from cache.

        Args:
            key: Cache key

        Returns:
            Cached value, or None if not found or expired
        """
        entry = self._store.get(key)
        if entry is None:
            self.logger.debug("cache_miss", key=key)
            return None

        if entry.is_expired(self._clock()):
            del self._store[key]
            self.logger.debug("cache_expired", key=key)
            return None

        self.logger.debug("cache_hit", key=key)
        return entry.value

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        """Set a value in cache with TTL.

        Args:
            key: Cache key
            value: Value to cache
            ttl: Time-to-live in seconds (default: default_ttl)
        """
        ttl = self.default_ttl if ttl is None else ttl
        self._store[key] = CacheEntry(value=value, expires_at=self._clock() + ttl)
        self.logger.debug("cache_set", key=key, ttl=ttl)
        self._ensure_sweeper()

    def delete(self, key: str) -> None:
        """Delete a key from cache (no-op when absent)."""
        self._store.pop(key, None)

    def clear(self) -> None:
        """Remove every entry."""
        self._store.clear()

    def sweep(self) -> int:
        """Remove all expired entries.

        Returns:
            Number of entries removed
        """
        now = self._clock()
        expired = [key for key, entry in self._store.items() if entry.is_expired(now)]
        for key in expired:
            del self._store[key]
        if expired:
            self.logger.debug("cache_swept", removed=len(expired), remaining=len(self._store))
        return len(expired)

    def start(self) -> None:
        """Start the background sweep task in the running event loop."""
        if self.sweep_interval is None:
            return
        if self._sweeper is not None and not self._sweeper.done():
            return
        self._sweeper = asyncio.get_running_loop().create_task(self._sweep_loop())
        self.logger.debug("cache_sweeper_started", interval=self.sweep_interval)

    async def close(self) -> None:
        """Stop the background sweep task.

        This should be called on application shutdown.
        """
        if self._sweeper is None:
            return
        self._sweeper.cancel()
        try:
            await self._sweeper
        except asyncio.CancelledError:
            pass
        self._sweeper = None

    def _ensure_sweeper(self) -> None:
        # Caches built outside an event loop start sweeping on first use inside one
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            return
        self.start()

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self.sweep_interval)
            self.sweep()
