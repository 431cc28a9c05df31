"""Scraper orchestration service.

This service connects the configured stores with the scraper layer. It
handles cache lookup, scraper selection, error wrapping and the per-store
sync status reported by the API.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional, Sequence

import structlog

from grocery_deals.core.exceptions import (
    ScrapeCancelledError,
    StoreNotFoundError,
    StoreScrapeError,
)
from grocery_deals.scrapers.base import ScrapedDeal, StoreConfig
from grocery_deals.scrapers.factory import ScraperFactory
from grocery_deals.scrapers.utils.cache import Cache
from grocery_deals.scrapers.utils.cancellation import CancellationToken

logger = structlog.get_logger(__name__)


class SyncState(str, Enum):
    """Outcome of the most recent sync of a store."""

    PENDING = "pending"
    ACTIVE = "active"
    ERROR = "error"


@dataclass
class StoreSyncStatus:
    """Last known sync result for one store."""

    store_id: int
    status: SyncState = SyncState.PENDING
    last_sync: Optional[datetime] = None
    error_message: Optional[str] = None
    deals_count: int = 0


class DealScraperService:
    """Service for scraping, caching and tracking deals per store.

    Deals are cached under "store_deals_<id>" for the cache's default TTL.
    A cache hit returns the cached list itself without any network activity.
    """

    CACHE_KEY_PREFIX = "store_deals_"

    def __init__(
        self,
        factory: ScraperFactory,
        store_configs: Sequence[StoreConfig],
        cache: Optional[Cache] = None,
    ):
        """Initialize scraper service.

        Args:
            factory: Scraper registry used to obtain scrapers
            store_configs: Static store table, in sync order
            cache: Deals cache (defaults to the factory's shared cache)
        """
        self.factory = factory
        self.cache = cache if cache is not None else factory.cache
        self._configs: Dict[int, StoreConfig] = {c.id: c for c in store_configs}
        self._statuses: Dict[int, StoreSyncStatus] = {
            c.id: StoreSyncStatus(store_id=c.id) for c in store_configs
        }
        self.logger = logger.bind(service="deal_scraper_service")

    @classmethod
    def cache_key(cls, store_id: int) -> str:
        return f"{cls.CACHE_KEY_PREFIX}{store_id}"

    # ------------------------------------------------------------------
    # Store table
    # ------------------------------------------------------------------

    def get_store_config(self, store_id: int) -> StoreConfig:
        """Look up a store.

        Raises:
            StoreNotFoundError: If no store has this id
        """
        config = self._configs.get(store_id)
        if config is None:
            raise StoreNotFoundError(store_id)
        return config

    def list_store_configs(self) -> List[StoreConfig]:
        return list(self._configs.values())

    def get_sync_status(self, store_id: int) -> StoreSyncStatus:
        """Get the sync status of a store.

        Raises:
            StoreNotFoundError: If no store has this id
        """
        self.get_store_config(store_id)
        return self._statuses[store_id]

    def list_sync_statuses(self) -> List[StoreSyncStatus]:
        return [self._statuses[store_id] for store_id in self._configs]

    # ------------------------------------------------------------------
    # Scraping
    # ------------------------------------------------------------------

    async def scrape_deals_for_store(
        self,
        store_id: int,
        refresh: bool = False,
        cancel: Optional[CancellationToken] = None,
        timeout: Optional[float] = None,
    ) -> List[ScrapedDeal]:
        """Return deals for one store, from cache when possible.

        Args:
            store_id: Store identifier
            refresh: Skip the cache lookup and scrape again
            cancel: Optional token that aborts the scrape
            timeout: Overall deadline in seconds, used when no token is given

        Returns:
            List of ScrapedDeal objects

        Raises:
            StoreNotFoundError: If no store has this id
            StoreScrapeError: If scraping failed (previously cached deals are kept)
            ScrapeCancelledError: If the scrape was cancelled or timed out
        """
        cache_key = self.cache_key(store_id)

        if not refresh:
            cached = self.cache.get(cache_key)
            if cached is not None:
                self.logger.debug("deals_cache_hit", store_id=store_id, count=len(cached))
                return cached

        config = self.get_store_config(store_id)
        if cancel is None and timeout is not None:
            cancel = CancellationToken(timeout=timeout)

        self.logger.info("store_scrape_started", store_id=store_id, store=config.name, refresh=refresh)

        try:
            scraper = self.factory.get_scraper(config)
            deals = await scraper.scrape_deals(cancel)
        except ScrapeCancelledError:
            self.logger.warning("store_scrape_cancelled", store_id=store_id, store=config.name)
            raise
        except Exception as e:
            self.logger.error(
                "store_scrape_failed",
                store_id=store_id,
                store=config.name,
                error=str(e),
                exc_info=True,
            )
            self._record_failure(store_id, str(e))
            raise StoreScrapeError(store_id, config.name, e) from e

        self.cache.set(cache_key, deals)
        self._record_success(store_id, len(deals))

        self.logger.info(
            "store_scrape_complete",
            store_id=store_id,
            store=config.name,
            count=len(deals),
        )
        return deals

    async def scrape_deals_for_all_stores(
        self,
        refresh: bool = False,
        cancel: Optional[CancellationToken] = None,
    ) -> Dict[int, List[ScrapedDeal]]:
        """Scrape every configured store sequentially.

        A failing store yields an empty list; cancellation stops the batch.

        Args:
            refresh: Skip the cache and scrape every store again
            cancel: Optional token that aborts the batch

        Returns:
            Mapping of store id to deals
        """
        results: Dict[int, List[ScrapedDeal]] = {}

        for config in self._configs.values():
            try:
                results[config.id] = await self.scrape_deals_for_store(
                    config.id, refresh=refresh, cancel=cancel
                )
            except StoreScrapeError as e:
                self.logger.error("store_sync_skipped", store_id=config.id, error=e.message)
                results[config.id] = []

        self.logger.info(
            "all_stores_scraped",
            stores=len(results),
            total_deals=sum(len(deals) for deals in results.values()),
        )
        return results

    async def test_store_connection(self, store_id: int) -> bool:
        """Scrape a store afresh and report whether any deals came back.

        Raises:
            StoreNotFoundError: If no store has this id
        """
        try:
            deals = await self.scrape_deals_for_store(store_id, refresh=True)
        except StoreScrapeError:
            return False

        if not deals:
            self._record_failure(store_id, "Failed to fetch deals")
            return False
        return True

    # ------------------------------------------------------------------
    # Cache / lifecycle
    # ------------------------------------------------------------------

    def invalidate_store(self, store_id: int) -> None:
        """Drop the cached deals of one store."""
        self.cache.delete(self.cache_key(store_id))

    def clear_cache(self) -> None:
        """Drop every cached entry (deals and resolved locations)."""
        self.cache.clear()
        self.logger.info("cache_cleared")

    def start(self) -> None:
        """Start background cache maintenance. Call inside the event loop."""
        self.cache.start()

    async def aclose(self) -> None:
        """Stop background tasks.

        This should be called on application shutdown.
        """
        await self.cache.close()

    def _record_success(self, store_id: int, deals_count: int) -> None:
        status = self._statuses[store_id]
        status.status = SyncState.ACTIVE
        status.last_sync = datetime.now(timezone.utc)
        status.error_message = None
        status.deals_count = deals_count

    def _record_failure(self, store_id: int, message: str) -> None:
        status = self._statuses[store_id]
        status.status = SyncState.ERROR
        status.error_message = message
