"""Factory for creating and managing vendor scraper instances."""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, List, Optional, Sequence, Type

import httpx
import structlog

from grocery_deals.core.exceptions import UnsupportedStoreError
from grocery_deals.scrapers.base import BaseScraper, StoreConfig
from grocery_deals.scrapers.toolkit import ScraperToolkit, SleepFunc
from grocery_deals.scrapers.utils.cache import Cache
from grocery_deals.scrapers.utils.cancellation import sleep
from grocery_deals.scrapers.utils.proxy_manager import ProxyConfig, ProxyManager
from grocery_deals.scrapers.utils.rate_limiter import RateLimiter
from grocery_deals.scrapers.utils.user_agents import DEFAULT_USER_AGENT


logger = structlog.get_logger(__name__)


class Chain(str, Enum):
    """Supported retail chains. Each maps to one scraper strategy."""

    KROGER = "kroger"
    WALMART = "walmart"


@dataclass(frozen=True)
class ScraperLimits:
    """Toolkit parameters applied to every scraper the factory creates."""

    max_tokens: int = 10
    refill_rate: float = 2.0
    max_retries: int = 3
    retry_delay: float = 1.0
    timeout: float = 30.0
    page_size: int = 50
    max_pages: int = 5
    location_ttl: float = 86400.0
    proxy_rotation_interval: float = 300.0


def normalize_chain_name(name: str) -> str:
    """Lower-case a store name and collapse its whitespace."""
    return " ".join(name.lower().split())


class ScraperFactory:
    """Registry of scraper strategies and memoized scraper instances.

    Created once at application start-up and injected where needed. Each
    scraper gets its own toolkit (private rate limiter and proxy manager)
    sharing the factory's cache.
    """

    def __init__(
        self,
        cache: Cache,
        limits: Optional[ScraperLimits] = None,
        proxies: Optional[Sequence[ProxyConfig]] = None,
        user_agent: str = DEFAULT_USER_AGENT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep_func: SleepFunc = sleep,
    ):
        """Initialize the scraper factory.

        Args:
            cache: Cache shared by every scraper toolkit
            limits: Rate-limit, retry, timeout and paging parameters
            proxies: Proxy pool copied into each scraper's ProxyManager
            user_agent: User-Agent header for vendor requests
            transport: Optional httpx transport passed to every toolkit
            sleep_func: Awaitable sleep used for retry backoff
        """
        self.cache = cache
        self.limits = limits or ScraperLimits()
        self.proxies: List[ProxyConfig] = list(proxies or [])
        self.user_agent = user_agent
        self._transport = transport
        self._sleep = sleep_func

        self._registry: Dict[Chain, Type[BaseScraper]] = {}
        self._aliases: Dict[str, Chain] = {}
        self._scrapers: Dict[int, BaseScraper] = {}

        if self.proxies:
            logger.info("proxy_pool_configured", proxy_count=len(self.proxies))
        else:
            logger.info("proxy_pool_disabled", reason="no_proxies_configured")

    def register(
        self,
        chain: Chain,
        scraper_class: Type[BaseScraper],
        aliases: Iterable[str] = (),
    ) -> None:
        """Register a scraper class for a chain and its store-name aliases.

        Args:
            chain: Chain the scraper handles
            scraper_class: Scraper class (must inherit from BaseScraper)
            aliases: Store names that select this chain (e.g. "King Soopers")

        Raises:
            ValueError: If scraper_class is not a BaseScraper or an alias is
                already taken by another chain
        """
        if not (isinstance(scraper_class, type) and issubclass(scraper_class, BaseScraper)):
            raise ValueError(f"Scraper class must inherit from BaseScraper: {scraper_class}")

        chain = Chain(chain)
        names = {normalize_chain_name(chain.value)}
        names.update(normalize_chain_name(alias) for alias in aliases)

        for name in names:
            owner = self._aliases.get(name)
            if owner is not None and owner != chain:
                raise ValueError(f"Alias '{name}' is already registered for {owner.value}")

        self._registry[chain] = scraper_class
        for name in names:
            self._aliases[name] = chain

        logger.info(
            "scraper_registered",
            chain=chain.value,
            scraper_class=scraper_class.__name__,
            aliases=sorted(names),
        )

    def resolve_chain(self, store_name: str) -> Chain:
        """Map a store name to its chain.

        Raises:
            UnsupportedStoreError: If no registered alias matches exactly
        """
        chain = self._aliases.get(normalize_chain_name(store_name or ""))
        if chain is None or chain not in self._registry:
            raise UnsupportedStoreError(store_name)
        return chain

    def has_scraper(self, store_name: str) -> bool:
        """Check whether a store name resolves to a registered chain."""
        return normalize_chain_name(store_name or "") in self._aliases

    def get_registered_chains(self) -> List[str]:
        """Get registered chain identifiers."""
        return [chain.value for chain in self._registry]

    def build_toolkit(self, config: StoreConfig) -> ScraperToolkit:
        """Create a toolkit with its own rate limiter and proxy manager."""
        limits = self.limits
        return ScraperToolkit(
            name=config.name,
            base_url=config.base_url,
            store_id=config.id,
            rate_limiter=RateLimiter(limits.max_tokens, limits.refill_rate),
            cache=self.cache,
            proxy_manager=ProxyManager(self.proxies, limits.proxy_rotation_interval),
            max_retries=limits.max_retries,
            retry_delay=limits.retry_delay,
            timeout=limits.timeout,
            user_agent=self.user_agent,
            page_size=limits.page_size,
            max_pages=limits.max_pages,
            location_ttl=limits.location_ttl,
            transport=self._transport,
            sleep_func=self._sleep,
        )

    def get_scraper(self, config: StoreConfig) -> BaseScraper:
        """Return the scraper for a store, creating it on first use.

        Instances are memoized per store id so auth tokens and resolved
        locations survive between scrapes.

        Raises:
            UnsupportedStoreError: If the store name matches no registered chain
            ScraperConfigurationError: If the store lacks required credentials
        """
        scraper = self._scrapers.get(config.id)
        if scraper is not None:
            return scraper

        chain = self.resolve_chain(config.name)
        scraper_class = self._registry[chain]
        scraper = scraper_class(config, self.build_toolkit(config))
        self._scrapers[config.id] = scraper

        logger.info(
            "scraper_created",
            store_id=config.id,
            store=config.name,
            chain=chain.value,
        )
        return scraper

    def clear_scrapers(self) -> None:
        """Drop every memoized scraper instance."""
        count = len(self._scrapers)
        self._scrapers.clear()
        logger.info("scrapers_cleared", count=count)
