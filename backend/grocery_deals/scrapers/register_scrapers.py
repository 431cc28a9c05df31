"""Build the scraper factory and register every vendor scraper.

Called once during application startup (and by the manual runner script).
"""

from typing import List, Optional

import httpx
import structlog

from grocery_deals.config import Settings, settings as default_settings
from grocery_deals.scrapers.adapters import KrogerScraper, WalmartScraper
from grocery_deals.scrapers.factory import Chain, ScraperFactory, ScraperLimits
from grocery_deals.scrapers.utils.cache import Cache
from grocery_deals.scrapers.utils.proxy_manager import ProxyConfig
from grocery_deals.scrapers.utils.user_agents import get_random_user_agent

logger = structlog.get_logger(__name__)


SCRAPERS = [
    (Chain.KROGER, KrogerScraper, ("Kroger", "King Soopers", "Ralphs", "Fred Meyer", "Smiths")),
    (Chain.WALMART, WalmartScraper, ("Walmart", "Walmart Supercenter")),
]


def limits_from_settings(settings: Settings) -> ScraperLimits:
    """Translate settings into toolkit parameters."""
    return ScraperLimits(
        max_tokens=settings.RATE_LIMIT_MAX_TOKENS,
        refill_rate=settings.RATE_LIMIT_REFILL_RATE,
        max_retries=settings.SCRAPER_MAX_RETRIES,
        retry_delay=settings.SCRAPER_RETRY_DELAY,
        timeout=settings.SCRAPER_REQUEST_TIMEOUT,
        page_size=settings.SCRAPER_PAGE_SIZE,
        max_pages=settings.SCRAPER_MAX_PAGES,
        location_ttl=settings.LOCATION_CACHE_TTL,
        proxy_rotation_interval=settings.PROXY_ROTATION_SECONDS,
    )


def proxies_from_settings(settings: Settings) -> List[ProxyConfig]:
    """Parse PROXY_LIST, skipping (and logging) malformed entries."""
    proxies: List[ProxyConfig] = []
    for url in settings.get_proxy_list():
        try:
            proxies.append(ProxyConfig.from_url(url))
        except ValueError as e:
            logger.error("proxy_config_invalid", error=str(e))
    return proxies


def build_scraper_factory(
    settings: Optional[Settings] = None,
    cache: Optional[Cache] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> ScraperFactory:
    """Create a ScraperFactory with every available scraper registered.

    Args:
        settings: Application settings (defaults to the module-level settings)
        cache: Shared cache (a new one is created from settings if omitted)
        transport: Optional httpx transport for every scraper

    Returns:
        Configured ScraperFactory
    """
    settings = settings or default_settings
    if cache is None:
        cache = Cache(
            default_ttl=settings.DEALS_CACHE_TTL,
            sweep_interval=settings.CACHE_SWEEP_INTERVAL,
        )

    factory = ScraperFactory(
        cache=cache,
        limits=limits_from_settings(settings),
        proxies=proxies_from_settings(settings),
        user_agent=settings.SCRAPER_USER_AGENT or get_random_user_agent(),
        transport=transport,
    )

    for chain, scraper_class, aliases in SCRAPERS:
        factory.register(chain, scraper_class, aliases)

    logger.info(
        "all_scrapers_registered",
        count=len(factory.get_registered_chains()),
        chains=factory.get_registered_chains(),
    )
    return factory
