"""Scraper system for fetching grocery deals from retail chains.

This package provides:
- Base scraper contract and canonical deal data structures
- A shared toolkit for rate-limited, proxied, retrying fetches
- Utility modules for rate limiting, caching, proxy management, and data normalization
- Factory for creating and managing scraper instances
- Orchestration service with caching and sync status
"""

from .base import (
    BaseScraper,
    Category,
    DiscountType,
    ScrapedDeal,
    StoreConfig,
    StoreLocation,
    Unit,
)
from .toolkit import ScraperToolkit
from .factory import Chain, ScraperFactory, ScraperLimits
from .scraper_service import DealScraperService, StoreSyncStatus, SyncState

__all__ = [
    # Base classes
    "BaseScraper",
    "ScraperToolkit",
    # Data structures
    "Category",
    "DiscountType",
    "ScrapedDeal",
    "StoreConfig",
    "StoreLocation",
    "Unit",
    # Factory
    "Chain",
    "ScraperFactory",
    "ScraperLimits",
    # Service
    "DealScraperService",
    "StoreSyncStatus",
    "SyncState",
]
