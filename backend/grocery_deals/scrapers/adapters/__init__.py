"""Vendor-specific scraper implementations.

Each module implements a class that inherits from BaseScraper and is
registered with the ScraperFactory in register_scrapers.py.
"""

from .kroger import KrogerScraper
from .walmart import WalmartScraper

__all__ = [
    "KrogerScraper",
    "WalmartScraper",
]
