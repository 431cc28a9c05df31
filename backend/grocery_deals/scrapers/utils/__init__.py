"""Scraper utilities for rate limiting, caching, proxy management, and data normalization."""

from .cancellation import CancellationToken
from .rate_limiter import RateLimiter
from .cache import Cache, CacheEntry
from .proxy_manager import ProxyManager, ProxyConfig
from .user_agents import (
    get_random_user_agent,
    get_browser_headers,
    BROWSER_HEADERS,
    DEFAULT_USER_AGENT,
    USER_AGENTS,
)
from .normalizer import (
    normalize_price,
    normalize_category,
    normalize_unit,
    sanitize_text,
    validate_image_url,
    parse_date,
    calculate_discount_percentage,
    determine_discount_type,
    extract_limit,
    normalize_url,
)
from .retry import build_retrying


__all__ = [
    # Cancellation
    "CancellationToken",
    # Rate limiting
    "RateLimiter",
    # Caching
    "Cache",
    "CacheEntry",
    # Proxy management
    "ProxyManager",
    "ProxyConfig",
    # User agents
    "get_random_user_agent",
    "get_browser_headers",
    "BROWSER_HEADERS",
    "DEFAULT_USER_AGENT",
    "USER_AGENTS",
    # Normalization
    "normalize_price",
    "normalize_category",
    "normalize_unit",
    "sanitize_text",
    "validate_image_url",
    "parse_date",
    "calculate_discount_percentage",
    "determine_discount_type",
    "extract_limit",
    "normalize_url",
    # Retry
    "build_retrying",
]
