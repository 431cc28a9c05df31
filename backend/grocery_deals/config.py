"""Application configuration via Pydantic Settings."""

from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

from grocery_deals.scrapers.base import StoreConfig, StoreLocation


class Settings(BaseSettings):
    """Global application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # App
    ENVIRONMENT: str = "development"
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = False

    # Kroger API ("client_id:client_secret")
    KROGER_API_KEY: str = ""
    KROGER_STORE_ID: str = ""

    # Walmart API (bearer token)
    WALMART_API_KEY: str = ""
    WALMART_STORE_ID: str = ""

    # Location used to resolve the nearest store when no store id is set
    DEFAULT_ZIP_CODE: str = "80202"

    # Proxy
    PROXY_LIST: str = ""  # Comma-separated list of proxy URLs
    PROXY_ROTATION_SECONDS: float = 300.0

    # Scraper behaviour
    RATE_LIMIT_MAX_TOKENS: int = 10
    RATE_LIMIT_REFILL_RATE: float = 2.0  # tokens per second
    SCRAPER_MAX_RETRIES: int = 3
    SCRAPER_RETRY_DELAY: float = 1.0  # base delay in seconds, doubled per attempt
    SCRAPER_REQUEST_TIMEOUT: float = 30.0
    SCRAPER_MAX_PAGES: int = 5
    SCRAPER_PAGE_SIZE: int = 50
    SCRAPER_USER_AGENT: str = ""  # Empty = pick one from the desktop browser pool

    # Caching
    DEALS_CACHE_TTL: float = 3600.0  # 1 hour
    CACHE_SWEEP_INTERVAL: float = 300.0  # 5 minutes
    LOCATION_CACHE_TTL: float = 86400.0  # 24 hours

    # Frontend
    FRONTEND_URL: str = "http://localhost:5173"

    def get_proxy_list(self) -> List[str]:
        """Parse PROXY_LIST into a list of proxy URLs.

        Returns:
            List of proxy URL strings, empty if PROXY_LIST is not set
        """
        if not self.PROXY_LIST:
            return []
        return [p.strip() for p in self.PROXY_LIST.split(",") if p.strip()]

    def get_store_configs(self) -> List[StoreConfig]:
        """Build the static store configuration table.

        Returns:
            StoreConfig for every supported store, in sync order
        """
        return [
            StoreConfig(
                id=1,
                name="Kroger",
                base_url="https://www.kroger.com",
                login_required=False,
                api_key=self.KROGER_API_KEY or None,
                requires_location=True,
                default_location=StoreLocation(
                    zip_code=self.DEFAULT_ZIP_CODE,
                    store_id=_blank_to_none(self.KROGER_STORE_ID),
                ),
            ),
            StoreConfig(
                id=2,
                name="Walmart",
                base_url="https://www.walmart.com",
                login_required=False,
                api_key=self.WALMART_API_KEY or None,
                requires_location=True,
                default_location=StoreLocation(
                    zip_code=self.DEFAULT_ZIP_CODE,
                    store_id=_blank_to_none(self.WALMART_STORE_ID),
                ),
            ),
        ]


def _blank_to_none(value: str) -> Optional[str]:
    value = value.strip()
    return value or None


settings = Settings()
