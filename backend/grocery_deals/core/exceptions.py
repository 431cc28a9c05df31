"""Custom exception classes for the application."""

from typing import Optional


class DealScraperException(Exception):
    """Base exception for all grocery deal scraper errors."""

    def __init__(self, message: str = "An unexpected error occurred"):
        self.message = message
        super().__init__(self.message)


class NotFoundError(DealScraperException):
    """Raised when a requested resource is not found."""

    def __init__(self, resource: str, identifier: str):
        super().__init__(f"{resource} with identifier '{identifier}' not found")


class StoreNotFoundError(NotFoundError):
    """Raised when no StoreConfig exists for a store id."""

    def __init__(self, store_id: int):
        self.store_id = store_id
        super().__init__("Store configuration", str(store_id))


class UnsupportedStoreError(DealScraperException):
    """Raised when a chain name does not match any registered scraper."""

    def __init__(self, store_name: str):
        self.store_name = store_name
        super().__init__(f"Unsupported store: {store_name}")


class ScraperConfigurationError(DealScraperException):
    """Raised when a StoreConfig lacks what its vendor scraper needs."""

    def __init__(self, vendor: str, message: str):
        self.vendor = vendor
        super().__init__(f"{vendor} scraper misconfigured: {message}")


class ScraperError(DealScraperException):
    """Raised when a scraper encounters an error."""

    def __init__(self, vendor: str, message: str):
        self.vendor = vendor
        super().__init__(f"Scraper error for {vendor}: {message}")


class AuthenticationError(ScraperError):
    """Raised when a vendor rejects our credentials."""

    def __init__(self, vendor: str, message: str):
        super().__init__(vendor, f"authentication failed: {message}")


class LocationNotFoundError(ScraperError):
    """Raised when no vendor store is found near the configured zip code."""

    def __init__(self, vendor: str, zip_code: str):
        self.zip_code = zip_code
        super().__init__(vendor, f"no stores found near zip code {zip_code}")


class FetchError(ScraperError):
    """Raised when a request still fails after every retry attempt."""

    def __init__(
        self,
        vendor: str,
        url: str,
        attempts: int,
        last_error: Optional[BaseException] = None,
    ):
        self.url = url
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(
            vendor,
            f"failed to fetch {url} after {attempts} attempts: {last_error}",
        )


class ScrapeCancelledError(DealScraperException):
    """Raised when a scrape is cancelled or runs past its deadline."""

    def __init__(self, message: str = "Scrape was cancelled"):
        super().__init__(message)


class StoreScrapeError(DealScraperException):
    """Store-scoped failure surfaced by the orchestration service."""

    def __init__(self, store_id: int, store_name: str, cause: BaseException):
        self.store_id = store_id
        self.store_name = store_name
        self.cause = cause
        super().__init__(f"Failed to scrape deals for store {store_name}: {cause}")
