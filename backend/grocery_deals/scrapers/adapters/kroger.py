"""Kroger family Products API adapter.

Fetches promotional products for one Kroger-family store (Kroger, King
Soopers, Ralphs, Fred Meyer, Smith's) using the public Kroger API.
Documentation: https://developer.kroger.com/reference/
"""

import asyncio
import re
import time
from typing import Any, Callable, Dict, List, Optional
from urllib.parse import urljoin

import httpx

from grocery_deals.core.exceptions import (
    AuthenticationError,
    FetchError,
    LocationNotFoundError,
    ScrapeCancelledError,
    ScraperConfigurationError,
    ScraperError,
)
from grocery_deals.scrapers.base import (
    BaseScraper,
    Category,
    ScrapedDeal,
    StoreConfig,
    Unit,
)
from grocery_deals.scrapers.toolkit import ScraperToolkit
from grocery_deals.scrapers.utils.cancellation import CancellationToken
from grocery_deals.scrapers.utils.normalizer import (
    determine_discount_type,
    extract_limit,
    normalize_price,
)


class KrogerScraper(BaseScraper):
    """Kroger Products API scraper.

    Uses the OAuth 2.0 client credentials flow. The store's api_key holds
    "client_id:client_secret". The access token and the resolved location
    id are cached on the instance; refreshing either is single-flight.
    """

    vendor = "Kroger"

    AUTH_URL = "https://api.kroger.com/v1/connect/oauth2/token"
    API_BASE_URL = "https://api.kroger.com/v1"
    TOKEN_SCOPE = "product.compact"

    # Refresh a little before the vendor-reported expiry
    TOKEN_EXPIRY_MARGIN = 60.0
    DEFAULT_TOKEN_LIFETIME = 1800.0

    CATEGORY_MAP = {
        "Produce": Category.PRODUCE,
        "Meat & Seafood": Category.MEAT,
        "Dairy": Category.DAIRY,
        "Bakery": Category.BAKERY,
        "Pantry": Category.PANTRY,
        "Frozen": Category.FROZEN,
        "Beverages": Category.BEVERAGES,
        "Snacks": Category.SNACKS,
        "Household Essentials": Category.HOUSEHOLD,
        "Personal Care": Category.PERSONAL_CARE,
        "Baby": Category.BABY,
        "Pet": Category.PETS,
    }

    UNIT_MAP = {
        "OZ": Unit.OZ,
        "FL": Unit.FL_OZ,
        "LB": Unit.LB,
        "EA": Unit.EACH,
        "CT": Unit.COUNT,
        "PKG": Unit.PACK,
        "PK": Unit.PACK,
        "GAL": Unit.GAL,
    }

    _SIZE_PATTERN = re.compile(r"([0-9.]+)\s*([A-Z]+)", re.IGNORECASE)

    def __init__(
        self,
        config: StoreConfig,
        toolkit: ScraperToolkit,
        clock: Callable[[], float] = time.monotonic,
    ):
        super().__init__(config, toolkit)

        if not config.api_key or ":" not in config.api_key:
            raise ScraperConfigurationError(
                config.name, "api_key must be 'client_id:client_secret'"
            )
        if not config.default_location or not config.default_location.zip_code:
            raise ScraperConfigurationError(config.name, "default location zip code is required")

        self.client_id, self.client_secret = config.api_key.split(":", 1)
        self.zip_code = config.default_location.zip_code
        self.location_id: Optional[str] = config.default_location.store_id or None

        self._clock = clock
        self._access_token: Optional[str] = None
        self._token_expires_at: Optional[float] = None
        self._auth_lock = asyncio.Lock()
        self._location_lock = asyncio.Lock()

    async def scrape_deals(
        self, cancel: Optional[CancellationToken] = None
    ) -> List[ScrapedDeal]:
        """Fetch and normalize current Kroger promotions.

        Returns:
            List of ScrapedDeal objects

        Raises:
            AuthenticationError: If the token request fails
            LocationNotFoundError: If no store is near the zip code
            FetchError: If a products page cannot be fetched
            ScrapeCancelledError: If cancelled
        """
        self.logger.info("kroger_scrape_started", zip_code=self.zip_code)

        try:
            await self._ensure_authenticated(cancel)
            location_id = await self._ensure_location(cancel)
            products = await self._fetch_promotions(location_id, cancel)
        except (ScraperError, ScrapeCancelledError):
            raise
        except (KeyError, TypeError, ValueError) as e:
            raise ScraperError(self.name, f"unexpected API response: {e}") from e

        deals = self.toolkit.process_deals(
            products, to_raw=lambda product: self._to_raw(product, location_id)
        )

        self.logger.info(
            "kroger_scrape_complete",
            location_id=location_id,
            products=len(products),
            deals=len(deals),
        )
        return deals

    # ------------------------------------------------------------------
    # Auth / location
    # ------------------------------------------------------------------

    def _token_valid(self) -> bool:
        return (
            self._access_token is not None
            and self._token_expires_at is not None
            and self._clock() < self._token_expires_at
        )

    async def _ensure_authenticated(self, cancel: Optional[CancellationToken] = None) -> str:
        """Return a valid access token, requesting a new one if needed."""
        if self._token_valid():
            return self._access_token

        async with self._auth_lock:
            # Another task may have refreshed while we waited
            if self._token_valid():
                return self._access_token

            self.logger.info("kroger_requesting_new_token")
            try:
                response = await self.toolkit.request(
                    "POST",
                    self.AUTH_URL,
                    data={"grant_type": "client_credentials", "scope": self.TOKEN_SCOPE},
                    headers={
                        "Content-Type": "application/x-www-form-urlencoded",
                        "Accept": "application/json",
                    },
                    auth=httpx.BasicAuth(self.client_id, self.client_secret),
                    max_attempts=1,
                    cancel=cancel,
                )
                token_data = response.json()
                token = token_data["access_token"]
                expires_in = float(token_data.get("expires_in") or self.DEFAULT_TOKEN_LIFETIME)
            except FetchError as e:
                raise AuthenticationError(self.name, str(e.last_error)) from e
            except (KeyError, TypeError, ValueError) as e:
                raise AuthenticationError(self.name, f"malformed token response: {e}") from e

            self._access_token = token
            self._token_expires_at = self._clock() + max(0.0, expires_in - self.TOKEN_EXPIRY_MARGIN)
            self.logger.info("kroger_token_acquired", expires_in=expires_in)
            return token

    def _auth_headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self._access_token}"}

    async def _ensure_location(self, cancel: Optional[CancellationToken] = None) -> str:
        """Return the store location id, searching by zip code once."""
        if self.location_id:
            return self.location_id

        async with self._location_lock:
            if self.location_id:
                return self.location_id

            chain = self.name.lower()
            cache_key = f"location_kroger_{chain}_{self.zip_code}"
            cached = self.toolkit.cache.get(cache_key)
            if cached:
                self.logger.debug("kroger_location_cache_hit", location_id=cached)
                self.location_id = cached
                return cached

            payload = await self.toolkit.fetch_json(
                f"{self.API_BASE_URL}/locations",
                params={
                    "filter.zipCode.near": self.zip_code,
                    "filter.limit": 1,
                    "filter.chain": chain,
                },
                headers=self._auth_headers(),
                cancel=cancel,
            )
            locations = _data_list(payload)
            if not locations:
                raise LocationNotFoundError(self.name, self.zip_code)

            self.location_id = str(locations[0]["locationId"])
            self.toolkit.cache.set(cache_key, self.location_id, ttl=self.toolkit.location_ttl)
            self.logger.info("kroger_location_resolved", location_id=self.location_id)
            return self.location_id

    # ------------------------------------------------------------------
    # Products
    # ------------------------------------------------------------------

    async def _fetch_promotions(
        self, location_id: str, cancel: Optional[CancellationToken] = None
    ) -> List[Dict[str, Any]]:
        """Page through the products endpoint until a short page or the page cap."""
        page_size = self.toolkit.page_size
        products: List[Dict[str, Any]] = []

        for page in range(self.toolkit.max_pages):
            await self._ensure_authenticated(cancel)
            payload = await self.toolkit.fetch_json(
                f"{self.API_BASE_URL}/products",
                params={
                    "filter.locationId": location_id,
                    "filter.limit": page_size,
                    "filter.start": page * page_size,
                    "filter.promotion": "true",
                },
                headers=self._auth_headers(),
                cancel=cancel,
            )
            batch = _data_list(payload)
            products.extend(batch)
            self.logger.debug("kroger_page_fetched", page=page, count=len(batch))

            if len(batch) < page_size:
                break

        return products

    def _to_raw(self, product: Dict[str, Any], location_id: str) -> Dict[str, Any]:
        """Map one Kroger product onto the raw deal shape."""
        items = product.get("items") or [{}]
        item = items[0] if isinstance(items[0], dict) else {}
        price = item.get("price") or {}

        regular = normalize_price(price.get("regular"))
        promo = normalize_price(price.get("promo"))
        # The API reports promo 0 for products that are not on promotion
        if not promo:
            raise ValueError(f"product {product.get('productId')} is not on promotion")
        sale_price, original_price = promo, regular

        description = item.get("promotionDescription")
        restrictions = item.get("promotionRestrictions")
        expiration = price.get("expirationDate") or {}
        valid_until = (
            expiration.get("value") if isinstance(expiration, dict) else expiration
        ) or (product.get("promotion") or {}).get("endDate")

        categories = product.get("categories") or []
        page_uri = product.get("productPageURI")

        return {
            "title": product.get("description"),
            "sale_price": sale_price,
            "original_price": original_price,
            "image_url": self._front_image(product.get("images") or []),
            "category": self._map_category(categories[0] if categories else None),
            "unit": self._extract_unit(item.get("size")),
            "valid_until": valid_until,
            "store_id": self.config.id,
            "external_id": product.get("productId"),
            "url": urljoin(self.config.base_url, page_uri) if page_uri else None,
            "description": description,
            "restrictions": restrictions,
            "discount_type": determine_discount_type(description),
            "quantity": 1,
            "limit": extract_limit(restrictions),
            "metadata": {
                "location_id": location_id,
                "brand": product.get("brand"),
                "upc": product.get("upc"),
            },
        }

    @staticmethod
    def _front_image(images: List[Dict[str, Any]]) -> Optional[str]:
        for image in images:
            if image.get("perspective") != "front":
                continue
            for size in image.get("sizes") or []:
                if size.get("size") == "medium":
                    return size.get("url")
        return None

    def _map_category(self, category: Optional[str]) -> Optional[Category]:
        if not category:
            return None
        return self.CATEGORY_MAP.get(category, Category.OTHER)

    def _extract_unit(self, size: Optional[str]) -> Optional[Unit]:
        """Parse the unit out of a size string such as "16 oz" or "1 LB"."""
        if not size:
            return None
        match = self._SIZE_PATTERN.search(size)
        if not match:
            return None
        return self.UNIT_MAP.get(match.group(2).upper())


def _data_list(payload: Any) -> List[Dict[str, Any]]:
    if not isinstance(payload, dict):
        raise ValueError("response body is not a JSON object")
    return payload.get("data") or []
