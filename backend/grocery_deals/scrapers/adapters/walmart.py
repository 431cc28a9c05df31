"""Walmart deals API adapter.

Fetches store-level deals from the Walmart developer API proxy using a
single bearer token sent as WM_SEC.ACCESS_TOKEN.
"""

import asyncio
import re
import uuid
from typing import Any, Dict, List, Optional

from grocery_deals.core.exceptions import (
    LocationNotFoundError,
    ScrapeCancelledError,
    ScraperConfigurationError,
    ScraperError,
)
from grocery_deals.scrapers.base import (
    BaseScraper,
    Category,
    DiscountType,
    ScrapedDeal,
    StoreConfig,
    Unit,
)
from grocery_deals.scrapers.toolkit import ScraperToolkit
from grocery_deals.scrapers.utils.cancellation import CancellationToken
from grocery_deals.scrapers.utils.normalizer import determine_discount_type, extract_limit


class WalmartScraper(BaseScraper):
    """Walmart store deals scraper."""

    vendor = "Walmart"

    API_BASE_URL = "https://developer.api.walmart.com/api-proxy/service"

    CATEGORY_MAP = {
        "Fresh Produce": Category.PRODUCE,
        "Meat & Seafood": Category.MEAT,
        "Dairy & Eggs": Category.DAIRY,
        "Bakery & Bread": Category.BAKERY,
        "Pantry": Category.PANTRY,
        "Frozen Foods": Category.FROZEN,
        "Beverages": Category.BEVERAGES,
        "Snacks": Category.SNACKS,
        "Household Essentials": Category.HOUSEHOLD,
        "Personal Care": Category.PERSONAL_CARE,
        "Baby": Category.BABY,
        "Pets": Category.PETS,
    }

    UNIT_TYPES = {
        "EACH": Unit.EACH,
        "POUND": Unit.LB,
        "OUNCE": Unit.OZ,
        "COUNT": Unit.COUNT,
        "PACKAGE": Unit.PACK,
    }

    # Units embedded in product names, e.g. "Cheerios Cereal, 18 oz"
    TITLE_UNITS = {
        "oz": Unit.OZ,
        "lb": Unit.LB,
        "ct": Unit.COUNT,
        "pk": Unit.PACK,
        "ea": Unit.EACH,
    }

    OFFER_TYPES = {
        "BOGO": DiscountType.BOGO,
        "REWARDS": DiscountType.POINTS,
        "COUPON": DiscountType.COUPON,
    }

    _TITLE_UNIT_PATTERN = re.compile(r"(\d+)\s*(oz|lb|ct|pk|ea)\b", re.IGNORECASE)

    def __init__(self, config: StoreConfig, toolkit: ScraperToolkit):
        super().__init__(config, toolkit)

        if not config.api_key:
            raise ScraperConfigurationError(config.name, "api_key is required")
        if not config.default_location or not config.default_location.zip_code:
            raise ScraperConfigurationError(config.name, "default location zip code is required")

        self.api_key = config.api_key
        self.zip_code = config.default_location.zip_code
        self.store_id: Optional[str] = config.default_location.store_id or None
        self._location_lock = asyncio.Lock()

    async def scrape_deals(
        self, cancel: Optional[CancellationToken] = None
    ) -> List[ScrapedDeal]:
        """Fetch and normalize current Walmart deals for the nearest store."""
        self.logger.info("walmart_scrape_started", zip_code=self.zip_code)

        try:
            store_id = await self._ensure_store(cancel)
            items = await self._fetch_deals(store_id, cancel)
        except (ScraperError, ScrapeCancelledError):
            raise
        except (KeyError, TypeError, ValueError) as e:
            raise ScraperError(self.name, f"unexpected API response: {e}") from e

        deals = self.toolkit.process_deals(
            items, to_raw=lambda item: self._to_raw(item, store_id)
        )

        self.logger.info(
            "walmart_scrape_complete",
            walmart_store_id=store_id,
            items=len(items),
            deals=len(deals),
        )
        return deals

    def _headers(self) -> Dict[str, str]:
        # Walmart expects a unique correlation id on every call
        return {
            "WM_SEC.ACCESS_TOKEN": self.api_key,
            "WM_QOS.CORRELATION_ID": uuid.uuid4().hex,
        }

    async def _ensure_store(self, cancel: Optional[CancellationToken] = None) -> str:
        """Return the Walmart store id, searching by postal code once."""
        if self.store_id:
            return self.store_id

        async with self._location_lock:
            if self.store_id:
                return self.store_id

            cache_key = f"location_walmart_{self.zip_code}"
            cached = self.toolkit.cache.get(cache_key)
            if cached:
                self.store_id = cached
                return cached

            payload = await self.toolkit.fetch_json(
                f"{self.API_BASE_URL}/stores/search",
                params={"postalCode": self.zip_code, "limit": 1},
                headers=self._headers(),
                cancel=cancel,
            )
            if not isinstance(payload, dict):
                raise ValueError("store search response is not a JSON object")
            stores = payload.get("data") or []
            if not stores:
                raise LocationNotFoundError(self.name, self.zip_code)

            self.store_id = str(stores[0]["id"])
            self.toolkit.cache.set(cache_key, self.store_id, ttl=self.toolkit.location_ttl)
            self.logger.info("walmart_store_resolved", walmart_store_id=self.store_id)
            return self.store_id

    async def _fetch_deals(
        self, store_id: str, cancel: Optional[CancellationToken] = None
    ) -> List[Dict[str, Any]]:
        page_size = self.toolkit.page_size
        items: List[Dict[str, Any]] = []

        for page in range(1, self.toolkit.max_pages + 1):
            payload = await self.toolkit.fetch_json(
                f"{self.API_BASE_URL}/products/deals",
                params={"storeId": store_id, "limit": page_size, "page": page},
                headers=self._headers(),
                cancel=cancel,
            )
            if not isinstance(payload, dict):
                raise ValueError("deals response is not a JSON object")
            batch = (payload.get("data") or {}).get("items") or []
            items.extend(batch)
            self.logger.debug("walmart_page_fetched", page=page, count=len(batch))

            if len(batch) < page_size:
                break

        return items

    def _to_raw(self, item: Dict[str, Any], store_id: str) -> Dict[str, Any]:
        """Map one Walmart deal item onto the raw deal shape."""
        item_id = item.get("usItemId")
        restrictions = item.get("offerRestrictions")

        return {
            "title": item.get("name"),
            "sale_price": item.get("salePrice"),
            "original_price": item.get("regularPrice"),
            "image_url": (item.get("images") or {}).get("primary"),
            "category": self._map_category(item.get("departmentName")),
            "unit": self._extract_unit(item.get("unitType") or item.get("name")),
            "valid_until": item.get("offerExpiryTime"),
            "store_id": self.config.id,
            "external_id": item_id,
            "url": f"{self.config.base_url.rstrip('/')}/ip/{item_id}" if item_id else None,
            "description": item.get("shortDescription"),
            "restrictions": restrictions,
            "discount_type": self._discount_type(item),
            "quantity": 1,
            "limit": extract_limit(restrictions),
            "metadata": {"walmart_store_id": store_id},
        }

    def _map_category(self, department: Optional[str]) -> Optional[Category]:
        if not department:
            return None
        return self.CATEGORY_MAP.get(department, Category.OTHER)

    def _extract_unit(self, text: Optional[str]) -> Optional[Unit]:
        """Use the unit type enumeration, falling back to the product name."""
        if not text:
            return None
        if text in self.UNIT_TYPES:
            return self.UNIT_TYPES[text]

        match = self._TITLE_UNIT_PATTERN.search(text)
        if match:
            return self.TITLE_UNITS[match.group(2).lower()]
        return None

    def _discount_type(self, item: Dict[str, Any]) -> DiscountType:
        offer_type = item.get("offerType")
        if offer_type in self.OFFER_TYPES:
            return self.OFFER_TYPES[offer_type]
        return determine_discount_type(item.get("shortDescription"))
