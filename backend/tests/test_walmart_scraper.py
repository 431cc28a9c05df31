"""Tests for the Walmart deals scraper against a fake Walmart API."""

from dataclasses import replace
from decimal import Decimal

import httpx
import pytest

from grocery_deals.core.exceptions import (
    LocationNotFoundError,
    ScraperConfigurationError,
    ScraperError,
)
from grocery_deals.scrapers.adapters.walmart import WalmartScraper
from grocery_deals.scrapers.base import Category, DiscountType, StoreLocation, Unit
from grocery_deals.scrapers.toolkit import ScraperToolkit


def walmart_item(item_id, **overrides):
    item = {
        "usItemId": item_id,
        "name": f"Great Value Cereal {item_id}, 18 oz",
        "salePrice": 2.50,
        "regularPrice": 3.00,
        "images": {"primary": f"https://i5.walmartimages.com/{item_id}.jpg"},
        "departmentName": "Pantry",
        "offerExpiryTime": "2024-06-08T23:59:59Z",
        "shortDescription": "Rollback",
        "offerRestrictions": "Limit 6",
    }
    item.update(overrides)
    return item


class FakeWalmartApi:
    """Stand-in for the store search and deals endpoints."""

    def __init__(self, items=None, stores=None, deals_payload=None):
        self.items = items if items is not None else [walmart_item("101")]
        self.stores = stores if stores is not None else [{"id": 5432}]
        self.deals_payload = deals_payload
        self.store_requests = []
        self.deal_requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if path.endswith("/stores/search"):
            self.store_requests.append(request)
            return httpx.Response(200, json={"data": self.stores})
        if path.endswith("/products/deals"):
            self.deal_requests.append(request)
            if self.deals_payload is not None:
                return httpx.Response(200, json=self.deals_payload)
            page = int(request.url.params["page"])
            limit = int(request.url.params["limit"])
            start = (page - 1) * limit
            return httpx.Response(200, json={"data": {"items": self.items[start : start + limit]}})
        return httpx.Response(404)


@pytest.fixture
def make_scraper(cache, fake_sleep, walmart_store):
    def _make(api, config=None, page_size=50, max_pages=5):
        config = config or walmart_store
        toolkit = ScraperToolkit(
            config.name,
            config.base_url,
            store_id=config.id,
            cache=cache,
            page_size=page_size,
            max_pages=max_pages,
            transport=httpx.MockTransport(api),
            sleep_func=fake_sleep,
        )
        return WalmartScraper(config, toolkit)

    return _make


class TestWalmartScraper:
    """Tests for WalmartScraper.scrape_deals."""

    def test_requires_api_key(self, walmart_store):
        config = replace(walmart_store, api_key=None)

        with pytest.raises(ScraperConfigurationError):
            WalmartScraper(config, ScraperToolkit("Walmart", config.base_url))

    async def test_maps_items_to_deals(self, make_scraper):
        scraper = make_scraper(FakeWalmartApi())

        deals = await scraper.scrape_deals()

        assert len(deals) == 1
        deal = deals[0]
        assert deal.title == "Great Value Cereal 101, 18 oz"
        assert deal.sale_price == Decimal("2.5")
        assert deal.original_price == Decimal("3.0")
        assert deal.discount_percentage == Decimal("16.7")
        assert deal.category == Category.PANTRY
        assert deal.unit == Unit.OZ
        assert deal.url == "https://www.walmart.com/ip/101"
        assert deal.image_url == "https://i5.walmartimages.com/101.jpg"
        assert deal.store_id == 2
        assert deal.limit == 6
        assert deal.discount_type == DiscountType.SALE
        assert deal.metadata == {"walmart_store_id": "5432"}

    @pytest.mark.parametrize(
        "offer_type,expected",
        [
            ("BOGO", DiscountType.BOGO),
            ("REWARDS", DiscountType.POINTS),
            ("COUPON", DiscountType.COUPON),
        ],
    )
    async def test_offer_type_sets_discount_type(self, make_scraper, offer_type, expected):
        api = FakeWalmartApi(items=[walmart_item("101", offerType=offer_type)])

        deal = (await make_scraper(api).scrape_deals())[0]

        assert deal.discount_type == expected

    async def test_unit_type_takes_precedence_over_name(self, make_scraper):
        api = FakeWalmartApi(items=[walmart_item("101", unitType="POUND")])

        deal = (await make_scraper(api).scrape_deals())[0]

        assert deal.unit == Unit.LB

    async def test_sends_token_and_unique_correlation_ids(self, make_scraper):
        api = FakeWalmartApi()

        await make_scraper(api).scrape_deals()

        requests = api.store_requests + api.deal_requests
        assert all(r.headers["WM_SEC.ACCESS_TOKEN"] == "walmart-token" for r in requests)
        correlation_ids = {r.headers["WM_QOS.CORRELATION_ID"] for r in requests}
        assert len(correlation_ids) == len(requests)

    async def test_store_search_runs_once_and_is_cached(self, make_scraper, cache):
        api = FakeWalmartApi()
        scraper = make_scraper(api)

        await scraper.scrape_deals()
        await scraper.scrape_deals()
        await make_scraper(api).scrape_deals()

        assert len(api.store_requests) == 1
        assert api.store_requests[0].url.params["postalCode"] == "80202"
        assert cache.get("location_walmart_80202") == "5432"
        assert api.deal_requests[0].url.params["storeId"] == "5432"

    async def test_configured_store_id_skips_search(self, make_scraper, walmart_store):
        config = replace(
            walmart_store, default_location=StoreLocation(zip_code="80202", store_id="1100")
        )
        api = FakeWalmartApi()

        await make_scraper(api, config=config).scrape_deals()

        assert api.store_requests == []

    async def test_pages_are_one_based(self, make_scraper):
        api = FakeWalmartApi(items=[walmart_item(str(i)) for i in range(5)])

        deals = await make_scraper(api, page_size=2).scrape_deals()

        assert len(deals) == 5
        assert [r.url.params["page"] for r in api.deal_requests] == ["1", "2", "3"]

    async def test_no_store_near_zip_raises(self, make_scraper):
        api = FakeWalmartApi(stores=[])

        with pytest.raises(LocationNotFoundError):
            await make_scraper(api).scrape_deals()

    async def test_unexpected_payload_shape_raises_scraper_error(self, make_scraper):
        api = FakeWalmartApi(deals_payload=[1, 2, 3])

        with pytest.raises(ScraperError):
            await make_scraper(api).scrape_deals()
