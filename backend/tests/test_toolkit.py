"""Tests for the shared scraper toolkit: fetching with retries and deal normalization."""

from decimal import Decimal
from unittest.mock import MagicMock

import httpx
import pytest

from grocery_deals.core.exceptions import FetchError, ScrapeCancelledError
from grocery_deals.scrapers.base import Category, DiscountType, Unit
from grocery_deals.scrapers.toolkit import ScraperToolkit
from grocery_deals.scrapers.utils.cancellation import CancellationToken
from grocery_deals.scrapers.utils.proxy_manager import ProxyManager
from grocery_deals.scrapers.utils.rate_limiter import RateLimiter


URL = "https://shop.example.com/weekly-ad"


def make_toolkit(handler=None, fake_sleep=None, **kwargs):
    transport = httpx.MockTransport(handler) if handler else None
    options = {"store_id": 1}
    options.update(kwargs)
    if fake_sleep is not None:
        options["sleep_func"] = fake_sleep
    return ScraperToolkit("Test Store", "https://shop.example.com", transport=transport, **options)


class FlakyHandler:
    """Fails the first `failures` requests with a 503, then succeeds."""

    def __init__(self, failures, body="<html>deals</html>"):
        self.failures = failures
        self.body = body
        self.requests = []

    def __call__(self, request):
        self.requests.append(request)
        if len(self.requests) <= self.failures:
            return httpx.Response(503, text="unavailable")
        return httpx.Response(200, text=self.body)


# ============================================================================
# FETCHING
# ============================================================================

class TestFetchPage:
    """Tests for ScraperToolkit.fetch_page / request."""

    async def test_retries_with_exponential_backoff(self, fake_sleep, sleeps):
        """Two failures then success: the body is returned after 1s and 2s waits."""
        handler = FlakyHandler(failures=2)
        toolkit = make_toolkit(handler, fake_sleep, max_retries=3)

        body = await toolkit.fetch_page(URL)

        assert body == "<html>deals</html>"
        assert len(handler.requests) == 3
        assert sleeps == [1.0, 2.0]

    async def test_raises_fetch_error_after_exhausting_retries(self, fake_sleep, sleeps):
        handler = FlakyHandler(failures=10)
        toolkit = make_toolkit(handler, fake_sleep, max_retries=3)

        with pytest.raises(FetchError) as exc_info:
            await toolkit.fetch_page(URL)

        error = exc_info.value
        assert error.url == URL
        assert error.attempts == 3
        assert isinstance(error.last_error, httpx.HTTPStatusError)
        assert "503" in error.message
        assert len(handler.requests) == 3
        assert sleeps == [1.0, 2.0]

    async def test_network_errors_are_retried(self, fake_sleep, sleeps):
        calls = []

        def handler(request):
            calls.append(request)
            if len(calls) == 1:
                raise httpx.ConnectError("connection reset", request=request)
            return httpx.Response(200, text="ok")

        toolkit = make_toolkit(handler, fake_sleep)

        assert await toolkit.fetch_page(URL) == "ok"
        assert sleeps == [1.0]

    async def test_sends_browser_headers(self, fake_sleep):
        handler = FlakyHandler(failures=0)
        toolkit = make_toolkit(handler, fake_sleep, user_agent="TestAgent/1.0")

        await toolkit.fetch_page(URL, params={"page": 2})

        request = handler.requests[0]
        assert request.headers["User-Agent"] == "TestAgent/1.0"
        assert "Accept-Language" in request.headers
        assert request.headers["Cache-Control"] == "max-age=0"
        assert request.url.params["page"] == "2"

    async def test_consumes_one_rate_limit_token_per_call(self, fake_sleep):
        handler = FlakyHandler(failures=2)
        limiter = RateLimiter(max_tokens=10, refill_rate=0.001)
        toolkit = make_toolkit(handler, fake_sleep, rate_limiter=limiter)

        await toolkit.fetch_page(URL)

        assert limiter.tokens == 9

    async def test_asks_proxy_manager_on_every_attempt(self, fake_sleep):
        handler = FlakyHandler(failures=1)
        proxy_manager = MagicMock(spec=ProxyManager)
        proxy_manager.get_proxy.return_value = None
        toolkit = make_toolkit(handler, fake_sleep, proxy_manager=proxy_manager)

        await toolkit.fetch_page(URL)

        assert proxy_manager.get_proxy.call_count == 2

    async def test_single_attempt_override(self, fake_sleep, sleeps):
        handler = FlakyHandler(failures=1)
        toolkit = make_toolkit(handler, fake_sleep)

        with pytest.raises(FetchError) as exc_info:
            await toolkit.request("POST", URL, data={"a": "b"}, max_attempts=1)

        assert exc_info.value.attempts == 1
        assert sleeps == []

    async def test_fetch_json_decodes_body(self, fake_sleep):
        toolkit = make_toolkit(lambda request: httpx.Response(200, json={"data": [1, 2]}), fake_sleep)

        assert await toolkit.fetch_json(URL) == {"data": [1, 2]}

    async def test_fetch_json_rejects_invalid_json(self, fake_sleep):
        toolkit = make_toolkit(lambda request: httpx.Response(200, text="<html>"), fake_sleep)

        with pytest.raises(FetchError):
            await toolkit.fetch_json(URL)

    async def test_cancelled_token_stops_before_sending(self, fake_sleep):
        handler = FlakyHandler(failures=0)
        toolkit = make_toolkit(handler, fake_sleep)
        token = CancellationToken()
        token.cancel()

        with pytest.raises(ScrapeCancelledError):
            await toolkit.fetch_page(URL, cancel=token)

        assert handler.requests == []

    async def test_cancellation_interrupts_backoff(self, fake_sleep, sleeps):
        token = CancellationToken()
        requests = []

        def handler(request):
            requests.append(request)
            token.cancel()
            return httpx.Response(500)

        toolkit = make_toolkit(handler, fake_sleep)

        with pytest.raises(ScrapeCancelledError):
            await toolkit.fetch_page(URL, cancel=token)

        assert len(requests) == 1
        assert sleeps == []

    def test_rejects_zero_retries(self):
        with pytest.raises(ValueError):
            ScraperToolkit("Test Store", "https://shop.example.com", max_retries=0)


# ============================================================================
# NORMALIZATION
# ============================================================================

class TestProcessDeal:
    """Tests for ScraperToolkit.process_deal / process_deals."""

    def test_cleans_record_and_nulls_invalid_optionals(self):
        toolkit = make_toolkit()

        deal = toolkit.process_deal(
            {
                "title": " Fresh  Apples\n",
                "sale_price": "$1.99",
                "original_price": "$3.49",
                "image_url": "not a url",
                "valid_until": "not a date",
            }
        )

        assert deal is not None
        assert deal.title == "Fresh Apples"
        assert deal.sale_price == Decimal("1.99")
        assert deal.original_price == Decimal("3.49")
        assert deal.image_url is None
        assert deal.valid_until is None
        assert deal.discount_percentage == Decimal("43.0")
        assert deal.store_id == 1
        assert deal.discount_type == DiscountType.SALE

    def test_maps_vocabularies(self):
        toolkit = make_toolkit()

        deal = toolkit.process_deal(
            {
                "title": "Ground Beef",
                "sale_price": 4.99,
                "category": "Meat & Seafood",
                "unit": "lbs",
                "discount_type": "bogo",
                "limit": 2,
                "url": "https://shop.example.com/p/1?utm_source=ad",
            }
        )

        assert deal.category == Category.MEAT
        assert deal.unit == Unit.LB
        assert deal.discount_type == DiscountType.BOGO
        assert deal.limit == 2
        assert deal.url == "https://shop.example.com/p/1"

    @pytest.mark.parametrize(
        "raw",
        [
            {"title": "Bread", "sale_price": "call for price"},
            {"title": "Bread"},
            {"title": "   ", "sale_price": "1.00"},
            {"title": "Bread", "sale_price": "-2.00"},
            {"title": "Bread", "sale_price": "1.00", "quantity": 0},
            {"title": "Bread", "sale_price": "1.00", "discount_type": "lottery"},
            {"title": "Bread", "sale_price": "1.00", "store_id": "abc"},
        ],
    )
    def test_invalid_records_are_dropped_not_raised(self, raw):
        toolkit = make_toolkit()

        assert toolkit.process_deal(raw) is None
        assert toolkit.records_dropped == 1

    def test_null_store_id_falls_back_to_toolkit_store(self):
        toolkit = make_toolkit(store_id=3)

        deal = toolkit.process_deal({"title": "Bread", "sale_price": "1.00", "store_id": None})

        assert deal is not None
        assert deal.store_id == 3

    def test_record_without_any_store_id_is_dropped(self):
        toolkit = make_toolkit(store_id=None)

        assert toolkit.process_deal({"title": "Bread", "sale_price": "1.00"}) is None

    def test_process_deals_counts_drops(self):
        toolkit = make_toolkit()

        deals = toolkit.process_deals(
            [
                {"title": "Milk", "sale_price": "2.99"},
                {"title": "Eggs", "sale_price": None},
                {"title": "Cheese", "sale_price": "4.50"},
            ]
        )

        assert [d.title for d in deals] == ["Milk", "Cheese"]
        assert toolkit.records_processed == 3
        assert toolkit.records_dropped == 1

    def test_process_deals_drops_records_whose_mapping_fails(self):
        toolkit = make_toolkit()

        def to_raw(record):
            return {"title": record["name"], "sale_price": record["price"]}

        deals = toolkit.process_deals(
            [{"name": "Milk", "price": "2.99"}, {"unexpected": True}],
            to_raw=to_raw,
        )

        assert len(deals) == 1
        assert toolkit.records_processed == 2
        assert toolkit.records_dropped == 1

    def test_calculate_discount_percentage_delegates(self):
        assert ScraperToolkit.calculate_discount_percentage(Decimal("4"), Decimal("3")) == Decimal("25.0")
        assert ScraperToolkit.calculate_discount_percentage(None, Decimal("3")) is None
