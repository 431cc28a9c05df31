"""Tests for the HTTP API, with the deal service wired to mock scrapers."""

from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from grocery_deals.dependencies import get_deal_service
from grocery_deals.main import app
from grocery_deals.scrapers.base import ScrapedDeal, StoreConfig, StoreLocation
from grocery_deals.scrapers.factory import ScraperFactory
from grocery_deals.scrapers.scraper_service import DealScraperService


STORES = [
    StoreConfig(
        id=1,
        name="Kroger",
        base_url="https://www.kroger.com",
        api_key="id:secret",
        requires_location=True,
        default_location=StoreLocation(zip_code="80202"),
    ),
    StoreConfig(id=2, name="Walmart", base_url="https://www.walmart.com"),
]


def make_deals(store_id, count):
    return [
        ScrapedDeal(title=f"Deal {i}", sale_price=Decimal("1.00") + i, store_id=store_id)
        for i in range(count)
    ]


@pytest.fixture
def scrapers():
    return {
        1: MagicMock(scrape_deals=AsyncMock(return_value=make_deals(1, 5))),
        2: MagicMock(scrape_deals=AsyncMock(side_effect=RuntimeError("walmart down"))),
    }


@pytest.fixture
def service(cache, scrapers):
    factory = MagicMock(spec=ScraperFactory)
    factory.cache = cache
    factory.get_registered_chains.return_value = ["kroger", "walmart"]
    factory.get_scraper.side_effect = lambda config: scrapers[config.id]
    return DealScraperService(factory, STORES)


@pytest.fixture
async def client(service):
    app.dependency_overrides[get_deal_service] = lambda: service
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


class TestHealthAndStores:
    """Tests for /health and the store listing."""

    async def test_root(self, client):
        response = await client.get("/")

        assert response.status_code == 200
        assert response.json()["health"] == "/api/v1/health"

    async def test_health(self, client):
        response = await client.get("/api/v1/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "ok"
        assert body["chains"] == ["kroger", "walmart"]
        assert body["stores"] == 2
        assert body["cache_entries"] == 0

    async def test_list_stores_hides_credentials(self, client):
        response = await client.get("/api/v1/stores")

        assert response.status_code == 200
        stores = response.json()["data"]
        assert [s["name"] for s in stores] == ["Kroger", "Walmart"]
        assert stores[0]["has_credentials"] is True
        assert stores[0]["zip_code"] == "80202"
        assert stores[0]["sync"]["status"] == "pending"
        assert "api_key" not in stores[0]
        assert stores[1]["has_credentials"] is False


class TestStoreDeals:
    """Tests for GET /stores/{id}/deals."""

    async def test_returns_paginated_deals(self, client):
        response = await client.get("/api/v1/stores/1/deals", params={"page": 2, "limit": 2})

        assert response.status_code == 200
        body = response.json()
        assert [d["title"] for d in body["data"]] == ["Deal 2", "Deal 3"]
        assert body["meta"] == {"page": 2, "limit": 2, "total": 5, "total_pages": 3}
        assert body["data"][0]["discount_type"] == "sale"

    async def test_deals_are_ordered_by_discount(self, client, scrapers):
        scrapers[1].scrape_deals.return_value = [
            ScrapedDeal(title=title, sale_price=Decimal("1.00"), store_id=1, discount_percentage=pct)
            for title, pct in [
                ("Small", Decimal("5.0")),
                ("None", None),
                ("Big", Decimal("40.0")),
                ("Mid", Decimal("20.0")),
            ]
        ]

        response = await client.get("/api/v1/stores/1/deals")

        assert [d["title"] for d in response.json()["data"]] == ["Big", "Mid", "Small", "None"]

    async def test_deals_are_cached_between_requests(self, client, scrapers):
        await client.get("/api/v1/stores/1/deals")
        await client.get("/api/v1/stores/1/deals")

        assert scrapers[1].scrape_deals.await_count == 1

    async def test_unknown_store_is_404(self, client):
        response = await client.get("/api/v1/stores/99/deals")

        assert response.status_code == 404

    async def test_scrape_failure_is_502(self, client):
        response = await client.get("/api/v1/stores/2/deals")

        assert response.status_code == 502
        assert "walmart down" in response.json()["detail"]

    async def test_rejects_invalid_page(self, client):
        response = await client.get("/api/v1/stores/1/deals", params={"page": 0})

        assert response.status_code == 422


class TestSync:
    """Tests for the sync and connection test endpoints."""

    async def test_sync_store_forces_refresh(self, client, scrapers):
        await client.get("/api/v1/stores/1/deals")

        response = await client.post("/api/v1/stores/1/sync")

        assert response.status_code == 200
        assert response.json()["data"] == {
            "store_id": 1,
            "status": "active",
            "deals_count": 5,
            "error_message": None,
        }
        assert scrapers[1].scrape_deals.await_count == 2

    async def test_sync_failure_is_502(self, client):
        response = await client.post("/api/v1/stores/2/sync")

        assert response.status_code == 502

    async def test_sync_unknown_store_is_404(self, client):
        response = await client.post("/api/v1/stores/99/sync")

        assert response.status_code == 404

    async def test_sync_all_reports_each_store(self, client):
        response = await client.post("/api/v1/stores/sync")

        assert response.status_code == 200
        results = {r["store_id"]: r for r in response.json()["data"]}
        assert results[1]["status"] == "active"
        assert results[1]["deals_count"] == 5
        assert results[2]["status"] == "error"
        assert "walmart down" in results[2]["error_message"]

    async def test_sync_all_rescrapes_cached_stores(self, client, scrapers):
        await client.get("/api/v1/stores/1/deals")

        response = await client.post("/api/v1/stores/sync")

        assert response.status_code == 200
        assert scrapers[1].scrape_deals.await_count == 2

    async def test_connection_test(self, client):
        ok = await client.post("/api/v1/stores/1/test")
        failed = await client.post("/api/v1/stores/2/test")
        missing = await client.post("/api/v1/stores/99/test")

        assert ok.json() == {"success": True}
        assert failed.json() == {"success": False}
        assert missing.status_code == 404
