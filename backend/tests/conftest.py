"""Pytest configuration and shared fixtures."""

from typing import List

import pytest

from grocery_deals.scrapers.base import StoreConfig, StoreLocation
from grocery_deals.scrapers.utils.cache import Cache


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def anyio_backend():
    """Use asyncio as the async backend for tests."""
    return "asyncio"


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sleeps() -> List[float]:
    """Durations passed to the fake sleep, in call order."""
    return []


@pytest.fixture
def fake_sleep(sleeps):
    """Non-blocking sleep that records durations and honours cancellation."""

    async def _sleep(seconds, cancel=None):
        if cancel is not None:
            cancel.raise_if_cancelled()
        sleeps.append(seconds)

    return _sleep


@pytest.fixture
def cache() -> Cache:
    """Cache without a background sweeper."""
    return Cache(sweep_interval=None)


@pytest.fixture
def kroger_store() -> StoreConfig:
    return StoreConfig(
        id=1,
        name="Kroger",
        base_url="https://www.kroger.com",
        api_key="client-id:client-secret",
        requires_location=True,
        default_location=StoreLocation(zip_code="80202"),
    )


@pytest.fixture
def walmart_store() -> StoreConfig:
    return StoreConfig(
        id=2,
        name="Walmart",
        base_url="https://www.walmart.com",
        api_key="walmart-token",
        requires_location=True,
        default_location=StoreLocation(zip_code="80202"),
    )
