"""Grocery Deals Backend -- FastAPI Application Entry Point."""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from grocery_deals.api.v1.router import api_v1_router
from grocery_deals.config import settings
from grocery_deals.core.logging import setup_logging
from grocery_deals.scrapers.register_scrapers import build_scraper_factory
from grocery_deals.scrapers.scraper_service import DealScraperService

setup_logging(level=settings.LOG_LEVEL, json_format=settings.LOG_JSON)
logger = structlog.get_logger(__name__)


def create_deal_service() -> DealScraperService:
    """Build the scraper factory and the deal service from settings."""
    factory = build_scraper_factory(settings)
    return DealScraperService(factory, settings.get_store_configs())


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: startup and shutdown events."""
    # Startup
    logger.info(
        "server_starting",
        environment=settings.ENVIRONMENT,
        debug=settings.DEBUG,
    )

    service = create_deal_service()
    service.start()
    app.state.deal_service = service

    for config in service.list_store_configs():
        if not config.api_key:
            logger.warning("store_credentials_missing", store_id=config.id, store=config.name)

    yield

    # Shutdown
    logger.info("server_shutting_down")
    await service.aclose()


app = FastAPI(
    title="Grocery Deals API",
    description="Weekly grocery deal scraper for Kroger-family and Walmart stores",
    version="0.1.0",
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url="/redoc" if settings.DEBUG else None,
    lifespan=lifespan,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        settings.FRONTEND_URL,
        "http://localhost:3000",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register API v1 router
app.include_router(api_v1_router, prefix="/api/v1")


@app.get("/")
async def root():
    """Root endpoint with API information."""
    return {
        "name": "Grocery Deals API",
        "version": "0.1.0",
        "description": "Weekly grocery deal scraper",
        "docs": "/docs" if settings.DEBUG else None,
        "health": "/api/v1/health",
    }
