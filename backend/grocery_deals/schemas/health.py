"""Health check schemas."""

from typing import List

from pydantic import BaseModel


class HealthCheckResponse(BaseModel):
    """Health check response schema."""

    status: str
    environment: str
    chains: List[str] = []
    stores: int = 0
    cache_entries: int = 0
