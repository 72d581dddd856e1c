"""Health check schemas."""

from pydantic import BaseModel, Field


class HealthCheckResponse(BaseModel):
    """Health check response schema."""

    status: str
    database: str
    scraper: str = Field(..., description="Status of the current or last scrape job")
