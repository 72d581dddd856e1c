"""Pydantic request/response models for the DealMonitor API."""

from dealmonitor.schemas.health import HealthCheckResponse
from dealmonitor.schemas.scrape import (
    CancelResponse,
    PreviewRequest,
    PreviewResponse,
    ScrapeErrorResponse,
    ScrapeJobRequest,
    ScrapeProgressResponse,
    ScrapeResultResponse,
    SchemaValidateRequest,
    SchemaValidateResponse,
    VariantResponse,
)

__all__ = [
    "HealthCheckResponse",
    "CancelResponse",
    "PreviewRequest",
    "PreviewResponse",
    "ScrapeErrorResponse",
    "ScrapeJobRequest",
    "ScrapeProgressResponse",
    "ScrapeResultResponse",
    "SchemaValidateRequest",
    "SchemaValidateResponse",
    "VariantResponse",
]
