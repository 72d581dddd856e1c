"""Scrape job endpoints: trigger, progress, cancel, schema validation and preview."""

from typing import Optional

import structlog
from fastapi import APIRouter, Depends, HTTPException, status

from dealmonitor.core.exceptions import (
    InvalidUrlError,
    JobAlreadyRunningError,
    SchemaValidationError,
    ScraperError,
)
from dealmonitor.dependencies import get_scraper_service, verify_cron_secret
from dealmonitor.schemas.scrape import (
    CancelResponse,
    PreviewRequest,
    PreviewResponse,
    ScrapeJobRequest,
    ScrapeProgressResponse,
    ScrapeResultResponse,
    SchemaValidateRequest,
    SchemaValidateResponse,
)
from dealmonitor.scrapers.schema import parse_schema_json
from dealmonitor.scrapers.scraper_service import ScraperService

router = APIRouter()
logger = structlog.get_logger(__name__)


@router.post(
    "/jobs",
    response_model=ScrapeResultResponse,
    summary="Run a scrape job",
    responses={
        401: {"description": "Missing or wrong bearer secret, or trigger disabled"},
        409: {"description": "A scrape job is already running"},
    },
    dependencies=[Depends(verify_cron_secret)],
)
async def trigger_scrape_job(
    body: Optional[ScrapeJobRequest] = None,
    service: ScraperService = Depends(get_scraper_service),
) -> ScrapeResultResponse:
    """Run one scrape job to completion and return its summary.

    The job can be limited to one website and/or one filter.
    """
    body = body or ScrapeJobRequest()
    log = logger.bind(website_id=body.website_id, filter_id=body.filter_id)
    log.info("scrape_job_requested")

    try:
        result = await service.execute_scrape_job(
            website_id=body.website_id,
            filter_id=body.filter_id,
        )
    except JobAlreadyRunningError as e:
        log.warning("scrape_job_rejected", reason=e.message)
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=e.message)

    return ScrapeResultResponse.model_validate(result)


@router.get("/progress", response_model=ScrapeProgressResponse)
async def get_progress(
    service: ScraperService = Depends(get_scraper_service),
) -> ScrapeProgressResponse:
    return ScrapeProgressResponse.model_validate(service.progress.snapshot())


@router.post("/cancel", response_model=CancelResponse)
async def cancel_scrape_job(
    service: ScraperService = Depends(get_scraper_service),
) -> CancelResponse:
    """Request cooperative cancellation of the running job.

    Work already in flight finishes; nothing new is started.
    """
    was_running = service.progress.cancel()
    logger.info("scrape_cancel_endpoint", was_running=was_running)
    return CancelResponse(cancelled=True)


@router.post("/schemas/validate", response_model=SchemaValidateResponse)
async def validate_schema(body: SchemaValidateRequest) -> SchemaValidateResponse:
    result = parse_schema_json(body.product_schema)
    return SchemaValidateResponse(valid=result.valid, error=result.error)


@router.post(
    "/preview",
    response_model=PreviewResponse,
    responses={
        400: {"description": "Invalid URL or schema"},
        502: {"description": "The page or API could not be fetched"},
    },
)
async def preview_url(
    body: PreviewRequest,
    service: ScraperService = Depends(get_scraper_service),
) -> PreviewResponse:
    """Parse the first page of a URL without persisting anything."""
    try:
        result = await service.preview_url(body.url, body.product_schema)
    except (InvalidUrlError, SchemaValidationError) as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)
    except ScraperError as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=e.message)

    return PreviewResponse.model_validate(result)
