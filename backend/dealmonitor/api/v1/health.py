"""Health check endpoint."""

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from dealmonitor.dependencies import get_db, get_scraper_service
from dealmonitor.schemas import HealthCheckResponse
from dealmonitor.scrapers.scraper_service import ScraperService

router = APIRouter()


@router.get("/health", response_model=HealthCheckResponse)
async def health_check(
    db: AsyncSession = Depends(get_db),
    service: ScraperService = Depends(get_scraper_service),
):
    """Return database connectivity and the scraper's current job status.

    The overall status is "degraded" when the database is unreachable; a
    failed or running scrape job does not affect it.
    """
    try:
        await db.execute(text("SELECT 1"))
        db_status = "ok"
    except Exception as e:
        db_status = f"error: {str(e)}"

    return HealthCheckResponse(
        status="ok" if db_status == "ok" else "degraded",
        database=db_status,
        scraper=service.progress.status,
    )
