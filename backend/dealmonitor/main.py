"""DealMonitor Backend -- FastAPI Application Entry Point."""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI

from dealmonitor.api.v1.router import api_v1_router
from dealmonitor.config import settings
from dealmonitor.core.logging import configure_logging
from dealmonitor.db.session import engine
from dealmonitor.dependencies import close_scraper_service
from dealmonitor.models import Base

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: startup and shutdown events."""
    configure_logging()
    logger.info("api_starting", environment=settings.ENVIRONMENT, debug=settings.DEBUG)

    # Auto-create tables on startup (safe for fresh deployments)
    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("database_tables_ready")
    except Exception as e:
        logger.error("database_init_failed", error=str(e), exc_info=True)

    yield

    logger.info("api_shutting_down")
    await close_scraper_service()
    await engine.dispose()


app = FastAPI(
    title="DealMonitor API",
    description="Schema-driven e-commerce discount monitor",
    version="0.1.0",
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url="/redoc" if settings.DEBUG else None,
    lifespan=lifespan,
)

app.include_router(api_v1_router, prefix="/api/v1")
