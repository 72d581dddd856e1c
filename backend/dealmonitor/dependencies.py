"""FastAPI dependency injection providers."""

import secrets
from typing import AsyncGenerator, Optional

import structlog
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from dealmonitor.config import settings
from dealmonitor.db.session import async_session_factory
from dealmonitor.scrapers.scraper_service import ScraperService
from dealmonitor.services.seen_tracker import SeenTracker
from dealmonitor.services.store import SqlConfigStore, SqlDealRepository

logger = structlog.get_logger(__name__)

_bearer_scheme = HTTPBearer(auto_error=False)

# One orchestrator per process: it owns the progress tracker and the fetcher
_scraper_service: Optional[ScraperService] = None


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Yield a database session for request-scoped usage.

    The session is automatically committed on success or rolled back on error.
    Always closed after the request completes.
    """
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


def build_scraper_service(
    session_factory: async_sessionmaker[AsyncSession],
) -> ScraperService:
    """Wire a ScraperService to the SQL-backed stores."""
    return ScraperService(
        config_store=SqlConfigStore(session_factory),
        deal_repository=SqlDealRepository(session_factory),
        seen_tracker=SeenTracker(session_factory),
    )


def get_scraper_service() -> ScraperService:
    global _scraper_service
    if _scraper_service is None:
        _scraper_service = build_scraper_service(async_session_factory)
    return _scraper_service


async def close_scraper_service() -> None:
    global _scraper_service
    if _scraper_service is not None:
        await _scraper_service.close()
        _scraper_service = None


def verify_cron_secret(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer_scheme),
) -> None:
    """Require ``Authorization: Bearer <CRON_SECRET>``.

    Raises:
        HTTPException: 401 when the secret is not configured, the header is
            missing, or the token does not match
    """
    configured = settings.CRON_SECRET
    if not configured:
        logger.warning("cron_secret_not_configured")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Job trigger is disabled (CRON_SECRET not configured)",
        )

    if credentials is None or not secrets.compare_digest(
        credentials.credentials.encode(), configured.encode()
    ):
        logger.warning("cron_secret_rejected", header_present=credentials is not None)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
            headers={"WWW-Authenticate": "Bearer"},
        )
