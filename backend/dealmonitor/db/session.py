"""Async engine and session factory shared by the API and the job runner."""

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from dealmonitor.config import settings

_engine_kwargs: dict = {"echo": False}
if settings.DATABASE_URL.startswith("sqlite"):
    # An in-memory database lives as long as its one connection
    if ":memory:" in settings.DATABASE_URL:
        _engine_kwargs.update(poolclass=StaticPool, connect_args={"check_same_thread": False})
else:
    _engine_kwargs.update(pool_size=10, max_overflow=5, pool_pre_ping=True)

engine = create_async_engine(settings.DATABASE_URL, **_engine_kwargs)

async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)
