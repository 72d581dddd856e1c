"""Time-boxed dedup set backed by the ``seen_items`` table.

The orchestrator gates emission on the productId alone, so different SKUs
of a product that already alerted stay quiet until the entry expires.
Expired rows count as absent; ``clean_expired_items`` only reclaims space.
"""

from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

import structlog
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from dealmonitor.models.seen_item import SeenItem
from dealmonitor.scrapers.base import compute_composite_id

logger = structlog.get_logger(__name__)

__all__ = ["SeenTracker", "compute_composite_id"]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SeenTracker:
    """Answers "has this key alerted recently?" and records new alerts."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """Initialize the tracker.

        Args:
            session_factory: Factory producing async sessions
            clock: Returns the current UTC time (injectable for tests)
        """
        self.session_factory = session_factory
        self.clock = clock or _utcnow
        self.logger = logger.bind(service="seen_tracker")

    async def is_new_deal(self, key: str) -> bool:
        """True if no unexpired entry exists for ``key``."""
        async with self.session_factory() as session:
            result = await session.execute(
                select(SeenItem.id)
                .where(SeenItem.composite_id == key)
                .where(SeenItem.expires_at > self.clock())
                .limit(1)
            )
            return result.scalar_one_or_none() is None

    async def mark_as_seen(self, key: str, ttl_days: int) -> None:
        """Insert ``key`` or push its expiry out to ``now + ttl_days``."""
        expires_at = self.clock() + timedelta(days=ttl_days)
        async with self.session_factory() as session:
            async with session.begin():
                result = await session.execute(
                    select(SeenItem).where(SeenItem.composite_id == key)
                )
                item = result.scalar_one_or_none()
                if item is None:
                    session.add(SeenItem(composite_id=key, expires_at=expires_at))
                else:
                    item.expires_at = expires_at

        self.logger.debug("marked_as_seen", key=key, ttl_days=ttl_days)

    async def clean_expired_items(self) -> int:
        """Delete expired entries.

        Returns:
            Number of rows removed
        """
        async with self.session_factory() as session:
            async with session.begin():
                result = await session.execute(
                    delete(SeenItem).where(SeenItem.expires_at < self.clock())
                )
        removed = result.rowcount or 0
        if removed:
            self.logger.info("seen_items_cleaned", removed=removed)
        return removed
