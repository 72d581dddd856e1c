"""SQLAlchemy-backed implementations of the scrape job's collaborators."""

import uuid
from decimal import Decimal
from typing import List, Optional

import structlog
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from dealmonitor.models.deal import Deal, Notification
from dealmonitor.models.filter import Filter
from dealmonitor.models.website import MonitoredWebsite, ProductPageUrl
from dealmonitor.scrapers.base import Variant
from dealmonitor.services.contracts import UrlRecord, UrlStatus, WebsiteRecord
from dealmonitor.services.filter_engine import FilterCriteria

logger = structlog.get_logger(__name__)


def _parse_uuid(value: Optional[str]) -> Optional[uuid.UUID]:
    if value is None:
        return None
    try:
        return uuid.UUID(str(value))
    except ValueError:
        return None


class SqlConfigStore:
    """Loads websites, URLs and filters as read-only snapshots."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory
        self.logger = logger.bind(service="config_store")

    async def get_active_websites(self, website_id: Optional[str] = None) -> List[WebsiteRecord]:
        """Active websites, or only the given one when ``website_id`` is set.

        An id that is not a UUID matches nothing.
        """
        query = select(MonitoredWebsite).where(MonitoredWebsite.active.is_(True))
        if website_id is not None:
            parsed = _parse_uuid(website_id)
            if parsed is None:
                self.logger.warning("invalid_website_id", website_id=website_id)
                return []
            query = query.where(MonitoredWebsite.id == parsed)

        async with self.session_factory() as session:
            result = await session.execute(query.order_by(MonitoredWebsite.created_at))
            websites = result.scalars().all()

        return [
            WebsiteRecord(
                id=str(site.id),
                name=site.name,
                base_url=site.base_url,
                product_schema=site.product_schema,
                auth_token=site.auth_token,
            )
            for site in websites
        ]

    async def get_urls(self, website_id: str) -> List[UrlRecord]:
        parsed = _parse_uuid(website_id)
        if parsed is None:
            return []
        async with self.session_factory() as session:
            result = await session.execute(
                select(ProductPageUrl)
                .where(ProductPageUrl.website_id == parsed)
                .order_by(ProductPageUrl.created_at)
            )
            return [UrlRecord(id=str(row.id), url=row.url) for row in result.scalars().all()]

    async def get_active_filters(self, filter_id: Optional[str] = None) -> List[FilterCriteria]:
        query = select(Filter).where(Filter.active.is_(True))
        if filter_id is not None:
            parsed = _parse_uuid(filter_id)
            if parsed is None:
                self.logger.warning("invalid_filter_id", filter_id=filter_id)
                return []
            query = query.where(Filter.id == parsed)

        async with self.session_factory() as session:
            result = await session.execute(query.order_by(Filter.created_at))
            filters = result.scalars().all()

        criteria = []
        for row in filters:
            try:
                criteria.append(
                    FilterCriteria(
                        id=str(row.id),
                        discount_threshold=Decimal(row.discount_threshold),
                        max_price=row.max_price,
                        keywords=list(row.keywords or []),
                        included_categories=list(row.included_categories or []),
                        excluded_categories=list(row.excluded_categories or []),
                    )
                )
            except ValueError as e:
                self.logger.warning("invalid_filter", filter_id=str(row.id), error=str(e))
        return criteria


class SqlDealRepository:
    """Writes deals and notifications, and records per-URL scrape status."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory
        self.logger = logger.bind(service="deal_repository")

    async def insert_deal(self, variant: Variant, filter_id: Optional[str]) -> str:
        """Persist a deal for ``variant`` attributed to ``filter_id``.

        Returns:
            The new deal's id
        """
        deal = Deal(
            product_id=variant.product_id,
            sku_id=variant.sku_id,
            product_name=variant.display_name,
            brand=variant.brand,
            list_price=variant.list_price,
            best_price=variant.best_price,
            discount_percentage=variant.discount_percentage,
            image_url=variant.image_url,
            product_url=variant.product_url,
            filter_id=_parse_uuid(filter_id),
        )
        async with self.session_factory() as session:
            async with session.begin():
                session.add(deal)
        self.logger.info(
            "deal_inserted",
            deal_id=str(deal.id),
            product_id=variant.product_id,
            discount=str(variant.discount_percentage),
        )
        return str(deal.id)

    async def create_notification(self, deal_id: str) -> None:
        async with self.session_factory() as session:
            async with session.begin():
                session.add(Notification(deal_id=uuid.UUID(deal_id)))

    async def update_url_status(self, url_id: str, status: UrlStatus) -> None:
        parsed = _parse_uuid(url_id)
        if parsed is None:
            return
        async with self.session_factory() as session:
            async with session.begin():
                await session.execute(
                    update(ProductPageUrl)
                    .where(ProductPageUrl.id == parsed)
                    .values(
                        last_scrape_status=status.status,
                        last_scrape_error=status.error,
                        last_scrape_count=status.count,
                        last_scraped_at=status.scraped_at,
                    )
                )
