"""Tests for the SQLAlchemy config store and deal repository."""

import uuid
from datetime import datetime, timezone
from decimal import Decimal

import pytest
import pytest_asyncio
from sqlalchemy import select

from dealmonitor.models.deal import Deal, Notification
from dealmonitor.models.filter import Filter
from dealmonitor.models.website import MonitoredWebsite, ProductPageUrl
from dealmonitor.services.contracts import UrlStatus
from dealmonitor.services.store import SqlConfigStore, SqlDealRepository


@pytest_asyncio.fixture
async def seeded(test_db):
    """Two websites (one inactive) with URLs, and two filters (one inactive)."""
    active = MonitoredWebsite(
        name="Summit Outfitters",
        base_url="https://summit.example.com",
        product_schema=None,
        auth_token="enc-token",
    )
    inactive = MonitoredWebsite(name="Closed Shop", base_url="https://closed.example.com", active=False)
    test_db.add_all([active, inactive])
    await test_db.flush()

    url = ProductPageUrl(website_id=active.id, url="https://summit.example.com/c/boots")
    deals_filter = Filter(
        name="Big boot deals",
        discount_threshold=30,
        max_price=Decimal("150.00"),
        keywords=["boot"],
        included_categories=["shoes"],
        excluded_categories=[],
    )
    paused = Filter(name="Paused", discount_threshold=10, active=False)
    test_db.add_all([url, deals_filter, paused])
    await test_db.commit()

    return {"website": active, "inactive": inactive, "url": url, "filter": deals_filter}


class TestSqlConfigStore:

    async def test_active_websites(self, session_factory, seeded):
        websites = await SqlConfigStore(session_factory).get_active_websites()

        assert [w.name for w in websites] == ["Summit Outfitters"]
        assert websites[0].id == str(seeded["website"].id)
        assert websites[0].auth_token == "enc-token"
        assert websites[0].product_schema is None

    async def test_website_by_id(self, session_factory, seeded):
        store = SqlConfigStore(session_factory)

        assert len(await store.get_active_websites(str(seeded["website"].id))) == 1
        assert await store.get_active_websites(str(seeded["inactive"].id)) == []
        assert await store.get_active_websites(str(uuid.uuid4())) == []
        assert await store.get_active_websites("not-a-uuid") == []

    async def test_urls(self, session_factory, seeded):
        store = SqlConfigStore(session_factory)
        urls = await store.get_urls(str(seeded["website"].id))

        assert [(u.id, u.url) for u in urls] == [
            (str(seeded["url"].id), "https://summit.example.com/c/boots")
        ]
        assert await store.get_urls("nope") == []

    async def test_active_filters(self, session_factory, seeded):
        store = SqlConfigStore(session_factory)
        [criteria] = await store.get_active_filters()

        assert criteria.id == str(seeded["filter"].id)
        assert criteria.discount_threshold == Decimal(30)
        assert criteria.max_price == Decimal("150.00")
        assert criteria.keywords == ["boot"]
        assert criteria.included_categories == ["shoes"]

        assert len(await store.get_active_filters(criteria.id)) == 1
        assert await store.get_active_filters("bad-id") == []

    async def test_out_of_range_filter_is_skipped(self, session_factory, test_db, seeded):
        broken = Filter(name="Anything goes", discount_threshold=0)
        test_db.add(broken)
        await test_db.commit()

        store = SqlConfigStore(session_factory)
        criteria = await store.get_active_filters()

        assert [c.id for c in criteria] == [str(seeded["filter"].id)]
        assert await store.get_active_filters(str(broken.id)) == []


class TestSqlDealRepository:

    async def test_insert_deal_and_notification(self, session_factory, seeded, make_variant):
        repo = SqlDealRepository(session_factory)
        variant = make_variant(
            product_id="boot-1",
            sku_id="boot-1-10",
            brand="Summit",
            product_url="https://summit.example.com/p/boot-1",
        )

        deal_id = await repo.insert_deal(variant, str(seeded["filter"].id))
        await repo.create_notification(deal_id)

        async with session_factory() as session:
            deal = await session.scalar(select(Deal))
            notification = await session.scalar(select(Notification))

        assert str(deal.id) == deal_id
        assert deal.product_id == "boot-1"
        assert deal.product_name == "Trail Running Shoe"
        assert deal.best_price == Decimal("75.00")
        assert deal.discount_percentage == Decimal("25.00")
        assert deal.filter_id == seeded["filter"].id
        assert str(notification.deal_id) == deal_id
        assert notification.read is False

    async def test_update_url_status(self, session_factory, seeded):
        repo = SqlDealRepository(session_factory)
        scraped_at = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)

        await repo.update_url_status(
            str(seeded["url"].id),
            UrlStatus(status="error", count=0, scraped_at=scraped_at, error="HTTP 404"),
        )

        async with session_factory() as session:
            row = await session.get(ProductPageUrl, seeded["url"].id)
        assert row.last_scrape_status == "error"
        assert row.last_scrape_error == "HTTP 404"
        assert row.last_scrape_count == 0
        assert row.last_scraped_at.replace(tzinfo=None) == scraped_at.replace(tzinfo=None)
