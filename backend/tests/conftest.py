"""Pytest configuration and shared fixtures."""

import json
import os
from decimal import Decimal

# Must be set before dealmonitor.config is imported anywhere
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("ENVIRONMENT", "test")

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from dealmonitor.models import Base
from dealmonitor.scrapers.base import Variant
from dealmonitor.scrapers.utils.normalizer import compute_discount


@pytest.fixture
def anyio_backend():
    """Use asyncio as the async backend for tests."""
    return "asyncio"


# ============================================================================
# DATABASE
# ============================================================================

@pytest_asyncio.fixture
async def session_factory():
    """In-memory SQLite database with every table created."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        echo=False,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest_asyncio.fixture
async def test_db(session_factory):
    async with session_factory() as session:
        yield session


# ============================================================================
# BUILDERS
# ============================================================================

@pytest.fixture
def make_variant():
    """Build a Variant with sensible defaults; prices may be given as strings."""

    def _make(
        product_id="p1",
        list_price="100.00",
        best_price="75.00",
        display_name="Trail Running Shoe",
        **kwargs,
    ) -> Variant:
        list_price = Decimal(str(list_price))
        best_price = Decimal(str(best_price))
        kwargs.setdefault("discount_percentage", compute_discount(list_price, best_price))
        return Variant(
            product_id=product_id,
            display_name=display_name,
            list_price=list_price,
            best_price=best_price,
            **kwargs,
        )

    return _make


@pytest.fixture
def next_data_html():
    """Wrap a ``preloadedValue`` object in a __NEXT_DATA__ page."""

    def _build(preloaded) -> str:
        payload = {
            "props": {
                "pageProps": {
                    "data": {
                        "pageFolder": {
                            "dataSourceConfigurations": [{"preloadedValue": preloaded}]
                        }
                    }
                }
            }
        }
        return (
            "<html><head><title>Shop</title></head><body>"
            f'<script id="__NEXT_DATA__" type="application/json">{json.dumps(payload)}</script>'
            "</body></html>"
        )

    return _build


@pytest.fixture
def listing_record():
    """A listing record with one variant, as found in ``preloadedValue.records``."""

    def _build(
        product_id="prod-1",
        list_price=100.0,
        sale_price=None,
        active_price=None,
        name="Trail Running Shoe",
        in_stock=True,
        sku_id=None,
        categories=("Sporting Goods", "Footwear"),
        url="/p/trail-running-shoe",
    ):
        variant = {
            "skuId": sku_id or f"{product_id}-sku",
            "displayName": name,
            "listPrice": list_price,
            "isOnStock": in_stock,
        }
        if sale_price is not None:
            variant["salePrice"] = sale_price
        if active_price is not None:
            variant["activePrice"] = active_price
        return {
            "productId": product_id,
            "displayName": name,
            "brands": [{"displayName": "Summit"}],
            "relativeUrl": url,
            "parentCategories": [{"displayName": c} for c in categories],
            "variants": [variant],
        }

    return _build
