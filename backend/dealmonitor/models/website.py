"""Monitored website and its product page URLs."""

import uuid
from datetime import datetime
from typing import List, Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from dealmonitor.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin


class MonitoredWebsite(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """A retailer whose product pages are scraped on each job run."""

    __tablename__ = "monitored_websites"

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    base_url: Mapped[str] = mapped_column(
        String(500),
        nullable=False,
        unique=True,
        comment="Used to resolve relative product and image URLs",
    )
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, index=True)
    product_schema: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
        comment="JSON extraction schema; NULL uses the default __NEXT_DATA__ parser",
    )
    auth_token: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
        comment="Encrypted per-site API token substituted for ${AUTH_TOKEN}",
    )

    urls: Mapped[List["ProductPageUrl"]] = relationship(
        back_populates="website",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<MonitoredWebsite(name={self.name}, active={self.active})>"


class ProductPageUrl(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """A listing, product or API page belonging to a monitored website."""

    __tablename__ = "product_page_urls"
    __table_args__ = (
        UniqueConstraint("website_id", "url", name="uq_product_page_urls_website_url"),
    )

    website_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("monitored_websites.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    url: Mapped[str] = mapped_column(Text, nullable=False)
    last_scrape_status: Mapped[Optional[str]] = mapped_column(
        String(10),
        nullable=True,
        comment="'ok' or 'error'",
    )
    last_scrape_error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    last_scrape_count: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    last_scraped_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    website: Mapped["MonitoredWebsite"] = relationship(back_populates="urls")
