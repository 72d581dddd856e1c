"""Deal and notification records written for each new matching variant."""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, Numeric, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from dealmonitor.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin


class Deal(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """A variant that satisfied a filter and passed the seen gate."""

    __tablename__ = "deals"

    product_id: Mapped[str] = mapped_column(String(200), nullable=False, index=True)
    sku_id: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    product_name: Mapped[str] = mapped_column(Text, nullable=False)
    brand: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)

    list_price: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
        comment="Reference price the discount is computed against",
    )
    best_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    discount_percentage: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False)

    image_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    product_url: Mapped[str] = mapped_column(Text, nullable=False)

    filter_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        ForeignKey("filters.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    found_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    def __repr__(self) -> str:
        return f"<Deal(product_id={self.product_id}, discount={self.discount_percentage})>"


class Notification(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """In-app notification raised for a deal."""

    __tablename__ = "notifications"

    deal_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("deals.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    dismissed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
