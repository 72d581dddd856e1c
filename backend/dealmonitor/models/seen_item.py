"""Dedup record with TTL expiry."""

from datetime import datetime

from sqlalchemy import DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from dealmonitor.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin


class SeenItem(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """A product that already produced an alert within the TTL window."""

    __tablename__ = "seen_items"

    composite_id: Mapped[str] = mapped_column(
        String(400),
        nullable=False,
        unique=True,
        index=True,
        comment="Dedup key; the orchestrator stores the productId here",
    )
    expires_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        index=True,
    )
