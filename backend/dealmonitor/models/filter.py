"""User-configured deal filter."""

from decimal import Decimal
from typing import List, Optional

from sqlalchemy import JSON, Boolean, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from dealmonitor.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin


class Filter(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """Matching rule applied to every scraped variant."""

    __tablename__ = "filters"

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    discount_threshold: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        comment="Minimum discount percentage (1-99, inclusive)",
    )
    max_price: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    keywords: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)
    included_categories: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)
    excluded_categories: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, index=True)

    def __repr__(self) -> str:
        return f"<Filter(name={self.name}, threshold={self.discount_threshold})>"
