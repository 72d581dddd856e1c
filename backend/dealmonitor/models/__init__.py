"""SQLAlchemy models for DealMonitor.

All models are imported here so metadata.create_all sees every table.
"""

from dealmonitor.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin
from dealmonitor.models.website import MonitoredWebsite, ProductPageUrl
from dealmonitor.models.filter import Filter
from dealmonitor.models.deal import Deal, Notification
from dealmonitor.models.seen_item import SeenItem

__all__ = [
    "Base",
    "TimestampMixin",
    "UUIDPrimaryKeyMixin",
    "MonitoredWebsite",
    "ProductPageUrl",
    "Filter",
    "Deal",
    "Notification",
    "SeenItem",
]
