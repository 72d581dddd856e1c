"""Interfaces the scrape job consumes, plus the records passed across them.

The orchestrator only talks to these protocols; ``services.store`` has the
SQLAlchemy implementations and tests inject in-memory fakes.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import List, Optional, Protocol, Sequence

import structlog

from dealmonitor.scrapers.base import Variant
from dealmonitor.services.filter_engine import FilterCriteria

logger = structlog.get_logger(__name__)


@dataclass
class WebsiteRecord:
    """Read-only snapshot of a monitored website for one run."""

    id: str
    name: str
    base_url: str
    product_schema: Optional[str] = None
    auth_token: Optional[str] = None  # Encrypted


@dataclass
class UrlRecord:
    id: str
    url: str


@dataclass
class UrlStatus:
    """Outcome of one URL, reported after it completes or fails."""

    status: str  # 'ok' or 'error'
    count: int
    scraped_at: datetime
    error: Optional[str] = None


@dataclass
class DealPayload:
    """Outbound description of a new deal for webhook dispatch."""

    product_name: str
    list_price: Decimal
    best_price: Decimal
    discount_percentage: Decimal
    product_url: str
    website_name: str
    brand: Optional[str] = None
    image_url: Optional[str] = None
    price_verification: str = "unverified"  # verified | mismatch | unverified
    detail_price: Optional[Decimal] = None


class ConfigStore(Protocol):
    async def get_active_websites(self, website_id: Optional[str] = None) -> List[WebsiteRecord]:
        ...

    async def get_urls(self, website_id: str) -> List[UrlRecord]:
        ...

    async def get_active_filters(self, filter_id: Optional[str] = None) -> List[FilterCriteria]:
        ...


class SecretDecryptor(Protocol):
    def decrypt(self, ciphertext: str) -> str:
        """Return the plaintext or raise ``DecryptionError``."""
        ...


class DealRepository(Protocol):
    async def insert_deal(self, variant: Variant, filter_id: Optional[str]) -> str:
        """Persist a deal and return its id."""
        ...

    async def create_notification(self, deal_id: str) -> None:
        ...


class UrlStatusReporter(Protocol):
    async def update_url_status(self, url_id: str, status: UrlStatus) -> None:
        ...


class WebhookDispatcher(Protocol):
    async def dispatch(self, website_id: str, deals: Sequence[DealPayload]) -> None:
        ...


class PlaintextDecryptor:
    """Decryptor for deployments that store tokens unencrypted."""

    def decrypt(self, ciphertext: str) -> str:
        return ciphertext


class NullWebhookDispatcher:
    """Dispatcher that only logs; used when no webhook service is configured."""

    def __init__(self):
        self.logger = logger.bind(service="webhooks")

    async def dispatch(self, website_id: str, deals: Sequence[DealPayload]) -> None:
        self.logger.info("webhook_dispatch_skipped", website_id=website_id, deals=len(deals))
