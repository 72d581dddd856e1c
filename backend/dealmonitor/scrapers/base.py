"""Core data structures and the extractor interface.

Every extraction strategy turns a raw payload into a generic JSON tree;
the schema engine then maps that tree onto canonical Variant records.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from decimal import Decimal
from typing import TYPE_CHECKING, List, Optional

import structlog

from dealmonitor.scrapers.utils.path_resolver import JsonValue

if TYPE_CHECKING:
    from dealmonitor.scrapers.schema import ExtractionConfig

PAGE_TYPES = ("listing", "product", "unknown")


def compute_composite_id(product_id: str, sku_id: Optional[str] = None) -> str:
    """Variant identity key: ``productId`` or ``productId:skuId``."""
    if sku_id:
        return f"{product_id}:{sku_id}"
    return product_id


@dataclass
class Variant:
    """A single purchasable SKU observed on a page."""

    product_id: str
    display_name: str
    list_price: Decimal  # Reference price (list, or MSRP when higher)
    best_price: Decimal
    discount_percentage: Decimal
    product_url: str = ""  # May be relative to the website base URL
    sku_id: Optional[str] = None
    description: Optional[str] = None
    brand: Optional[str] = None
    active_price: Optional[Decimal] = None
    sale_price: Optional[Decimal] = None
    image_url: Optional[str] = None
    categories: List[str] = field(default_factory=list)
    in_stock: bool = True
    composite_id: str = ""

    def __post_init__(self):
        """Validate data after initialization."""
        if not self.product_id:
            raise ValueError("product_id is required")
        if self.list_price is None or self.list_price <= 0:
            raise ValueError("list_price must be a positive Decimal")
        if not self.composite_id:
            self.composite_id = compute_composite_id(self.product_id, self.sku_id)


@dataclass
class ParseResult:
    """Variants extracted from one payload plus what kind of page it was."""

    variants: List[Variant] = field(default_factory=list)
    page_type: str = "unknown"  # 'listing', 'product' or 'unknown'
    page_count: int = 1
    diagnostic: Optional[str] = None

    def __post_init__(self):
        if self.page_type not in PAGE_TYPES:
            raise ValueError(f"Invalid page_type: {self.page_type}")


class BaseExtractor(ABC):
    """Abstract base class for raw-payload extraction strategies.

    Subclasses set ``method`` to the schema's ``extraction.method`` value
    they handle and implement ``extract``.
    """

    method: str = ""

    def __init__(self):
        self.logger = structlog.get_logger(extractor=self.method)

    @abstractmethod
    def extract(self, raw: str, config: "ExtractionConfig") -> Optional[JsonValue]:
        """Turn a raw HTML document into a generic JSON tree.

        Args:
            raw: Raw HTML text of the page
            config: The schema's extraction section

        Returns:
            Decoded tree, or None if nothing usable was found
        """
        pass
