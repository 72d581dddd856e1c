"""Value normalization for prices, stock flags, categories and brands."""

import html
import math
import re
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, List, Optional

import structlog

logger = structlog.get_logger(__name__)

OUT_OF_STOCK_VALUES = frozenset({"outofstock", "out_of_stock", "false", "soldout"})

# Feeds use values like 0.01 as "price not set" markers.
PLACEHOLDER_PRICE_FLOOR = Decimal("0.50")

_TWO_PLACES = Decimal("0.01")
_NUMBER_PREFIX = re.compile(r"-?(?:\d+(?:\.\d*)?|\.\d+)")


def to_decimal(value: Any) -> Optional[Decimal]:
    """Convert an int, float, Decimal or numeric string to Decimal."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        return value if value.is_finite() else None
    if isinstance(value, float):
        if math.isnan(value) or math.isinf(value):
            return None
        return Decimal(str(value))
    if isinstance(value, int):
        return Decimal(value)
    try:
        result = Decimal(str(value))
    except InvalidOperation:
        return None
    return result if result.is_finite() else None


class PriceNormalizer:
    """Price parsing for the shapes retailers put into JSON and HTML."""

    @staticmethod
    def clean_price_string(raw: str) -> Optional[Decimal]:
        """Parse a price string and extract the numeric value.

        Handles formats such as:
        - "$29.99" -> 29.99
        - "29,99 EUR" -> 29.99
        - "$1,234.50" -> 1234.50

        Args:
            raw: Raw price string

        Returns:
            Decimal price value, or None if parsing fails
        """
        if not raw:
            return None

        cleaned = re.sub(r"[^0-9.,\-]", "", raw)
        if "," in cleaned and "." in cleaned:
            # Comma is a thousands separator when a dot is also present
            cleaned = cleaned.replace(",", "")
        else:
            cleaned = cleaned.replace(",", ".", 1)

        match = _NUMBER_PREFIX.match(cleaned)
        if not match:
            return None
        return to_decimal(match.group(0))

    @classmethod
    def normalize(cls, value: Any) -> Optional[Decimal]:
        """Normalize a money value.

        Accepts a plain number, a ``{centAmount, fractionDigits}`` object
        (fractionDigits defaults to 2) or a price string.

        Args:
            value: Raw value taken from the payload

        Returns:
            Decimal amount, or None when the value is not a price
        """
        if value is None or isinstance(value, bool):
            return None
        if isinstance(value, (int, float, Decimal)):
            return to_decimal(value)
        if isinstance(value, dict) and "centAmount" in value:
            cents = to_decimal(value.get("centAmount"))
            if cents is None:
                return None
            digits = value.get("fractionDigits")
            if not isinstance(digits, int) or isinstance(digits, bool):
                digits = 2
            return cents / (Decimal(10) ** digits)
        if isinstance(value, str):
            return cls.clean_price_string(value)
        return None


def normalize_price(value: Any) -> Optional[Decimal]:
    return PriceNormalizer.normalize(value)


def normalize_stock(value: Any) -> bool:
    """Normalize a stock signal. Missing values count as out of stock."""
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() not in OUT_OF_STOCK_VALUES
    return True


def normalize_categories(value: Any) -> List[str]:
    """Normalize a string, list of strings or list of category objects."""
    if value is None:
        return []
    if isinstance(value, str):
        return [value] if value else []
    if not isinstance(value, list):
        return []

    categories = []
    for item in value:
        if isinstance(item, str):
            name = item
        elif isinstance(item, dict):
            name = item.get("displayName") or item.get("name") or item.get("category")
        else:
            name = None
        if isinstance(name, str) and name:
            categories.append(name)
    return categories


def normalize_brand(value: Any) -> Optional[str]:
    """Normalize a brand given as a string, list or object."""
    if isinstance(value, str):
        return value or None
    if isinstance(value, list) and value:
        first = value[0]
        if isinstance(first, str):
            return first or None
        if isinstance(first, dict):
            return first.get("displayName") or first.get("name")
        return None
    if isinstance(value, dict):
        return value.get("displayName") or value.get("name")
    return None


def decode_html_entities(text: str) -> str:
    """Decode HTML entities; non-breaking spaces become plain spaces."""
    return html.unescape(text).replace("\xa0", " ")


def is_usable_price(price: Optional[Decimal]) -> bool:
    """True for prices at or above the placeholder floor."""
    return price is not None and price >= PLACEHOLDER_PRICE_FLOOR


def pick_best_price(
    list_price: Decimal,
    active_price: Optional[Decimal] = None,
    sale_price: Optional[Decimal] = None,
) -> Decimal:
    """Pick the lowest candidate price, or list_price if none.

    Args:
        list_price: Reference/list price
        active_price: Current selling price, if any
        sale_price: Promotional price, if any

    Returns:
        The best (lowest) price
    """
    candidates = [p for p in (active_price, sale_price) if p is not None]
    if not candidates:
        return list_price
    return min(candidates)


def compute_discount(reference_price: Any, best_price: Any) -> Decimal:
    """Percentage discount of best_price against reference_price.

    Rounded half-up to two decimals: ``compute_discount(3, 1) == 66.67``.

    Raises:
        ValueError: If the reference price is not positive
    """
    reference = to_decimal(reference_price)
    best = to_decimal(best_price)
    if reference is None or reference <= 0:
        raise ValueError("reference price must be positive")
    if best is None:
        raise ValueError("best price is required")
    raw = (reference - best) / reference * 100
    return raw.quantize(_TWO_PLACES, rounding=ROUND_HALF_UP)


def resolve_deal_prices(
    reference_price: Decimal,
    list_price: Decimal,
    active_price: Optional[Decimal] = None,
    sale_price: Optional[Decimal] = None,
) -> tuple[Decimal, Decimal]:
    """Return (best_price, discount_percentage) for a variant.

    A candidate that is not below the reference price is treated as a
    corrupt feed value and the list price is used instead.
    """
    best = pick_best_price(list_price, active_price, sale_price)
    if best >= reference_price:
        best = list_price
    return best, compute_discount(reference_price, best)
