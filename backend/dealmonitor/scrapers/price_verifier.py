"""Cross-check extreme discounts against the product detail page."""

import re
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Optional

import structlog
from bs4 import BeautifulSoup

from dealmonitor.scrapers.http_client import HttpFetcher
from dealmonitor.scrapers.utils.normalizer import to_decimal

logger = structlog.get_logger(__name__)

PRICE_TOLERANCE = Decimal("0.01")

_JSON_PRICE = re.compile(r'"price"\s*:\s*"?([\d.]+)"?', re.IGNORECASE)
_FINAL_PRICE_NAME = re.compile(r"finalPrice", re.IGNORECASE)


@dataclass
class PriceVerification:
    status: str = "unverified"  # 'verified', 'mismatch' or 'unverified'
    detail_price: Optional[Decimal] = None


def extract_detail_price(html: str) -> Optional[Decimal]:
    """Find the selling price on a product detail page.

    Looks at a ``finalPrice`` hidden input, then the ``product:price:amount``
    meta tag, then the first JSON ``"price"`` field.
    """
    soup = BeautifulSoup(html, "html.parser")
    candidates = []

    final_input = soup.find("input", attrs={"name": _FINAL_PRICE_NAME}) or soup.find(
        "input", attrs={"id": _FINAL_PRICE_NAME}
    )
    if final_input is not None:
        candidates.append(final_input.get("value"))

    meta = soup.find("meta", attrs={"property": "product:price:amount"})
    if meta is not None:
        candidates.append(meta.get("content"))

    match = _JSON_PRICE.search(html)
    if match:
        candidates.append(match.group(1))

    for candidate in candidates:
        price = to_decimal(candidate) if candidate else None
        if price is not None and price > 0:
            return price
    return None


async def verify_price(
    fetcher: HttpFetcher,
    product_url: str,
    expected_price: Decimal,
    headers: Optional[Dict[str, str]] = None,
) -> PriceVerification:
    """Fetch the detail page and compare its price to ``expected_price``.

    Any fetch or parse failure leaves the deal ``unverified``.
    """
    html = await fetcher.fetch_text(product_url, headers=headers)
    if html is None:
        return PriceVerification()

    detail_price = extract_detail_price(html)
    if detail_price is None:
        logger.warning("detail_price_not_found", url=product_url, html_chars=len(html))
        return PriceVerification()

    if abs(detail_price - expected_price) <= PRICE_TOLERANCE:
        logger.info("price_verified", url=product_url, price=str(detail_price))
        return PriceVerification(status="verified", detail_price=detail_price)

    logger.warning(
        "price_mismatch",
        url=product_url,
        detail_price=str(detail_price),
        listing_price=str(expected_price),
    )
    return PriceVerification(status="mismatch", detail_price=detail_price)
