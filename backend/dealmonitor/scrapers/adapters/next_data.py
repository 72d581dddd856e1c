"""Default parser for storefronts that embed their catalog in __NEXT_DATA__.

Used whenever a website has no (valid) custom schema. Understands listing
pages (``preloadedValue.records``, with ``pageCount`` for pagination) and
product pages (``preloadedValue.product.gbProduct``).
"""

import json
from typing import Any, Dict, List, Optional

import structlog
from bs4 import BeautifulSoup

from dealmonitor.scrapers.base import ParseResult, Variant
from dealmonitor.scrapers.utils.normalizer import (
    normalize_categories,
    normalize_price,
    resolve_deal_prices,
)

logger = structlog.get_logger(__name__)


def parse_next_data(html: str) -> Optional[Dict[str, Any]]:
    """Decode the ``<script id="__NEXT_DATA__">`` payload, or return None."""
    soup = BeautifulSoup(html, "html.parser")
    script = soup.find("script", id="__NEXT_DATA__")
    if script is None:
        return None
    text = script.string if script.string is not None else script.get_text()
    if not text:
        return None
    try:
        payload = json.loads(text)
    except ValueError:
        logger.warning("next_data_invalid_json")
        return None
    return payload if isinstance(payload, dict) else None


def get_preloaded_value(payload: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """``props.pageProps.data.pageFolder.dataSourceConfigurations[0].preloadedValue``"""
    try:
        configs = payload["props"]["pageProps"]["data"]["pageFolder"]["dataSourceConfigurations"]
    except (KeyError, TypeError):
        return None
    if not isinstance(configs, list) or not configs or not isinstance(configs[0], dict):
        return None
    value = configs[0].get("preloadedValue")
    return value if isinstance(value, dict) else None


def is_listing_page(payload: Dict[str, Any]) -> bool:
    preloaded = get_preloaded_value(payload)
    return preloaded is not None and isinstance(preloaded.get("records"), list)


def is_product_page(payload: Dict[str, Any]) -> bool:
    preloaded = get_preloaded_value(payload)
    if preloaded is None or not isinstance(preloaded.get("product"), dict):
        return False
    return preloaded["product"].get("gbProduct") is not None


def get_page_count(payload: Dict[str, Any]) -> int:
    """Total listing pages; 1 when the hint is missing or unusable."""
    preloaded = get_preloaded_value(payload)
    if preloaded is None:
        return 1
    count = preloaded.get("pageCount")
    if count is None:
        count = preloaded.get("totalPages")
    if isinstance(count, bool) or not isinstance(count, (int, float)) or count < 1:
        return 1
    return int(count)


def _first_image(images: Any) -> Optional[str]:
    if not isinstance(images, list) or not images:
        return None
    first = images[0]
    if isinstance(first, str):
        return first
    if isinstance(first, dict) and isinstance(first.get("url"), str):
        return first["url"]
    return None


def _pick_image_url(variant: Dict[str, Any], product: Dict[str, Any]) -> Optional[str]:
    medium = variant.get("mediumImage")
    if isinstance(medium, str) and medium:
        return medium
    image = _first_image(variant.get("imageSet")) or _first_image(variant.get("images"))
    if image:
        return image
    medium = product.get("mediumImage")
    if isinstance(medium, str) and medium:
        return medium
    return None


def _is_variant_in_stock(variant: Dict[str, Any]) -> bool:
    # Unannotated variants are assumed purchasable.
    if isinstance(variant.get("isOnStock"), bool):
        return variant["isOnStock"]
    availability = variant.get("availability")
    if isinstance(availability, dict) and isinstance(availability.get("isOnStock"), bool):
        return availability["isOnStock"]
    if isinstance(variant.get("stockStatus"), str):
        return variant["stockStatus"].lower() != "outofstock"
    return True


def _first_present(source: Dict[str, Any], *keys: str) -> Any:
    for key in keys:
        value = source.get(key)
        if value is not None:
            return value
    return None


def _extract_sku_id(variant: Dict[str, Any]) -> Optional[str]:
    raw = _first_present(variant, "skuId", "sku", "key", "id")
    if raw is None:
        return None
    return str(raw) or None


def _extract_brand(product: Dict[str, Any]) -> Optional[str]:
    brands = product.get("brands")
    if isinstance(brands, str) and brands:
        return brands
    if isinstance(brands, list) and brands:
        first = brands[0]
        if isinstance(first, str):
            return first
        if isinstance(first, dict):
            return first.get("displayName") or first.get("name")
        return None
    brand = product.get("brand")
    if isinstance(brand, str) and brand:
        return brand
    return None


def _build_variants(product: Dict[str, Any], variants: List[Any]) -> List[Variant]:
    product_id = str(_first_present(product, "productId", "repositoryId", "id") or "unknown")
    brand = _extract_brand(product)
    product_url = _first_present(product, "relativeUrl", "_url", "url") or ""
    categories = normalize_categories(_first_present(product, "parentCategories", "categories"))

    results = []
    for variant in variants:
        if not isinstance(variant, dict):
            continue
        list_price = normalize_price(variant.get("listPrice"))
        if list_price is None or list_price <= 0:
            continue

        active_price = normalize_price(variant.get("activePrice"))
        sale_price = normalize_price(variant.get("salePrice"))
        best_price, discount = resolve_deal_prices(list_price, list_price, active_price, sale_price)

        display_name = (
            _first_present(variant, "displayName", "colorDescription")
            or _first_present(product, "displayName", "name")
            or "Unknown Product"
        )

        results.append(
            Variant(
                product_id=product_id,
                sku_id=_extract_sku_id(variant),
                display_name=str(display_name),
                brand=brand,
                list_price=list_price,
                active_price=active_price,
                sale_price=sale_price,
                best_price=best_price,
                discount_percentage=discount,
                image_url=_pick_image_url(variant, product),
                product_url=str(product_url),
                categories=categories,
                in_stock=_is_variant_in_stock(variant),
            )
        )
    return results


def _variants_or_self(record: Dict[str, Any], variants: Any) -> List[Any]:
    if isinstance(variants, list) and variants:
        return variants
    return [record]


def extract_product_variants(payload: Dict[str, Any]) -> List[Variant]:
    """Extract every priced variant from a decoded __NEXT_DATA__ payload."""
    preloaded = get_preloaded_value(payload)
    if preloaded is None:
        return []

    records = preloaded.get("records")
    if isinstance(records, list):
        results = []
        for record in records:
            if not isinstance(record, dict):
                continue
            variants = _variants_or_self(
                record,
                _first_present(record, "variants", "childSkus"),
            )
            results.extend(_build_variants(record, variants))
        return results

    product = preloaded.get("product")
    if isinstance(product, dict) and isinstance(product.get("gbProduct"), dict):
        gb_product = product["gbProduct"]
        variants = product.get("variants")
        if variants is None:
            variants = gb_product.get("variants")
        return _build_variants(gb_product, _variants_or_self(gb_product, variants))

    return []


def parse_next_data_page(html: str) -> ParseResult:
    """Parse one HTML page with the default __NEXT_DATA__ recipe."""
    payload = parse_next_data(html)
    if payload is None:
        return ParseResult(diagnostic="No __NEXT_DATA__ payload found")

    if is_listing_page(payload):
        page_type = "listing"
    elif is_product_page(payload):
        page_type = "product"
    else:
        page_type = "unknown"

    return ParseResult(
        variants=extract_product_variants(payload),
        page_type=page_type,
        page_count=get_page_count(payload) if page_type == "listing" else 1,
    )
