"""Schema engine: raw payload + ProductPageSchema -> canonical variants."""

from decimal import Decimal
from typing import Any, Dict, List, Optional

import structlog

from dealmonitor.scrapers.base import ParseResult, Variant
from dealmonitor.scrapers.factory import get_extractor_factory
from dealmonitor.scrapers.schema import FieldMappings, PathConfig, ProductPageSchema
from dealmonitor.scrapers.utils.normalizer import (
    is_usable_price,
    normalize_brand,
    normalize_categories,
    normalize_price,
    normalize_stock,
    resolve_deal_prices,
)
from dealmonitor.scrapers.utils.path_resolver import JsonValue, resolve_path

logger = structlog.get_logger(__name__)


def _resolve_price(source: Any, path: Optional[str]) -> Optional[Decimal]:
    if not path:
        return None
    return normalize_price(resolve_path(source, path))


def _resolve_text(source: Any, path: Optional[str]) -> Optional[str]:
    if not path:
        return None
    value = resolve_path(source, path)
    return None if value is None else str(value)


def _merge_variant(product: Dict[str, Any], item: Dict[str, Any]) -> Dict[str, Any]:
    """Overlay variant fields on the product; empty variant values never win."""
    merged = dict(product)
    for key, value in item.items():
        if value is None or value == "":
            continue
        merged[key] = value
    return merged


def _resolve_list_price(merged: Dict[str, Any], fields: FieldMappings) -> Optional[Decimal]:
    """List price, falling back to MSRP and then to a usable current price."""
    list_price = _resolve_price(merged, fields.list_price)
    if list_price is None and fields.msrp:
        list_price = _resolve_price(merged, fields.msrp)

    if list_price is None or list_price <= 0:
        for path in (fields.active_price, fields.sale_price):
            fallback = _resolve_price(merged, path)
            if is_usable_price(fallback):
                return fallback
    return list_price


def _resolve_stock(product: Any, item: Any, fields: FieldMappings) -> bool:
    if not fields.in_stock:
        return True
    product_stock = resolve_path(product, fields.in_stock)
    if product_stock is not None:
        return normalize_stock(product_stock)
    return normalize_stock(resolve_path(item, fields.in_stock))


def extract_variants_from_product(product: Any, paths: PathConfig) -> List[Variant]:
    """Build variants for one product record.

    With a ``variantsArray`` each variant is merged over the product record;
    otherwise the product itself is the only variant. Items without a
    positive list price are skipped.
    """
    fields = paths.fields
    variants = resolve_path(product, paths.variants_array) if paths.variants_array else None
    items = variants if isinstance(variants, list) and variants else [product]

    results = []
    for item in items:
        if item is not product and isinstance(product, dict) and isinstance(item, dict):
            merged = _merge_variant(product, item)
        else:
            merged = item

        list_price = _resolve_list_price(merged, fields)
        if list_price is None or list_price <= 0:
            continue

        reference_price = list_price
        msrp = _resolve_price(merged, fields.msrp)
        if msrp is not None and msrp > list_price:
            reference_price = msrp

        active_price = _resolve_price(merged, fields.active_price)
        if active_price is None:
            active_price = normalize_price(resolve_path(merged, "price"))
        sale_price = _resolve_price(merged, fields.sale_price)

        best_price, discount = resolve_deal_prices(
            reference_price, list_price, active_price, sale_price
        )

        product_id = resolve_path(merged, fields.product_id)
        display_name = resolve_path(merged, fields.display_name)

        results.append(
            Variant(
                product_id=str(product_id) if product_id is not None else "unknown",
                sku_id=_resolve_text(merged, fields.sku_id),
                display_name=str(display_name) if display_name is not None else "Unknown Product",
                description=_resolve_text(merged, fields.description),
                brand=normalize_brand(resolve_path(merged, fields.brand)) if fields.brand else None,
                list_price=reference_price,
                active_price=active_price,
                sale_price=sale_price,
                best_price=best_price,
                discount_percentage=discount,
                image_url=_resolve_text(merged, fields.image_url),
                product_url=_resolve_text(merged, fields.product_url) or "",
                categories=(
                    normalize_categories(resolve_path(merged, fields.categories))
                    if fields.categories
                    else []
                ),
                in_stock=_resolve_stock(product, item, fields),
            )
        )
    return results


def extract_from_data(data: JsonValue, paths: PathConfig) -> ParseResult:
    """Map an extracted tree to variants.

    Tries the products array (listing page), then the single product path,
    then the whole tree as one product.
    """
    products = resolve_path(data, paths.products_array)
    if isinstance(products, list) and products:
        variants = []
        for product in products:
            variants.extend(extract_variants_from_product(product, paths))
        return ParseResult(variants=variants, page_type="listing")

    if paths.single_product:
        product = resolve_path(data, paths.single_product)
        if product:
            return ParseResult(
                variants=extract_variants_from_product(product, paths),
                page_type="product",
            )

    direct = extract_variants_from_product(data, paths) if isinstance(data, dict) else []
    if direct:
        return ParseResult(variants=direct, page_type="product")

    return ParseResult(page_type="unknown")


def parse_with_schema(html: str, schema: ProductPageSchema) -> ParseResult:
    """Extract variants from an HTML page using a custom schema.

    ``api-json`` schemas are not HTML-driven and always yield an empty result
    here; use ``parse_from_api_data`` with the fetched JSON instead.
    """
    if schema.method == "api-json":
        return ParseResult(diagnostic="api-json schemas are parsed from API responses")

    extractor = get_extractor_factory().get_extractor(schema.method)
    if extractor is None:
        return ParseResult(diagnostic=f"No extractor for method {schema.method}")

    data = extractor.extract(html, schema.extraction)
    if not data:
        return ParseResult(diagnostic=f"{schema.method} extraction found nothing")

    result = extract_from_data(data, schema.paths)
    logger.debug(
        "schema_parsed",
        method=schema.method,
        page_type=result.page_type,
        variants=len(result.variants),
    )
    return result


def parse_from_api_data(data: JsonValue, schema: ProductPageSchema) -> ParseResult:
    """Extract variants from an already-decoded API response."""
    if not data:
        return ParseResult()
    return extract_from_data(data, schema.paths)
