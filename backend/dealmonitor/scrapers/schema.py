"""Product page schema documents.

A schema tells the engine how to pull a JSON tree out of a site's pages
(``extraction``) and where the product fields live inside that tree
(``paths``). Documents are stored as camelCase JSON; the models accept
either the camelCase aliases or the Python field names.
"""

import json
from dataclasses import dataclass
from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

EXTRACTION_METHODS = ("script-json", "json-ld", "meta-tags", "html-dom", "api-json")

ExtractionMethod = Literal["script-json", "json-ld", "meta-tags", "html-dom", "api-json"]


class SchemaModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


class HtmlPaginationConfig(SchemaModel):
    """Template pagination for html-dom listings (``{offset}`` placeholder)."""

    url_template: str
    page_size: int = Field(default=32, gt=0)
    max_pages: int = Field(default=50, gt=0)


class LoginConfig(SchemaModel):
    """Form login used when an html-dom page hides prices from guests."""

    url: str
    fields: Dict[str, str] = Field(default_factory=dict)
    session_cookie: str
    cookie_header: Optional[str] = None


class ApiPaginationConfig(SchemaModel):
    """Offset/page pagination for api-json endpoints."""

    style: Literal["offset", "page"] = "offset"
    pagination_in: Literal["body", "query"] = "body"
    offset_param: str = "offset"
    limit_param: str = "limit"
    page_size: int = Field(default=120, gt=0)
    total_path: str = "total"
    cursor_template: Optional[str] = None


class ExtractionConfig(SchemaModel):
    method: ExtractionMethod
    # script-json
    selector: Optional[str] = None
    # json-ld
    json_ld_type: Optional[str] = None
    # api-json
    api_url: Optional[str] = None
    api_method: Literal["GET", "POST"] = "POST"
    api_params: Dict[str, Any] = Field(default_factory=dict)
    api_headers: Dict[str, str] = Field(default_factory=dict)
    api_body: Optional[Dict[str, Any]] = None
    pagination: Optional[ApiPaginationConfig] = None
    # html-dom
    item_selector: Optional[str] = None
    html_fields: Dict[str, str] = Field(default_factory=dict)
    container_selector: Optional[str] = None
    html_pagination: Optional[HtmlPaginationConfig] = None
    login: Optional[LoginConfig] = None


class FieldMappings(SchemaModel):
    """Canonical field name -> source path (pipe-separated alternatives)."""

    product_id: str
    display_name: str
    list_price: str
    sku_id: Optional[str] = None
    description: Optional[str] = None
    brand: Optional[str] = None
    msrp: Optional[str] = None
    active_price: Optional[str] = None
    sale_price: Optional[str] = None
    image_url: Optional[str] = None
    product_url: Optional[str] = None
    categories: Optional[str] = None
    in_stock: Optional[str] = None


class PathConfig(SchemaModel):
    products_array: str
    single_product: Optional[str] = None
    variants_array: Optional[str] = None
    fields: FieldMappings


class ProductPageSchema(SchemaModel):
    extraction: ExtractionConfig
    paths: PathConfig

    @property
    def method(self) -> str:
        return self.extraction.method


@dataclass(frozen=True)
class SchemaParseResult:
    """Outcome of validating a schema document; never a partial schema."""

    valid: bool
    schema: Optional[ProductPageSchema] = None
    error: Optional[str] = None


_PRELOADED = "props.pageProps.data.pageFolder.dataSourceConfigurations.0.preloadedValue"

# Recipe for storefronts that ship their catalog in a Next.js __NEXT_DATA__ blob.
DEFAULT_SCHEMA = ProductPageSchema(
    extraction=ExtractionConfig(method="script-json", selector="script#__NEXT_DATA__"),
    paths=PathConfig(
        products_array=f"{_PRELOADED}.records",
        single_product=f"{_PRELOADED}.product.gbProduct",
        variants_array="variants",
        fields=FieldMappings(
            product_id="productId|repositoryId|id",
            sku_id="skuId|sku|key|id",
            display_name="displayName|colorDescription|name",
            brand="brands|brand",
            list_price="listPrice",
            active_price="activePrice",
            sale_price="salePrice",
            image_url="mediumImage|imageSet.0.url|imageSet.0|images.0.url|images.0",
            product_url="relativeUrl|_url|url",
            categories="parentCategories|categories",
            in_stock="isOnStock|availability.isOnStock|stockStatus",
        ),
    ),
)


def _invalid(message: str) -> SchemaParseResult:
    return SchemaParseResult(valid=False, error=message)


def _structural_error(document: Dict[str, Any]) -> Optional[str]:
    """First structural problem in a decoded schema document, or None."""
    extraction = document.get("extraction")
    if not isinstance(extraction, dict):
        return 'Missing "extraction" object'

    method = extraction.get("method")
    if method not in EXTRACTION_METHODS:
        return (
            'extraction.method must be "script-json", "json-ld", "meta-tags", '
            '"api-json", or "html-dom"'
        )
    if method == "api-json" and not isinstance(extraction.get("apiUrl"), str):
        return "extraction.apiUrl is required for api-json method"
    if method == "html-dom":
        if not isinstance(extraction.get("itemSelector"), str):
            return "extraction.itemSelector is required for html-dom method"
        html_fields = extraction.get("htmlFields")
        if not isinstance(html_fields, dict) or not html_fields:
            return "extraction.htmlFields is required for html-dom method"

    paths = document.get("paths")
    if not isinstance(paths, dict):
        return 'Missing "paths" object'
    if not isinstance(paths.get("productsArray"), str):
        return "paths.productsArray must be a string"

    fields = paths.get("fields")
    if not isinstance(fields, dict):
        return 'Missing "paths.fields" object'
    for required in ("productId", "displayName", "listPrice"):
        if not isinstance(fields.get(required), str):
            return f"paths.fields.{required} is required"
    return None


def _format_validation_error(exc: ValidationError) -> str:
    first = exc.errors()[0]
    location = ".".join(str(part) for part in first.get("loc", ()))
    return f"{location}: {first.get('msg', 'invalid value')}" if location else first.get("msg", "")


def parse_schema_json(raw: str) -> SchemaParseResult:
    """Parse and validate a schema document.

    Args:
        raw: Schema JSON text

    Returns:
        SchemaParseResult with ``valid`` and either ``schema`` or ``error``
    """
    try:
        document = json.loads(raw)
    except (TypeError, ValueError) as e:
        return _invalid(f"Invalid JSON: {e}")

    if not isinstance(document, dict):
        return _invalid("Schema must be a JSON object")

    error = _structural_error(document)
    if error:
        return _invalid(error)

    try:
        schema = ProductPageSchema.model_validate(document)
    except ValidationError as e:
        return _invalid(_format_validation_error(e))

    return SchemaParseResult(valid=True, schema=schema)
