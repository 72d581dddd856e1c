"""Schemas for the scrape job, progress, schema validation and preview endpoints."""

from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------


class ScrapeJobRequest(BaseModel):
    """Optional scoping for a triggered job."""

    website_id: Optional[str] = Field(None, description="Only scrape this website")
    filter_id: Optional[str] = Field(None, description="Only evaluate this filter")


class SchemaValidateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    # "schema_json" would shadow a BaseModel method
    product_schema: str = Field(
        ..., alias="schema_json", description="Product page schema document as a JSON string"
    )


class PreviewRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    url: str = Field(..., description="Page to parse (first page only)")
    product_schema: Optional[str] = Field(
        None,
        alias="schema_json",
        description="Schema to parse with; the default __NEXT_DATA__ parser is used when omitted",
    )


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------


class ScrapeErrorResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    url: str
    message: str


class ScrapeResultResponse(BaseModel):
    """Summary of a finished job run."""

    model_config = ConfigDict(from_attributes=True)

    total_products_encountered: int
    new_deals_found: int
    duration_ms: int
    errors: List[ScrapeErrorResponse] = []


class ScrapeProgressResponse(BaseModel):
    """Live progress of the current (or last) job."""

    model_config = ConfigDict(from_attributes=True)

    status: str
    current_page: int
    total_pages: int
    total_products: int
    unique_products: int
    new_deals: int
    current_website: Optional[str] = None
    elapsed_ms: int
    error_message: Optional[str] = None


class CancelResponse(BaseModel):
    cancelled: bool


class SchemaValidateResponse(BaseModel):
    valid: bool
    error: Optional[str] = None


class VariantResponse(BaseModel):
    """A parsed variant as shown in a URL preview."""

    model_config = ConfigDict(from_attributes=True)

    product_id: str
    sku_id: Optional[str] = None
    composite_id: str
    display_name: str
    brand: Optional[str] = None
    list_price: Decimal
    active_price: Optional[Decimal] = None
    sale_price: Optional[Decimal] = None
    best_price: Decimal
    discount_percentage: Decimal
    image_url: Optional[str] = None
    product_url: str
    categories: List[str] = []
    in_stock: bool


class PreviewResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    page_type: str
    page_count: int
    diagnostic: Optional[str] = None
    variants: List[VariantResponse] = []
