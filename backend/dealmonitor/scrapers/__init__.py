"""Scrape-and-match engine.

This package provides:
- The canonical Variant model and the extractor interface
- Product page schema documents and their validation
- Factory mapping extraction methods to extractor instances

The orchestrator lives in ``scraper_service`` and is imported from there.
"""

from .base import BaseExtractor, ParseResult, Variant, compute_composite_id
from .factory import ExtractorFactory, extractor_factory, get_extractor_factory
from .schema import DEFAULT_SCHEMA, ProductPageSchema, SchemaParseResult, parse_schema_json

__all__ = [
    # Data structures
    "Variant",
    "ParseResult",
    "compute_composite_id",
    # Extractors
    "BaseExtractor",
    "ExtractorFactory",
    "extractor_factory",
    "get_extractor_factory",
    # Schema
    "DEFAULT_SCHEMA",
    "ProductPageSchema",
    "SchemaParseResult",
    "parse_schema_json",
]
