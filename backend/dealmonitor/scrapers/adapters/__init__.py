"""Extraction strategies for raw HTML payloads, plus the default parser."""

from .script_json import ScriptJsonExtractor
from .json_ld import JsonLdExtractor
from .meta_tags import MetaTagsExtractor
from .html_dom import HtmlDomExtractor
from .next_data import extract_product_variants, parse_next_data, parse_next_data_page

__all__ = [
    "ScriptJsonExtractor",
    "JsonLdExtractor",
    "MetaTagsExtractor",
    "HtmlDomExtractor",
    "extract_product_variants",
    "parse_next_data",
    "parse_next_data_page",
]
