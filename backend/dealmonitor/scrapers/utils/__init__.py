"""Scraper utilities for path lookup, normalization, chunking and throttling."""

from .path_resolver import resolve_path, resolve_simple_path
from .normalizer import (
    PriceNormalizer,
    compute_discount,
    decode_html_entities,
    normalize_brand,
    normalize_categories,
    normalize_price,
    normalize_stock,
    pick_best_price,
    resolve_deal_prices,
)
from .html_chunker import HtmlChunker, ItemSelector, RegexHtmlChunker, parse_item_selector
from .rate_limiter import IntervalRateLimiter
from .retry import fetch_retrying, page_retrying
from .url import resolve_full_url, validate_scrape_url
from .user_agents import API_USER_AGENT, USER_AGENTS, get_random_user_agent


__all__ = [
    # Path resolution
    "resolve_path",
    "resolve_simple_path",
    # Normalization
    "PriceNormalizer",
    "compute_discount",
    "decode_html_entities",
    "normalize_brand",
    "normalize_categories",
    "normalize_price",
    "normalize_stock",
    "pick_best_price",
    "resolve_deal_prices",
    # HTML chunking
    "HtmlChunker",
    "ItemSelector",
    "RegexHtmlChunker",
    "parse_item_selector",
    # Throttling and retries
    "IntervalRateLimiter",
    "fetch_retrying",
    "page_retrying",
    # URLs
    "resolve_full_url",
    "validate_scrape_url",
    # User agents
    "API_USER_AGENT",
    "USER_AGENTS",
    "get_random_user_agent",
]
