"""Product cards scraped straight out of server-rendered HTML."""

import re
from typing import Optional

from dealmonitor.scrapers.base import BaseExtractor
from dealmonitor.scrapers.schema import ExtractionConfig
from dealmonitor.scrapers.utils.html_chunker import (
    HtmlChunker,
    RegexHtmlChunker,
    parse_item_selector,
)
from dealmonitor.scrapers.utils.normalizer import decode_html_entities
from dealmonitor.scrapers.utils.path_resolver import JsonValue


class HtmlDomExtractor(BaseExtractor):
    """Split the page into item chunks and apply one regex per field.

    Each ``htmlFields`` pattern must contain a capture group; group 1 is
    trimmed and entity-decoded. Chunks without a ``productId`` are dropped.
    The result is ``{"products": [...]}`` so schemas map it with
    ``productsArray: "products"``.
    """

    method = "html-dom"

    def __init__(self, chunker: Optional[HtmlChunker] = None):
        super().__init__()
        self.chunker = chunker or RegexHtmlChunker()

    def extract(self, raw: str, config: ExtractionConfig) -> Optional[JsonValue]:
        if not config.item_selector or not config.html_fields:
            return None

        search_html = raw
        if config.container_selector:
            container = self.chunker.narrow(raw, parse_item_selector(config.container_selector))
            if container is None:
                self.logger.warning(
                    "container_not_found",
                    container_selector=config.container_selector,
                )
            else:
                search_html = container
                self.logger.debug(
                    "container_narrowed",
                    container_selector=config.container_selector,
                    original_chars=len(raw),
                    narrowed_chars=len(container),
                )

        selector = parse_item_selector(config.item_selector)
        chunks = self.chunker.find_blocks(search_html, selector)
        if not chunks:
            self.logger.warning(
                "item_selector_no_match",
                item_selector=config.item_selector,
                class_present=bool(selector.class_name) and selector.class_name in search_html,
                html_chars=len(search_html),
            )
            return {"products": []}

        patterns = {
            name: re.compile(pattern, re.IGNORECASE)
            for name, pattern in config.html_fields.items()
        }
        products = []
        for chunk in chunks:
            product = {}
            for name, pattern in patterns.items():
                match = pattern.search(chunk)
                if match and match.groups() and match.group(1):
                    product[name] = decode_html_entities(match.group(1).strip())
            if product.get("productId"):
                products.append(product)

        if not products:
            self.logger.warning(
                "items_without_product_id",
                item_selector=config.item_selector,
                matched=len(chunks),
                product_id_pattern=config.html_fields.get("productId"),
            )
        return {"products": products}
