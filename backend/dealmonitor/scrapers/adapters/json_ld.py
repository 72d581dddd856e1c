"""schema.org JSON-LD blocks."""

import json
from typing import Any, Iterator, Optional

from bs4 import BeautifulSoup

from dealmonitor.scrapers.base import BaseExtractor
from dealmonitor.scrapers.schema import ExtractionConfig
from dealmonitor.scrapers.utils.path_resolver import JsonValue


DEFAULT_JSON_LD_TYPE = "Product"


def _type_matches(node: Any, wanted: str) -> bool:
    if not isinstance(node, dict):
        return False
    node_type = node.get("@type")
    if isinstance(node_type, list):
        return wanted in node_type
    return node_type == wanted


def _candidates(document: Any) -> Iterator[Any]:
    """Top-level objects of a JSON-LD document, then their @graph members."""
    items = document if isinstance(document, list) else [document]
    for item in items:
        yield item
        if isinstance(item, dict) and isinstance(item.get("@graph"), list):
            yield from item["@graph"]


class JsonLdExtractor(BaseExtractor):
    """Return the first JSON-LD object whose @type matches ``jsonLdType`` (default Product)."""

    method = "json-ld"

    def extract(self, raw: str, config: ExtractionConfig) -> Optional[JsonValue]:
        wanted = config.json_ld_type or DEFAULT_JSON_LD_TYPE
        soup = BeautifulSoup(raw, "html.parser")
        for script in soup.find_all("script", attrs={"type": "application/ld+json"}):
            text = script.string if script.string is not None else script.get_text()
            if not text:
                continue
            try:
                document = json.loads(text)
            except ValueError:
                self.logger.debug("json_ld_block_invalid")
                continue

            for candidate in _candidates(document):
                if _type_matches(candidate, wanted):
                    return candidate

        self.logger.debug("json_ld_not_found", json_ld_type=wanted)
        return None
