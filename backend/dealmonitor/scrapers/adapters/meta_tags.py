"""<meta> name/property -> content pairs (Open Graph, product:price, ...)."""

from typing import Optional

from bs4 import BeautifulSoup

from dealmonitor.scrapers.base import BaseExtractor
from dealmonitor.scrapers.schema import ExtractionConfig
from dealmonitor.scrapers.utils.path_resolver import JsonValue


class MetaTagsExtractor(BaseExtractor):
    """Flatten all meta tags into a dict keyed by property or name.

    The first occurrence of a key wins. Returns None when the page has no
    usable meta tags.
    """

    method = "meta-tags"

    def extract(self, raw: str, config: ExtractionConfig) -> Optional[JsonValue]:
        soup = BeautifulSoup(raw, "html.parser")
        tags = {}
        for meta in soup.find_all("meta"):
            key = meta.get("property") or meta.get("name")
            content = meta.get("content")
            if not key or content is None:
                continue
            tags.setdefault(key, content)
        return tags or None
