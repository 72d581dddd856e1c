"""JSON embedded in a <script> element (e.g. Next.js __NEXT_DATA__)."""

import json
from typing import Optional

from bs4 import BeautifulSoup

from dealmonitor.scrapers.base import BaseExtractor
from dealmonitor.scrapers.schema import ExtractionConfig
from dealmonitor.scrapers.utils.path_resolver import JsonValue

DEFAULT_SELECTOR = "script#__NEXT_DATA__"


class ScriptJsonExtractor(BaseExtractor):
    """Locate a script element by CSS selector and decode its body as JSON.

    Without a configured selector the Next.js ``script#__NEXT_DATA__`` blob
    is read. Selectors such as ``script#__NEXT_DATA__``, ``#initial-state`` or
    ``script[data-state="catalog"]`` are supported.
    """

    method = "script-json"

    def extract(self, raw: str, config: ExtractionConfig) -> Optional[JsonValue]:
        selector = config.selector or DEFAULT_SELECTOR
        soup = BeautifulSoup(raw, "html.parser")
        element = soup.select_one(selector)
        if element is None:
            self.logger.debug("script_not_found", selector=selector)
            return None

        text = element.string if element.string is not None else element.get_text()
        if not text or not text.strip():
            return None

        try:
            return json.loads(text)
        except ValueError as e:
            self.logger.warning("script_json_invalid", selector=selector, error=str(e))
            return None
