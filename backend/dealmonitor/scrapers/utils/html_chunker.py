"""Splitting raw HTML into per-element chunks by a simple selector.

Only ``tag.class``, ``tag#id``, ``.class``, ``#id`` and bare ``tag``
selectors are supported. Chunks end at the matching closing tag, found by
counting nested opening and closing tags of the same name, so that a card
never swallows its siblings.
"""

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional, Pattern


@dataclass(frozen=True)
class ItemSelector:
    """A parsed ``tag.class`` / ``tag#id`` selector."""

    tag_name: str
    class_name: str = ""
    element_id: Optional[str] = None


def parse_item_selector(selector: str) -> ItemSelector:
    """Parse a simple CSS selector into tag + class or id.

    Examples:
        >>> parse_item_selector("li.product-card")
        ItemSelector(tag_name='li', class_name='product-card', element_id=None)
        >>> parse_item_selector("#results")
        ItemSelector(tag_name='div', class_name='', element_id='results')
    """
    selector = selector.strip()
    if "#" in selector:
        tag, _, element_id = selector.partition("#")
        return ItemSelector(tag_name=tag or "div", element_id=element_id)
    if "." not in selector:
        return ItemSelector(tag_name=selector)
    tag, _, class_name = selector.partition(".")
    return ItemSelector(tag_name=tag or "div", class_name=class_name)


def _opening_tag_pattern(selector: ItemSelector) -> Pattern[str]:
    tag = re.escape(selector.tag_name)
    if selector.element_id:
        return re.compile(
            rf"<{tag}[^>]*id=[\"']{re.escape(selector.element_id)}[\"'][^>]*>",
            re.IGNORECASE,
        )
    if selector.class_name:
        return re.compile(
            rf"<{tag}[^>]*class=[\"'][^\"']*\b{re.escape(selector.class_name)}\b[^\"']*[\"'][^>]*>",
            re.IGNORECASE,
        )
    return re.compile(rf"<{tag}(?:\s[^>]*)?>", re.IGNORECASE)


class HtmlChunker(ABC):
    """Interface for locating selector-matched elements in raw HTML."""

    @abstractmethod
    def find_blocks(self, html: str, selector: ItemSelector) -> List[str]:
        """Return the outer HTML of every element matching the selector."""

    def narrow(self, html: str, selector: ItemSelector) -> Optional[str]:
        """Return the outer HTML of the first matching element, or None."""
        blocks = self.find_blocks(html, selector)
        return blocks[0] if blocks else None


class RegexHtmlChunker(HtmlChunker):
    """Depth-counting chunker working directly on the HTML string."""

    def find_blocks(self, html: str, selector: ItemSelector) -> List[str]:
        opening = _opening_tag_pattern(selector)
        tag = re.escape(selector.tag_name)
        open_any = re.compile(rf"<{tag}[\s>/]", re.IGNORECASE)
        close_any = re.compile(rf"</{tag}\s*>", re.IGNORECASE)

        blocks = []
        for match in opening.finditer(html):
            end = self._find_block_end(html, match.end(), open_any, close_any)
            blocks.append(html[match.start():end])
        return blocks

    def narrow(self, html: str, selector: ItemSelector) -> Optional[str]:
        match = _opening_tag_pattern(selector).search(html)
        if not match:
            return None
        tag = re.escape(selector.tag_name)
        end = self._find_block_end(
            html,
            match.end(),
            re.compile(rf"<{tag}[\s>/]", re.IGNORECASE),
            re.compile(rf"</{tag}\s*>", re.IGNORECASE),
        )
        return html[match.start():end]

    @staticmethod
    def _find_block_end(
        html: str,
        position: int,
        open_any: Pattern[str],
        close_any: Pattern[str],
    ) -> int:
        """Index just past the closing tag balancing an already-open element.

        Unbalanced markup runs to the end of the document.
        """
        depth = 1
        end = len(html)
        while depth > 0 and position < len(html):
            next_close = close_any.search(html, position)
            if next_close is None:
                break
            next_open = open_any.search(html, position)
            if next_open is not None and next_open.start() < next_close.start():
                depth += 1
                position = next_open.end()
            else:
                depth -= 1
                position = next_close.end()
                if depth == 0:
                    end = next_close.end()
        return end

