"""Tests for the HTML chunker and the raw-payload extractors."""

import json

from dealmonitor.scrapers.adapters import (
    HtmlDomExtractor,
    JsonLdExtractor,
    MetaTagsExtractor,
    ScriptJsonExtractor,
)
from dealmonitor.scrapers.factory import ExtractorFactory, get_extractor_factory
from dealmonitor.scrapers.schema import ExtractionConfig
from dealmonitor.scrapers.utils.html_chunker import (
    ItemSelector,
    RegexHtmlChunker,
    parse_item_selector,
)


LISTING_HTML = """
<html><body>
<div class="header"><div class="product-card">not in grid</div></div>
<ul id="grid">
  <li class="product-card featured" data-id="A1">
    <div class="name">Camp&amp;Hike Stove</div>
    <div class="price"><span>$49.99</span></div>
  </li>
  <li class="product-card" data-id="B2">
    <div class="name">Trail Lantern</div>
    <div class="price"><span>$19.50</span></div>
  </li>
  <li class="product-card">
    <div class="name">Gift Card</div>
  </li>
</ul>
</body></html>
"""


class TestHtmlChunker:

    def test_parse_item_selector(self):
        assert parse_item_selector("li.product-card") == ItemSelector("li", "product-card")
        assert parse_item_selector(".tile") == ItemSelector("div", "tile")
        assert parse_item_selector("ul#grid") == ItemSelector("ul", "", "grid")
        assert parse_item_selector("#grid") == ItemSelector("div", "", "grid")
        assert parse_item_selector("article") == ItemSelector("article")

    def test_nested_tags_of_same_name_stay_in_block(self):
        html = '<div class="card"><div class="inner"><div>x</div></div>tail</div><div class="card">two</div>'
        blocks = RegexHtmlChunker().find_blocks(html, ItemSelector("div", "card"))
        assert blocks == [
            '<div class="card"><div class="inner"><div>x</div></div>tail</div>',
            '<div class="card">two</div>',
        ]

    def test_class_matches_within_multiple_classes(self):
        blocks = RegexHtmlChunker().find_blocks(LISTING_HTML, ItemSelector("li", "product-card"))
        assert len(blocks) == 3
        assert 'data-id="A1"' in blocks[0]
        assert "Trail Lantern" not in blocks[0]

    def test_unbalanced_block_runs_to_end(self):
        html = '<section class="s"><section>open'
        blocks = RegexHtmlChunker().find_blocks(html, ItemSelector("section", "s"))
        assert blocks == [html]

    def test_narrow_by_id(self):
        container = RegexHtmlChunker().narrow(LISTING_HTML, ItemSelector("ul", "", "grid"))
        assert container.startswith('<ul id="grid">')
        assert container.endswith("</ul>")
        assert "not in grid" not in container


class TestHtmlDomExtractor:

    CONFIG = ExtractionConfig(
        method="html-dom",
        item_selector="li.product-card",
        container_selector="ul#grid",
        html_fields={
            "productId": r'data-id="([^"]+)"',
            "displayName": r'class="name">([^<]+)<',
            "listPrice": r"<span>([^<]+)</span>",
        },
    )

    def test_extracts_products_with_ids(self):
        data = HtmlDomExtractor().extract(LISTING_HTML, self.CONFIG)
        assert data == {
            "products": [
                {"productId": "A1", "displayName": "Camp&Hike Stove", "listPrice": "$49.99"},
                {"productId": "B2", "displayName": "Trail Lantern", "listPrice": "$19.50"},
            ]
        }

    def test_no_matching_items_gives_empty_products(self):
        config = self.CONFIG.model_copy(update={"item_selector": "article.tile"})
        assert HtmlDomExtractor().extract(LISTING_HTML, config) == {"products": []}

    def test_missing_container_searches_whole_page(self):
        config = self.CONFIG.model_copy(update={"container_selector": "div#missing"})
        data = HtmlDomExtractor().extract(LISTING_HTML, config)
        assert [p["productId"] for p in data["products"]] == ["A1", "B2"]

    def test_requires_item_selector_and_fields(self):
        config = ExtractionConfig(method="html-dom")
        assert HtmlDomExtractor().extract(LISTING_HTML, config) is None


class TestScriptJsonExtractor:

    def test_reads_script_by_selector(self):
        html = '<script id="state" type="application/json">{"items": [1, 2]}</script>'
        config = ExtractionConfig(method="script-json", selector="script#state")
        assert ScriptJsonExtractor().extract(html, config) == {"items": [1, 2]}

    def test_invalid_json_is_none(self):
        html = '<script id="state">{not json</script>'
        config = ExtractionConfig(method="script-json", selector="#state")
        assert ScriptJsonExtractor().extract(html, config) is None

    def test_missing_element_is_none(self):
        config = ExtractionConfig(method="script-json", selector="#nope")
        assert ScriptJsonExtractor().extract("<html></html>", config) is None

    def test_defaults_to_next_data_script(self):
        html = (
            '<script id="analytics">{"ignored": true}</script>'
            '<script id="__NEXT_DATA__" type="application/json">{"props": {"page": 1}}</script>'
        )
        config = ExtractionConfig(method="script-json")
        assert ScriptJsonExtractor().extract(html, config) == {"props": {"page": 1}}


class TestJsonLdExtractor:

    def _page(self, *documents):
        scripts = "".join(
            f'<script type="application/ld+json">{json.dumps(d)}</script>' for d in documents
        )
        return f"<html><head>{scripts}</head></html>"

    def test_first_matching_type(self):
        html = self._page(
            {"@type": "BreadcrumbList"},
            {"@type": ["Product", "Thing"], "name": "Stove"},
        )
        config = ExtractionConfig(method="json-ld", json_ld_type="Product")
        assert JsonLdExtractor().extract(html, config)["name"] == "Stove"

    def test_searches_graph(self):
        html = self._page({"@graph": [{"@type": "WebPage"}, {"@type": "Product", "sku": "S1"}]})
        config = ExtractionConfig(method="json-ld", json_ld_type="Product")
        assert JsonLdExtractor().extract(html, config)["sku"] == "S1"

    def test_skips_invalid_blocks(self):
        html = '<script type="application/ld+json">{oops</script>' + self._page({"@type": "Product"})
        config = ExtractionConfig(method="json-ld", json_ld_type="Product")
        assert JsonLdExtractor().extract(html, config) == {"@type": "Product"}

    def test_defaults_to_product_type(self):
        html = self._page(
            {"@type": "Organization", "name": "Summit Outfitters"},
            {"@type": "BreadcrumbList"},
            {"@type": "Product", "name": "Trail Lantern"},
        )
        config = ExtractionConfig(method="json-ld")
        assert JsonLdExtractor().extract(html, config)["name"] == "Trail Lantern"

    def test_no_product_block_is_none(self):
        html = self._page({"@type": "Organization"})
        assert JsonLdExtractor().extract(html, ExtractionConfig(method="json-ld")) is None


class TestMetaTagsExtractor:

    def test_property_and_name_keys(self):
        html = (
            '<meta property="og:title" content="Stove">'
            '<meta name="product:price:amount" content="49.99">'
            '<meta property="og:title" content="Duplicate">'
            '<meta charset="utf-8">'
        )
        config = ExtractionConfig(method="meta-tags")
        assert MetaTagsExtractor().extract(html, config) == {
            "og:title": "Stove",
            "product:price:amount": "49.99",
        }

    def test_no_tags_is_none(self):
        assert MetaTagsExtractor().extract("<html></html>", ExtractionConfig(method="meta-tags")) is None


class TestExtractorFactory:

    def test_default_methods_registered(self):
        methods = get_extractor_factory().get_registered_methods()
        assert set(methods) == {"script-json", "json-ld", "meta-tags", "html-dom"}

    def test_instances_are_cached(self):
        factory = get_extractor_factory()
        assert factory.get_extractor("json-ld") is factory.get_extractor("json-ld")

    def test_unknown_method(self):
        assert ExtractorFactory().get_extractor("api-json") is None
