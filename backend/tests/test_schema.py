"""Tests for schema document validation."""

import json

import pytest

from dealmonitor.scrapers.schema import DEFAULT_SCHEMA, parse_schema_json


def _document(**extraction):
    extraction.setdefault("method", "script-json")
    return {
        "extraction": extraction,
        "paths": {
            "productsArray": "props.items",
            "fields": {
                "productId": "id",
                "displayName": "name",
                "listPrice": "price.list",
            },
        },
    }


class TestParseSchemaJson:

    def test_valid_script_json(self):
        result = parse_schema_json(json.dumps(_document(selector="#state")))
        assert result.valid is True
        assert result.error is None
        assert result.schema.method == "script-json"
        assert result.schema.extraction.selector == "#state"
        assert result.schema.paths.fields.list_price == "price.list"

    def test_valid_api_json_with_pagination(self):
        document = _document(
            method="api-json",
            apiUrl="https://api.example.com/search",
            apiMethod="GET",
            apiParams={"q": "boots"},
            pagination={"paginationIn": "query", "pageSize": 48, "totalPath": "meta.total"},
        )
        result = parse_schema_json(json.dumps(document))
        assert result.valid
        pagination = result.schema.extraction.pagination
        assert pagination.pagination_in == "query"
        assert pagination.page_size == 48
        assert pagination.offset_param == "offset"

    def test_valid_html_dom_with_login(self):
        document = _document(
            method="html-dom",
            itemSelector="li.card",
            htmlFields={"productId": 'data-id="([^"]+)"'},
            login={"url": "https://shop.example.com/login", "sessionCookie": "sid"},
        )
        result = parse_schema_json(json.dumps(document))
        assert result.valid
        assert result.schema.extraction.login.session_cookie == "sid"

    @pytest.mark.parametrize(
        "raw, message",
        [
            ("[1, 2]", "Schema must be a JSON object"),
            ('{"paths": {}}', 'Missing "extraction" object'),
            (
                json.dumps(_document(method="api-json")),
                "extraction.apiUrl is required for api-json method",
            ),
            (
                json.dumps(_document(method="html-dom", htmlFields={"productId": "(x)"})),
                "extraction.itemSelector is required for html-dom method",
            ),
            (
                json.dumps(_document(method="html-dom", itemSelector="li.card", htmlFields={})),
                "extraction.htmlFields is required for html-dom method",
            ),
            ('{"extraction": {"method": "script-json"}}', 'Missing "paths" object'),
            (
                '{"extraction": {"method": "json-ld"}, "paths": {"productsArray": 3}}',
                "paths.productsArray must be a string",
            ),
            (
                '{"extraction": {"method": "json-ld"}, "paths": {"productsArray": "x"}}',
                'Missing "paths.fields" object',
            ),
        ],
    )
    def test_structural_errors(self, raw, message):
        result = parse_schema_json(raw)
        assert result.valid is False
        assert result.schema is None
        assert result.error == message

    def test_unknown_method(self):
        result = parse_schema_json(json.dumps(_document(method="xpath")))
        assert not result.valid
        assert result.error.startswith("extraction.method must be")

    def test_missing_required_field(self):
        document = _document()
        del document["paths"]["fields"]["listPrice"]
        result = parse_schema_json(json.dumps(document))
        assert result.error == "paths.fields.listPrice is required"

    def test_invalid_json(self):
        result = parse_schema_json("{nope")
        assert not result.valid
        assert result.error.startswith("Invalid JSON:")

    def test_model_validation_error_is_reported(self):
        document = _document(
            method="api-json",
            apiUrl="https://api.example.com",
            pagination={"pageSize": 0},
        )
        result = parse_schema_json(json.dumps(document))
        assert not result.valid
        assert "pagination" in result.error


class TestDefaultSchema:

    def test_reads_next_data_script(self):
        assert DEFAULT_SCHEMA.method == "script-json"
        assert DEFAULT_SCHEMA.extraction.selector == "script#__NEXT_DATA__"
        assert DEFAULT_SCHEMA.paths.products_array.endswith(".records")
