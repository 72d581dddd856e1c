"""Tests for dot-path resolution with pipe fallbacks."""

from dealmonitor.scrapers.utils.path_resolver import resolve_path, resolve_simple_path


DATA = {
    "product": {
        "id": "A1",
        "name": "",
        "title": "Camp Stove",
        "stock": 0,
        "active": False,
        "images": [{"url": "https://cdn.example.com/1.jpg"}, "second.jpg"],
    },
    "records": [{"id": 1}, {"id": 2}],
}


class TestResolveSimplePath:

    def test_nested_object(self):
        assert resolve_simple_path(DATA, "product.id") == "A1"

    def test_numeric_segment_indexes_list(self):
        assert resolve_simple_path(DATA, "records.1.id") == 2
        assert resolve_simple_path(DATA, "product.images.0.url") == "https://cdn.example.com/1.jpg"

    def test_index_out_of_range_is_none(self):
        assert resolve_simple_path(DATA, "records.5.id") is None

    def test_non_numeric_segment_on_list_is_none(self):
        assert resolve_simple_path(DATA, "records.first") is None

    def test_walking_into_scalar_is_none(self):
        assert resolve_simple_path(DATA, "product.id.value") is None

    def test_missing_key_is_none(self):
        assert resolve_simple_path(DATA, "product.missing.deeper") is None

    def test_empty_path_returns_object(self):
        assert resolve_simple_path(DATA, "") is DATA


class TestResolvePath:

    def test_first_alternative_wins(self):
        assert resolve_path(DATA, "product.id|product.title") == "A1"

    def test_skips_missing_and_empty_string(self):
        assert resolve_path(DATA, "product.sku|product.name|product.title") == "Camp Stove"

    def test_zero_and_false_are_values(self):
        assert resolve_path(DATA, "product.stock|product.title") == 0
        assert resolve_path(DATA, "product.active|product.title") is False

    def test_alternatives_are_trimmed(self):
        assert resolve_path(DATA, "product.sku | product.title") == "Camp Stove"

    def test_nothing_found(self):
        assert resolve_path(DATA, "a|b.c") is None

    def test_none_object_or_path(self):
        assert resolve_path(None, "product.id") is None
        assert resolve_path(DATA, None) is None
        assert resolve_path(DATA, "") is None
