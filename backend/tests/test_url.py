"""Tests for URL validation and resolution."""

import pytest

from dealmonitor.scrapers.utils.url import resolve_full_url, validate_scrape_url


class TestValidateScrapeUrl:

    def test_trims_whitespace(self):
        result = validate_scrape_url("  https://shop.example.com/c/deals \n")
        assert result.valid
        assert result.url == "https://shop.example.com/c/deals"

    @pytest.mark.parametrize(
        "raw, error",
        [
            (None, "URL is required"),
            ("   ", "URL is required"),
            ("shop.example.com/deals", "URL must start with http:// or https://"),
            ("ftp://shop.example.com", "URL must start with http:// or https://"),
            ("https://", "URL has no host"),
        ],
    )
    def test_rejected(self, raw, error):
        result = validate_scrape_url(raw)
        assert not result.valid
        assert result.error == error

    def test_scheme_is_case_insensitive(self):
        assert validate_scrape_url("HTTPS://shop.example.com").valid


class TestResolveFullUrl:

    @pytest.mark.parametrize(
        "url, expected",
        [
            ("/p/boot", "https://shop.example.com/p/boot"),
            ("p/boot", "https://shop.example.com/p/boot"),
            ("//cdn.example.com/i.jpg", "https://cdn.example.com/i.jpg"),
            ("http://other.example.com/x", "http://other.example.com/x"),
            (None, None),
            ("", ""),
        ],
    )
    def test_resolution(self, url, expected):
        assert resolve_full_url(url, "https://shop.example.com") == expected
