"""Tests for detail-page price verification."""

from decimal import Decimal
from unittest.mock import AsyncMock

from dealmonitor.scrapers.price_verifier import extract_detail_price, verify_price


class TestExtractDetailPrice:

    def test_final_price_input_wins(self):
        html = (
            '<input type="hidden" name="finalPrice" value="39.99">'
            '<meta property="product:price:amount" content="44.99">'
        )
        assert extract_detail_price(html) == Decimal("39.99")

    def test_meta_tag(self):
        html = '<meta property="product:price:amount" content="44.99">'
        assert extract_detail_price(html) == Decimal("44.99")

    def test_json_price(self):
        html = '<script>window.product = {"sku": "S1", "price": "12.50"};</script>'
        assert extract_detail_price(html) == Decimal("12.50")

    def test_zero_candidates_are_skipped(self):
        html = '<input id="finalPrice" value="0"><script>{"price": 18}</script>'
        assert extract_detail_price(html) == Decimal("18")

    def test_nothing_found(self):
        assert extract_detail_price("<html><body>Sold out</body></html>") is None


class TestVerifyPrice:

    async def test_within_tolerance(self):
        fetcher = AsyncMock()
        fetcher.fetch_text.return_value = '<meta property="product:price:amount" content="40.01">'

        result = await verify_price(fetcher, "https://shop.example.com/p/1", Decimal("40.00"))

        assert result.status == "verified"
        assert result.detail_price == Decimal("40.01")

    async def test_mismatch(self):
        fetcher = AsyncMock()
        fetcher.fetch_text.return_value = '<meta property="product:price:amount" content="89.00">'

        result = await verify_price(fetcher, "https://shop.example.com/p/1", Decimal("9.00"))

        assert result.status == "mismatch"
        assert result.detail_price == Decimal("89.00")

    async def test_fetch_failure_is_unverified(self):
        fetcher = AsyncMock()
        fetcher.fetch_text.return_value = None

        result = await verify_price(
            fetcher, "https://shop.example.com/p/1", Decimal("9.00"), headers={"Cookie": "sid=1"}
        )

        assert result.status == "unverified"
        assert result.detail_price is None
        fetcher.fetch_text.assert_awaited_once_with(
            "https://shop.example.com/p/1", headers={"Cookie": "sid=1"}
        )
