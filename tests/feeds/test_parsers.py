"""Tests for feed payload parsers."""

import pytest

from tradedash_app.data.models import QuoteSource
from tradedash_app.data.parsers import (
    parse_basket_payload,
    parse_json_payload,
    parse_stream_message,
    parse_ticker_payload,
)
from tradedash_app.errors import FeedError, MalformedPayloadError


class TestParseJsonPayload:

    def test_object(self):
        assert parse_json_payload(b'{"p": "1.5"}') == {"p": "1.5"}

    @pytest.mark.parametrize("raw", [b"not json", b"[1, 2]", b""])
    def test_rejects_non_objects(self, raw):
        with pytest.raises(MalformedPayloadError):
            parse_json_payload(raw)


class TestParseTicker:

    def test_string_price_is_coerced(self, catalog, clock):
        quote = parse_ticker_payload(
            catalog.get("ETH/USD"), {"success": True, "price": "3050.25", "change24h": "0.8"}, clock()
        )
        assert quote.price == 3050.25
        assert quote.change_24h == 0.8

    def test_missing_change_defaults_to_zero(self, catalog, clock):
        quote = parse_ticker_payload(catalog.get("ETH/USD"), {"success": True, "price": 3000}, clock())
        assert quote.change_24h == 0.0

    def test_missing_price(self, catalog, clock):
        with pytest.raises(MalformedPayloadError):
            parse_ticker_payload(catalog.get("ETH/USD"), {"success": True}, clock())

    def test_boolean_price(self, catalog, clock):
        with pytest.raises(MalformedPayloadError):
            parse_ticker_payload(catalog.get("ETH/USD"), {"success": True, "price": True}, clock())

    def test_failure_flag(self, catalog, clock):
        with pytest.raises(FeedError):
            parse_ticker_payload(catalog.get("ETH/USD"), {"success": False, "price": 1}, clock())


class TestParseBasket:

    def test_malformed_entry_is_skipped(self, catalog, clock):
        payload = {
            "success": True,
            "data": {
                "EUR/USD": {"price": "abc"},
                "GBP/USD": {"price": 1.27, "change": 0.05},
                "Silver": "oops",
                "Unknown": {"price": 1.0},
            },
        }

        quotes = parse_basket_payload(catalog, payload, clock())

        assert [q.symbol for q in quotes] == ["GBP/USD"]

    def test_missing_data(self, catalog, clock):
        with pytest.raises(MalformedPayloadError):
            parse_basket_payload(catalog, {"success": True}, clock())


class TestParseStreamMessage:

    def test_trade_event(self, catalog, clock):
        raw = '{"e": "trade", "s": "BTCUSDT", "p": "50000.10", "q": "0.01"}'

        quote = parse_stream_message(catalog.get("BTC/USD"), raw, clock())

        assert quote.price == 50000.10
        assert quote.change_24h is None
        assert quote.source == QuoteSource.STREAM

    def test_event_without_price(self, catalog, clock):
        assert parse_stream_message(catalog.get("BTC/USD"), '{"result": null, "id": 1}', clock()) is None
