"""
Error handling tests for the price and trade pipeline.

Tests cover the error hierarchy, rejection reason codes, and recovery from
feed failures without touching the accepted price.
"""

import pytest

from tradedash_app.errors import (
    DeliveryError,
    FeedError,
    FeedNetworkError,
    InsufficientBalanceError,
    MalformedPayloadError,
    PersistenceError,
    PreconditionError,
    PriceUnavailableError,
    PriceValidationError,
    StateTransitionError,
    SystemFailureError,
    TradeAlreadyActiveError,
    TradeValidationError,
)

from ..helpers import make_quote


class TestErrorClassification:
    """Test error classification system."""

    def test_feed_error_hierarchy(self):
        """Feed errors are recoverable and carry their own context."""
        base_error = FeedError("base error")
        assert base_error.recoverable is True
        assert base_error.context == {}

        network_error = FeedNetworkError("timeout", url="https://example.test", status_code=503)
        assert isinstance(network_error, FeedError)
        assert network_error.status_code == 503

        malformed = MalformedPayloadError("bad json", raw_data="{", expected_format="json")
        assert isinstance(malformed, FeedError)
        assert malformed.expected_format == "json"

        out_of_range = PriceValidationError("too high", symbol="EUR/USD", price=50.0, bounds=(0.5, 2.0))
        assert out_of_range.bounds == (0.5, 2.0)

    def test_system_failure_error_hierarchy(self):
        """System failures are never recoverable."""
        state_error = StateTransitionError("invalid transition", current_state="won",
                                           attempted_transition="active")
        assert state_error.recoverable is False
        assert state_error.current_state == "won"

        persistence_error = PersistenceError("disk full", operation="insert", target="trades")
        assert isinstance(persistence_error, SystemFailureError)
        assert persistence_error.operation == "insert"

        delivery_error = DeliveryError("bad url", delivery_method="webhook")
        assert isinstance(delivery_error, SystemFailureError)
        assert delivery_error.delivery_method == "webhook"

    @pytest.mark.parametrize("error,reason", [
        (TradeAlreadyActiveError("busy", active_trade_id="t1"), "trade_active"),
        (TradeValidationError("bad stake", field="stake", value=0), "validation"),
        (InsufficientBalanceError("broke", balance=10.0, stake=100.0), "insufficient_balance"),
        (PriceUnavailableError("stale", symbol="BTC/USD", staleness="expired"), "price_unavailable"),
    ])
    def test_precondition_reason_codes(self, error, reason):
        assert isinstance(error, PreconditionError)
        assert error.reason == reason
        assert error.recoverable is True

    def test_error_context_preservation(self):
        error = FeedError("failed", context={"symbol": "BTC/USD", "attempt": 3})
        assert error.context["attempt"] == 3
        assert str(error) == "failed"


class TestFeedErrorRecovery:
    """Test that feed failures never disturb the accepted price."""

    @pytest.mark.asyncio
    async def test_network_error_keeps_last_price(self, aggregator, rest_client, clock):
        aggregator.select_asset("BTC/USD")
        rest_client.queue_price("BTC/USD", 50000.0)
        await aggregator.poll_selected()

        clock.advance(2)
        rest_client.queue_error("BTC/USD", FeedNetworkError("connection reset"))
        result = await aggregator.poll_selected()

        assert result is None
        assert aggregator.get_current("BTC/USD").last_valid_price == 50000.0
        assert aggregator.get_current("BTC/USD").is_valid

    @pytest.mark.asyncio
    async def test_basket_failure_is_absorbed(self, aggregator, rest_client):
        rest_client.basket_error = FeedError("Basket endpoint reported failure")

        assert await aggregator.poll_basket() == []

    def test_rejection_then_recovery(self, aggregator, clock):
        aggregator.apply_quote(make_quote("XAU/USD", 2000.0, clock()))
        clock.advance(1)
        aggregator.apply_quote(make_quote("XAU/USD", 500_000.0, clock()))
        assert not aggregator.get_current("XAU/USD").is_valid

        clock.advance(1)
        result = aggregator.apply_quote(make_quote("XAU/USD", 2010.0, clock()))

        assert result.accepted
        assert result.update.prev_price == 2000.0
        assert aggregator.reconciled_price("XAU/USD") == 2010.0
