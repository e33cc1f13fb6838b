"""Tests for price reconciliation in the feed aggregator."""

import asyncio

import pytest

from tradedash_app.config.defaults import FeedParams, ValidationRanges
from tradedash_app.data.models import ApplyStatus, QuoteSource
from tradedash_app.errors import FeedError
from tradedash_app.feeds.aggregator import PriceFeedAggregator

from ..helpers import FakeRestClient, make_quote


class IdleTickStream:
    """Stream double that connects nowhere; ticks are injected by the test."""

    def __init__(self):
        self.listened = []

    async def listen(self, asset, on_quote):
        self.listened.append(asset.symbol)
        await asyncio.Event().wait()


class GatedRestClient(FakeRestClient):
    """Holds every ticker response until the gate opens."""

    def __init__(self, clock):
        super().__init__(clock)
        self.gate = asyncio.Event()

    async def fetch_ticker(self, asset):
        quote = await super().fetch_ticker(asset)
        await self.gate.wait()
        return quote


@pytest.fixture
def streaming_aggregator(catalog, rest_client, clock):
    return PriceFeedAggregator(
        catalog, FeedParams(), ValidationRanges(), rest_client, stream=IdleTickStream(), clock=clock
    )


class TestApplyQuote:
    """Test reconciliation rules for single quotes."""

    def test_accepts_valid_quote(self, aggregator, clock):
        result = aggregator.apply_quote(make_quote("EUR/USD", 1.08, clock(), change_24h=0.2))

        assert result.accepted
        state = aggregator.get_current("EUR/USD")
        assert state.last_valid_price == 1.08
        assert state.is_valid
        assert state.change_24h == 0.2
        assert state.last_updated_at == clock()
        assert result.update.prev_price is None

    def test_out_of_range_keeps_price_and_flags_invalid(self, aggregator, clock):
        """A rejected quote never changes the accepted price."""
        aggregator.apply_quote(make_quote("EUR/USD", 1.08, clock()))
        clock.advance(1)

        result = aggregator.apply_quote(make_quote("EUR/USD", 2500.0, clock()))

        assert result.status == ApplyStatus.REJECTED
        state = aggregator.get_current("EUR/USD")
        assert state.last_valid_price == 1.08
        assert not state.is_valid
        assert state.last_rejected_price == 2500.0
        assert aggregator.reconciled_price("EUR/USD") is None
        assert aggregator.settlement_price("EUR/USD") == 1.08

    @pytest.mark.parametrize("price", [0.0, -5.0, float("nan"), float("inf")])
    def test_non_positive_or_non_finite_rejected(self, aggregator, clock, price):
        result = aggregator.apply_quote(make_quote("BTC/USD", price, clock()))

        assert result.status == ApplyStatus.REJECTED
        assert aggregator.get_current("BTC/USD").last_valid_price is None

    def test_next_valid_quote_clears_invalid_flag(self, aggregator, clock):
        aggregator.apply_quote(make_quote("XAU/USD", 2000.0, clock()))
        aggregator.apply_quote(make_quote("XAU/USD", 500000.0, clock.advance(1)))

        result = aggregator.apply_quote(make_quote("XAU/USD", 2010.0, clock.advance(1)))

        assert result.accepted
        assert result.update.prev_price == 2000.0
        assert aggregator.get_current("XAU/USD").is_valid

    def test_out_of_order_quote_dropped(self, aggregator, clock):
        """A slow early request cannot overwrite a fresher price."""
        early = clock()
        aggregator.apply_quote(make_quote("SOL/USD", 101.0, clock.advance(2)))

        result = aggregator.apply_quote(make_quote("SOL/USD", 99.0, early))

        assert result.status == ApplyStatus.OUT_OF_ORDER
        assert aggregator.get_current("SOL/USD").last_valid_price == 101.0

    def test_unknown_asset(self, aggregator, clock):
        result = aggregator.apply_quote(make_quote("DOGE/USD", 0.1, clock()))
        assert result.status == ApplyStatus.UNKNOWN_ASSET

    def test_stream_tick_for_unselected_asset_dropped(self, aggregator, clock):
        aggregator.select_asset("ETH/USD")

        result = aggregator.apply_quote(make_quote("BTC/USD", 50000.0, clock(), QuoteSource.STREAM))

        assert result.status == ApplyStatus.STALE_SELECTION

    def test_stream_tick_keeps_previous_daily_change(self, aggregator, clock):
        aggregator.select_asset("BTC/USD")
        aggregator.apply_quote(make_quote("BTC/USD", 50000.0, clock(), change_24h=2.5))

        aggregator.apply_quote(make_quote("BTC/USD", 50010.0, clock.advance(1), QuoteSource.STREAM, None))

        assert aggregator.get_current("BTC/USD").change_24h == 2.5

    def test_listener_failure_does_not_block_update(self, aggregator, clock):
        seen = []

        def broken(update):
            raise RuntimeError("boom")

        aggregator.subscribe(broken)
        aggregator.subscribe(seen.append)

        result = aggregator.apply_quote(make_quote("BTC/USD", 50000.0, clock()))

        assert result.accepted
        assert len(seen) == 1

    def test_get_current_is_live_reference(self, aggregator, clock):
        aggregator.apply_quote(make_quote("BTC/USD", 50000.0, clock()))
        state = aggregator.get_current("BTC/USD")

        aggregator.apply_quote(make_quote("BTC/USD", 50100.0, clock.advance(1)))

        assert state.last_valid_price == 50100.0


class TestSelection:
    """Test asset switching and the selection token."""

    @pytest.mark.asyncio
    async def test_late_response_for_previous_asset_ignored(self, catalog, clock):
        """Switching mid-fetch must not let the old response land."""
        rest = GatedRestClient(clock)
        aggregator = PriceFeedAggregator(catalog, FeedParams(), ValidationRanges(), rest, clock=clock)
        aggregator.select_asset("BTC/USD")
        rest.queue_price("BTC/USD", 50000.0)

        pending = asyncio.create_task(aggregator.poll_selected())
        await asyncio.sleep(0)

        aggregator.select_asset("ETH/USD")
        clock.advance(1)
        aggregator.apply_quote(make_quote("ETH/USD", 3000.0, clock()), aggregator.selection_token)

        rest.gate.set()
        result = await pending

        assert result.status == ApplyStatus.STALE_SELECTION
        assert aggregator.get_current("ETH/USD").last_valid_price == 3000.0
        assert aggregator.get_current("BTC/USD") is None

    def test_select_bumps_token_and_resets_state(self, aggregator, clock):
        aggregator.apply_quote(make_quote("BTC/USD", 50000.0, clock()))
        token = aggregator.selection_token

        aggregator.select_asset("BTC/USD")

        assert aggregator.selection_token == token + 1
        assert aggregator.get_current("BTC/USD") is None

    def test_select_unknown_asset_raises(self, aggregator):
        with pytest.raises(KeyError):
            aggregator.select_asset("DOGE/USD")

    @pytest.mark.asyncio
    async def test_switch_cancels_previous_tasks(self, streaming_aggregator):
        await streaming_aggregator.start()
        streaming_aggregator.select_asset("BTC/USD")
        old_tasks = list(streaming_aggregator._selection_tasks)
        await asyncio.sleep(0)

        streaming_aggregator.select_asset("ETH/USD")
        await asyncio.sleep(0)

        assert all(task.cancelled() or task.done() for task in old_tasks)
        assert len(streaming_aggregator._selection_tasks) == 3
        await streaming_aggregator.stop()


class TestStreamAuthority:
    """Test grace window and stream-over-REST precedence."""

    def test_rest_cached_during_grace_window(self, streaming_aggregator, clock):
        streaming_aggregator.select_asset("BTC/USD")
        assert streaming_aggregator.in_grace_window()

        result = streaming_aggregator.apply_quote(make_quote("BTC/USD", 50000.0, clock()))

        assert result.status == ApplyStatus.CACHED
        assert streaming_aggregator.background_quote("BTC/USD").price == 50000.0
        assert streaming_aggregator.reconciled_price("BTC/USD") is None

    def test_end_grace_window_promotes_cached_rest_quote(self, streaming_aggregator, clock):
        streaming_aggregator.select_asset("BTC/USD")
        streaming_aggregator.apply_quote(make_quote("BTC/USD", 50000.0, clock()))

        clock.advance(5)
        result = streaming_aggregator.end_grace_window()

        assert result.accepted
        assert streaming_aggregator.reconciled_price("BTC/USD") == 50000.0

    def test_live_stream_overrides_rest(self, streaming_aggregator, clock):
        streaming_aggregator.select_asset("BTC/USD")
        tick = streaming_aggregator.apply_quote(
            make_quote("BTC/USD", 50001.0, clock.advance(1), QuoteSource.STREAM, None)
        )
        assert tick.accepted
        assert not streaming_aggregator.in_grace_window()
        assert streaming_aggregator.is_stream_live("BTC/USD")

        rest = streaming_aggregator.apply_quote(make_quote("BTC/USD", 49000.0, clock.advance(1)))

        assert rest.status == ApplyStatus.CACHED
        assert streaming_aggregator.reconciled_price("BTC/USD") == 50001.0

    def test_silent_stream_hands_back_to_rest(self, streaming_aggregator, clock):
        streaming_aggregator.select_asset("BTC/USD")
        streaming_aggregator.apply_quote(make_quote("BTC/USD", 50001.0, clock(), QuoteSource.STREAM, None))

        clock.advance(11)
        result = streaming_aggregator.apply_quote(make_quote("BTC/USD", 50200.0, clock()))

        assert not streaming_aggregator.is_stream_live("BTC/USD")
        assert result.accepted

    def test_basket_assets_have_no_grace_window(self, streaming_aggregator, clock):
        streaming_aggregator.select_asset("EUR/USD")

        result = streaming_aggregator.apply_quote(make_quote("EUR/USD", 1.08, clock(), QuoteSource.BASKET))

        assert not streaming_aggregator.in_grace_window()
        assert result.accepted


class TestPolling:
    """Test REST polling entry points."""

    @pytest.mark.asyncio
    async def test_poll_selected(self, aggregator, rest_client):
        aggregator.select_asset("BTC/USD")
        rest_client.queue_price("BTC/USD", 50000.0, 1.5)

        result = await aggregator.poll_selected()

        assert result.accepted
        assert aggregator.get_current("BTC/USD").change_24h == 1.5

    @pytest.mark.asyncio
    async def test_fetch_error_keeps_previous_state(self, aggregator, rest_client, clock):
        aggregator.select_asset("BTC/USD")
        aggregator.apply_quote(make_quote("BTC/USD", 50000.0, clock()), aggregator.selection_token)
        rest_client.queue_error("BTC/USD")

        result = await aggregator.poll_selected()

        assert result is None
        assert aggregator.reconciled_price("BTC/USD") == 50000.0

    @pytest.mark.asyncio
    async def test_poll_basket_applies_every_quote(self, aggregator, rest_client, clock):
        rest_client.basket = [
            make_quote("EUR/USD", 1.08, clock(), QuoteSource.BASKET),
            make_quote("XAU/USD", 2300.0, clock(), QuoteSource.BASKET),
        ]

        results = await aggregator.poll_basket()

        assert all(r.accepted for r in results)
        assert aggregator.reconciled_price("XAU/USD") == 2300.0

    @pytest.mark.asyncio
    async def test_poll_basket_error_swallowed(self, aggregator, rest_client):
        rest_client.basket_error = FeedError("Basket endpoint reported failure")

        assert await aggregator.poll_basket() == []

    @pytest.mark.asyncio
    async def test_poll_watchlist_skips_selected(self, aggregator, rest_client):
        aggregator.select_asset("BTC/USD")
        for symbol in ("ETH/USD", "SOL/USD", "BNB/USD", "XRP/USD"):
            rest_client.queue_price(symbol, 100.0)

        results = await aggregator.poll_watchlist()

        assert "BTC/USD" not in rest_client.ticker_calls
        assert len(results) == 4
        assert aggregator.background_quote("ETH/USD").price == 100.0

    @pytest.mark.asyncio
    async def test_start_stop(self, aggregator):
        await aggregator.start()
        assert aggregator.running

        await aggregator.stop()

        assert not aggregator.running
        assert aggregator._background_tasks == []


class TestSettlementPrice:
    """Test the price read at trade expiry."""

    def test_survives_reselecting_the_asset(self, aggregator, clock):
        aggregator.select_asset("BTC/USD")
        aggregator.apply_quote(make_quote("BTC/USD", 51000.0, clock()))

        aggregator.select_asset("ETH/USD")
        aggregator.select_asset("BTC/USD")

        assert aggregator.get_current("BTC/USD") is None
        assert aggregator.reconciled_price("BTC/USD") is None
        assert aggregator.settlement_price("BTC/USD") == 51000.0

    def test_rejected_quote_does_not_move_it(self, aggregator, clock):
        aggregator.apply_quote(make_quote("EUR/USD", 1.08, clock()))
        aggregator.apply_quote(make_quote("EUR/USD", 5000.0, clock.advance(1)))

        assert aggregator.settlement_price("EUR/USD") == 1.08
