"""Pytest configuration and shared fixtures."""

import pytest
import pytest_asyncio

from tradedash_app.accounts.ledger import BalanceLedger
from tradedash_app.catalog.assets import default_catalog
from tradedash_app.config.alert_delivery import AlertDeliveryConfig
from tradedash_app.config.defaults import (
    AccountParams,
    AppConfig,
    FeedParams,
    MovementParams,
    NotificationParams,
    StalenessParams,
    TradingParams,
    ValidationRanges,
)
from tradedash_app.engine import TradingSession
from tradedash_app.feeds.aggregator import PriceFeedAggregator
from tradedash_app.metrics.movement import MovementDetector
from tradedash_app.metrics.staleness import StalenessTracker
from tradedash_app.notifications.dispatcher import NotificationDispatcher
from tradedash_app.persistence.stores import (
    InMemoryAlertStore,
    InMemoryBalanceStore,
    InMemoryTradeStore,
)
from tradedash_app.state.lifecycle import TradeLifecycleManager
from tradedash_app.utils.time import ManualClock

from .helpers import START_TIME, FakeRestClient, FixedRandom


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock(START_TIME)


@pytest.fixture
def catalog():
    return default_catalog()


@pytest.fixture
def feed_params() -> FeedParams:
    return FeedParams()


@pytest.fixture
def trading_params() -> TradingParams:
    return TradingParams(countdown_tick_seconds=0.01)


@pytest.fixture
def rest_client(clock) -> FakeRestClient:
    return FakeRestClient(clock)


@pytest.fixture
def aggregator(catalog, feed_params, rest_client, clock) -> PriceFeedAggregator:
    return PriceFeedAggregator(catalog, feed_params, ValidationRanges(), rest_client, clock=clock)


@pytest.fixture
def staleness(aggregator, clock) -> StalenessTracker:
    tracker = StalenessTracker(
        StalenessParams(),
        clock=clock,
        is_stream_live=aggregator.is_stream_live,
        refresher=aggregator.refresh,
    )
    aggregator.subscribe(tracker.on_price_update)
    return tracker


@pytest.fixture
def trade_store() -> InMemoryTradeStore:
    return InMemoryTradeStore()


@pytest.fixture
def balance_store() -> InMemoryBalanceStore:
    return InMemoryBalanceStore()


@pytest.fixture
def alert_store() -> InMemoryAlertStore:
    return InMemoryAlertStore()


@pytest.fixture
def dispatcher(alert_store, clock) -> NotificationDispatcher:
    return NotificationDispatcher(NotificationParams(), alert_store, clock=clock)


@pytest.fixture
def movement(dispatcher, clock) -> MovementDetector:
    return MovementDetector(MovementParams(), dispatcher, clock=clock)


@pytest.fixture
def ledger(balance_store) -> BalanceLedger:
    ledger = BalanceLedger(balance_store, "test-account", AccountParams())
    ledger.load()
    return ledger


@pytest.fixture
def losing_rng() -> FixedRandom:
    """Stochastic draw never rescues a wrong direction."""
    return FixedRandom(0.99)


@pytest_asyncio.fixture
async def lifecycle(catalog, aggregator, staleness, ledger, trade_store, dispatcher,
                    trading_params, clock, losing_rng):
    manager = TradeLifecycleManager(
        catalog, aggregator, staleness, ledger, trade_store, dispatcher,
        trading_params, clock=clock, rng=losing_rng,
    )
    yield manager
    await manager.shutdown()
    await dispatcher.drain()


@pytest_asyncio.fixture
async def session(rest_client, clock, losing_rng):
    """Session with the tick stream disabled and REST served by FakeRestClient."""
    trading_session = TradingSession(
        config=AppConfig(trading=TradingParams(countdown_tick_seconds=0.01)),
        rest_client=rest_client,
        delivery_config=AlertDeliveryConfig(destinations=[], enabled=False),
        clock=clock,
        rng=losing_rng,
        enable_stream=False,
    )
    trading_session.ledger.load()
    yield trading_session
    await trading_session.stop()
    await trading_session.lifecycle.shutdown()
    await trading_session.dispatcher.drain()
