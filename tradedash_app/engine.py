"""
Trading session coordinator.

Wires the aggregator, staleness tracker, movement detector, ledger, trade
lifecycle manager and notification dispatcher together and owns their
start/stop lifecycle:

    Tick stream / REST → Aggregator → {Staleness, Movement, UI} → Lifecycle → Dispatcher
"""

import asyncio
import random
from dataclasses import dataclass
from typing import Any, Optional

import structlog

from .accounts.ledger import BalanceLedger
from .catalog.assets import AssetCatalog, default_catalog
from .config.alert_delivery import AlertDeliveryConfig, get_default_delivery_config
from .config.defaults import AppConfig, get_default_config
from .delivery.factory import create_sinks
from .feeds.aggregator import PriceFeedAggregator
from .feeds.rest_client import RestPriceClient
from .feeds.stream import TickStream
from .logging.config import bind_session_context, clear_session_context
from .metrics.models import MovementAlert
from .metrics.movement import MovementDetector
from .metrics.staleness import StalenessStatus, StalenessTracker
from .notifications.dispatcher import NotificationDispatcher
from .notifications.models import Toast
from .persistence.stores import (
    AlertStore,
    BalanceStore,
    InMemoryAlertStore,
    InMemoryBalanceStore,
    InMemoryTradeStore,
    TradeStore,
)
from .state.lifecycle import TradeLifecycleManager
from .state.models import AccountMode, OpenResult, Trade
from .utils.time import Clock, utc_now

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class SessionSnapshot:
    """Read-only view for a presentation layer."""
    selected_symbol: Optional[str]
    price: Optional[float]
    price_valid: bool
    change_24h: float
    staleness: StalenessStatus
    stream_live: bool
    account_mode: AccountMode
    balances: dict[AccountMode, float]
    active_trade: Optional[Trade]
    remaining_seconds: Optional[float]
    current_alert: Optional[MovementAlert]
    toasts: list[Toast]
    history: list[Trade]


class TradingSession:
    """
    Session controller for one dashboard.

    Every collaborator is constructed here or injected; there is no module
    level client or cache.
    """

    def __init__(
        self,
        config: Optional[AppConfig] = None,
        catalog: Optional[AssetCatalog] = None,
        trade_store: Optional[TradeStore] = None,
        balance_store: Optional[BalanceStore] = None,
        alert_store: Optional[AlertStore] = None,
        rest_client: Optional[RestPriceClient] = None,
        stream: Optional[TickStream] = None,
        delivery_config: Optional[AlertDeliveryConfig] = None,
        clock: Clock = utc_now,
        rng: Optional[random.Random] = None,
        enable_stream: bool = True
    ) -> None:
        self.config = config or get_default_config()
        self.catalog = catalog or default_catalog()
        self._clock = clock

        self.trade_store = trade_store or InMemoryTradeStore()
        self.balance_store = balance_store or InMemoryBalanceStore()
        self.alert_store = alert_store or InMemoryAlertStore()

        self.rest_client = rest_client or RestPriceClient(self.config.feed, self.catalog, clock=clock)
        if stream is None and enable_stream:
            stream = TickStream(self.config.feed, clock=clock)

        self.aggregator = PriceFeedAggregator(
            self.catalog,
            self.config.feed,
            self.config.validation,
            self.rest_client,
            stream=stream,
            clock=clock,
        )
        self.staleness = StalenessTracker(
            self.config.staleness,
            clock=clock,
            is_stream_live=self.aggregator.is_stream_live,
            refresher=self.aggregator.refresh,
        )
        self.dispatcher = NotificationDispatcher(
            self.config.notifications,
            self.alert_store,
            sinks=create_sinks(delivery_config or get_default_delivery_config()),
            clock=clock,
        )
        self.movement = MovementDetector(self.config.movement, self.dispatcher, clock=clock)
        self.ledger = BalanceLedger(
            self.balance_store, self.config.accounts.account_id, self.config.accounts
        )
        self.lifecycle = TradeLifecycleManager(
            self.catalog,
            self.aggregator,
            self.staleness,
            self.ledger,
            self.trade_store,
            self.dispatcher,
            self.config.trading,
            account_mode=AccountMode(self.config.accounts.default_mode),
            clock=clock,
            rng=rng,
        )

        self.aggregator.subscribe(self.staleness.on_price_update)
        self.aggregator.subscribe(self.movement.on_price_update)

        self._tasks: list[asyncio.Task] = []
        self._started = False

    async def start(self, symbol: Optional[str] = None) -> None:
        """Load balances, resume active trades and start every timer."""
        if self._started:
            return
        self._started = True

        await asyncio.to_thread(self.ledger.load)
        bind_session_context(account_id=self.config.accounts.account_id)
        await self.lifecycle.resume()

        if symbol is not None:
            self.aggregator.select_asset(symbol)
        await self.aggregator.start()

        self._tasks = [
            asyncio.create_task(self.staleness.run(), name="staleness"),
            asyncio.create_task(self.dispatcher.run_pruner(), name="toast-pruner"),
        ]
        logger.info(
            "Trading session started",
            selected=symbol,
            account_mode=self.lifecycle.account_mode.value,
            balances={m.value: b for m, b in self.ledger.snapshot().items()}
        )

    async def stop(self) -> None:
        """Stop timers and close clients; active trades resume on next start."""
        if not self._started:
            return
        self._started = False

        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []

        await self.aggregator.stop()
        await self.lifecycle.shutdown()
        await self.dispatcher.drain()
        self.dispatcher.close()
        await self.rest_client.aclose()
        logger.info("Trading session stopped")
        clear_session_context()

    async def __aenter__(self) -> "TradingSession":
        await self.start()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.stop()

    def select_asset(self, symbol: str) -> None:
        self.aggregator.select_asset(symbol)

    async def open_trade(
        self,
        direction: Any,
        stake: float,
        duration_seconds: int,
        symbol: Optional[str] = None
    ) -> OpenResult:
        """Open a trade on ``symbol``, defaulting to the selected asset."""
        if symbol is None:
            selected = self.aggregator.selected
            symbol = selected.symbol if selected else ""
        return await self.lifecycle.open(symbol, direction, stake, duration_seconds)

    async def force_refresh(self) -> None:
        await self.staleness.force_refresh()

    def set_account_mode(self, mode: Any) -> AccountMode:
        return self.lifecycle.set_account_mode(mode)

    def dismiss_alert(self, alert_id: str) -> Optional[MovementAlert]:
        return self.movement.dismiss(alert_id)

    def trade_now(self, alert_id: str) -> Optional[MovementAlert]:
        """Dismiss a movement alert and select its asset."""
        alert = self.movement.trade_now(alert_id)
        if alert is not None:
            self.aggregator.select_asset(alert.symbol)
        return alert

    def snapshot(self) -> SessionSnapshot:
        selected = self.aggregator.selected
        symbol = selected.symbol if selected else None
        state = self.aggregator.get_current(symbol) if symbol else None
        active = self.lifecycle.active_trade

        return SessionSnapshot(
            selected_symbol=symbol,
            price=state.last_valid_price if state else None,
            price_valid=bool(state and state.is_valid),
            change_24h=state.change_24h if state else 0.0,
            staleness=self.staleness.status(symbol) if symbol else StalenessStatus.UNKNOWN,
            stream_live=self.aggregator.is_stream_live(symbol) if symbol else False,
            account_mode=self.lifecycle.account_mode,
            balances=self.ledger.snapshot(),
            active_trade=active,
            remaining_seconds=self.lifecycle.remaining_seconds(active.id) if active else None,
            current_alert=self.movement.current_alert(),
            toasts=self.dispatcher.active_toasts(),
            history=self.lifecycle.history(),
        )
