"""
Trade lifecycle manager.

Drives each trade through PENDING → ACTIVE → WON/LOST:

- ``open`` checks preconditions in a fixed order, reserves the stake,
  persists the trade and schedules a countdown task keyed by trade id and
  absolute expiry.
- ``settle`` runs exactly once per trade id. The active slot is released
  and the id recorded before the first await, so a countdown firing while a
  manual settle is in progress cannot settle twice.

Only one trade can be active or submitting at a time.
"""

import asyncio
import random
import uuid
from collections import deque
from typing import Any, Callable, Optional

import structlog

from ..accounts.ledger import BalanceLedger
from ..catalog.assets import AssetCatalog
from ..config.defaults import TradingParams
from ..errors import (
    InsufficientBalanceError,
    PersistenceError,
    PreconditionError,
    PriceUnavailableError,
    TradeAlreadyActiveError,
    TradeValidationError,
)
from ..feeds.aggregator import PriceFeedAggregator
from ..logging.config import get_trade_logger, log_trade_transition
from ..metrics.staleness import StalenessTracker
from ..notifications.dispatcher import NotificationDispatcher
from ..notifications.events import TradeLost, TradeOpened, TradeRejected, TradeWon
from ..persistence.stores import TradeStore
from ..utils.time import Clock, add_seconds, seconds_until, utc_now
from .machine import decide_outcome
from .models import AccountMode, Direction, OpenResult, Trade, TradeStatus

logger = structlog.get_logger(__name__)
trade_logger = get_trade_logger(__name__)


class TradeLifecycleManager:
    """Owns open and settle for fixed-duration trades."""

    def __init__(
        self,
        catalog: AssetCatalog,
        aggregator: PriceFeedAggregator,
        staleness: StalenessTracker,
        ledger: BalanceLedger,
        trade_store: TradeStore,
        dispatcher: NotificationDispatcher,
        params: TradingParams,
        account_mode: AccountMode = AccountMode.PRACTICE,
        clock: Clock = utc_now,
        rng: Optional[random.Random] = None,
        id_factory: Callable[[], str] = lambda: uuid.uuid4().hex
    ):
        self.catalog = catalog
        self.aggregator = aggregator
        self.staleness = staleness
        self.ledger = ledger
        self.trade_store = trade_store
        self.dispatcher = dispatcher
        self.params = params
        self._account_mode = account_mode
        self._clock = clock
        self._rng = rng or random.Random()
        self._id_factory = id_factory

        self._active: Optional[Trade] = None
        self._submitting = False
        self._unsettled: dict[str, Trade] = {}
        self._settled: set[str] = set()
        self._countdowns: dict[str, asyncio.Task] = {}
        self._history: deque[Trade] = deque(maxlen=params.history_size)

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def active_trade(self) -> Optional[Trade]:
        return self._active

    @property
    def is_busy(self) -> bool:
        return self._submitting or self._active is not None

    @property
    def account_mode(self) -> AccountMode:
        return self._account_mode

    def set_account_mode(self, mode: Any) -> AccountMode:
        """Switch the account used by subsequent trades; open trades keep theirs."""
        self._account_mode = AccountMode(mode)
        logger.info("Account mode changed", mode=self._account_mode.value)
        return self._account_mode

    def history(self) -> list[Trade]:
        """Trades of this session, most recent first."""
        return list(self._history)

    def remaining_seconds(self, trade_id: str) -> Optional[float]:
        """Seconds until expiry for an unsettled trade, None otherwise."""
        trade = self._unsettled.get(trade_id)
        if trade is None:
            return None
        return seconds_until(trade.expires_at, self._clock())

    # ------------------------------------------------------------------
    # Open
    # ------------------------------------------------------------------

    async def open(
        self,
        symbol: str,
        direction: Any,
        stake: float,
        duration_seconds: int
    ) -> OpenResult:
        """
        Open a trade on the reconciled price of ``symbol``.

        Returns:
            OpenResult with the active trade, or the PreconditionError /
            PersistenceError that prevented it. Nothing is mutated on rejection.
        """
        if self.is_busy:
            active_id = self._active.id if self._active else None
            return self._reject(TradeAlreadyActiveError(
                "A trade is already active" if active_id else "A trade is being submitted",
                active_trade_id=active_id
            ), symbol)

        self._submitting = True
        try:
            try:
                trade = self._build_trade(symbol, direction, stake, duration_seconds)
            except PreconditionError as e:
                return self._reject(e, symbol)

            return await self._reserve_and_persist(trade)
        finally:
            self._submitting = False

    def _build_trade(self, symbol: str, direction: Any, stake: Any, duration_seconds: Any) -> Trade:
        asset = self.catalog.find(symbol)
        if asset is None:
            raise TradeValidationError(f"Unknown asset {symbol}", field="symbol", value=symbol)

        try:
            parsed_direction = Direction.parse(direction)
        except ValueError:
            raise TradeValidationError(
                f"Invalid direction {direction!r}", field="direction", value=direction
            )

        if duration_seconds not in self.params.allowed_durations:
            raise TradeValidationError(
                f"Duration {duration_seconds}s is not offered",
                field="duration_seconds",
                value=duration_seconds
            )

        try:
            stake = float(stake)
        except (TypeError, ValueError):
            raise TradeValidationError(f"Invalid stake {stake!r}", field="stake", value=stake)
        if not self.params.min_stake <= stake <= self.params.max_stake:
            raise TradeValidationError(
                f"Stake must be between {self.params.min_stake:g} and {self.params.max_stake:g}",
                field="stake",
                value=stake
            )

        mode = self._account_mode
        balance = self.ledger.balance(mode)
        if stake > balance:
            raise InsufficientBalanceError(
                f"Insufficient {mode.value} balance: {balance:.2f} < {stake:.2f}",
                balance=balance,
                stake=stake
            )

        entry_price = self.aggregator.reconciled_price(symbol)
        report = self.staleness.report(symbol)
        if entry_price is None:
            raise PriceUnavailableError(
                f"No valid price for {symbol}", symbol=symbol, staleness=report.status.value
            )
        if not report.tradable:
            raise PriceUnavailableError(
                f"Price for {symbol} is {report.status.value}",
                symbol=symbol,
                staleness=report.status.value
            )

        now = self._clock()
        return Trade(
            id=self._id_factory(),
            account_mode=mode,
            symbol=symbol,
            direction=parsed_direction,
            stake=stake,
            entry_price=entry_price,
            duration_seconds=int(duration_seconds),
            opened_at=now,
            expires_at=add_seconds(now, duration_seconds),
            payout_rate=asset.payout_rate,
        )

    async def _reserve_and_persist(self, pending: Trade) -> OpenResult:
        trade = pending.with_status(TradeStatus.ACTIVE)

        try:
            await self.ledger.debit_async(trade.account_mode, trade.stake)
        except ValueError as e:
            return self._reject(InsufficientBalanceError(
                str(e), balance=self.ledger.balance(trade.account_mode), stake=trade.stake
            ), trade.symbol)
        except PersistenceError as e:
            return self._reject(e, trade.symbol)

        try:
            await asyncio.to_thread(self.trade_store.create, trade)
        except PersistenceError as e:
            # Memory must match the pre-open balance; the next successful
            # write stores the absolute value again.
            await self.ledger.credit_async(trade.account_mode, trade.stake, rollback_on_failure=False)
            return self._reject(e, trade.symbol)

        self._activate(trade)
        log_trade_transition(
            trade_logger,
            trade.id,
            TradeStatus.PENDING.value,
            TradeStatus.ACTIVE.value,
            "open",
            context={
                "symbol": trade.symbol,
                "direction": trade.direction.value,
                "stake": trade.stake,
                "entry_price": trade.entry_price,
                "expires_at": trade.expires_at.isoformat(),
                "account_mode": trade.account_mode.value,
            }
        )
        self.dispatcher.dispatch(TradeOpened(trade=trade))
        return OpenResult.opened(trade)

    def _activate(self, trade: Trade) -> None:
        self._active = trade
        self._unsettled[trade.id] = trade
        self._record_history(trade)
        self._schedule_countdown(trade)

    def _reject(self, error: Exception, symbol: str) -> OpenResult:
        result = OpenResult.rejected(error)
        log = logger.error if isinstance(error, PersistenceError) else logger.info
        log(
            "Trade rejected",
            symbol=symbol,
            reason=result.reason,
            error=str(error)
        )
        self.dispatcher.dispatch(TradeRejected(reason=result.reason, message=str(error), symbol=symbol))
        return result

    # ------------------------------------------------------------------
    # Countdown and settle
    # ------------------------------------------------------------------

    def _schedule_countdown(self, trade: Trade) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("No running loop, countdown not scheduled", trade_id=trade.id)
            return
        self._countdowns[trade.id] = loop.create_task(
            self._countdown(trade), name=f"countdown-{trade.id}"
        )

    async def _countdown(self, trade: Trade) -> None:
        while True:
            remaining = seconds_until(trade.expires_at, self._clock())
            if remaining <= 0:
                break
            await asyncio.sleep(min(self.params.countdown_tick_seconds, remaining))
        self._countdowns.pop(trade.id, None)
        # Settlement completes even if the countdown is cancelled.
        await asyncio.shield(self.settle(trade.id))

    async def settle(self, trade_id: str) -> Optional[Trade]:
        """
        Settle an unsettled trade. Later calls for the same id return None.

        The exit price is the last validated price of the traded asset,
        falling back to the entry price so an active trade always reaches a
        terminal status.
        """
        if trade_id in self._settled:
            logger.debug("Ignoring repeated settle", trade_id=trade_id)
            return None
        trade = self._unsettled.pop(trade_id, None)
        if trade is None:
            logger.warning("Settle requested for unknown trade", trade_id=trade_id)
            return None

        self._settled.add(trade_id)
        if self._active is not None and self._active.id == trade_id:
            self._active = None
        task = self._countdowns.pop(trade_id, None)
        if task is not None and task is not asyncio.current_task():
            task.cancel()

        outcome = decide_outcome(
            trade.direction,
            trade.stake,
            trade.payout_rate,
            trade.entry_price,
            self.aggregator.settlement_price(trade.symbol),
            self._rng,
            self.params.stochastic_win_probability
        )
        status = TradeStatus.WON if outcome.won else TradeStatus.LOST
        settled = trade.with_settlement(
            status,
            exit_price=outcome.exit_price,
            closed_at=self._clock(),
            profit_loss=outcome.profit_loss
        )

        # Stake was reserved at open; a win returns it with the profit.
        if outcome.won:
            await self.ledger.credit_async(
                trade.account_mode,
                round(trade.stake + outcome.profit_loss, 2),
                rollback_on_failure=False
            )

        try:
            await asyncio.to_thread(self.trade_store.update, settled)
        except PersistenceError as e:
            logger.error(
                "Failed to persist settled trade",
                trade_id=trade_id,
                status=status.value,
                error=str(e)
            )

        self._record_history(settled)
        log_trade_transition(
            trade_logger,
            trade_id,
            TradeStatus.ACTIVE.value,
            status.value,
            "expiry",
            context={
                "symbol": trade.symbol,
                "entry_price": trade.entry_price,
                "exit_price": outcome.exit_price,
                "profit_loss": outcome.profit_loss,
                "directional_win": outcome.directional_win,
                "override_applied": outcome.override_applied,
                "used_entry_fallback": outcome.used_entry_fallback,
            }
        )
        self.dispatcher.dispatch(TradeWon(trade=settled) if outcome.won else TradeLost(trade=settled))
        return settled

    def _record_history(self, trade: Trade) -> None:
        for index, existing in enumerate(self._history):
            if existing.id == trade.id:
                self._history[index] = trade
                return
        self._history.appendleft(trade)

    # ------------------------------------------------------------------
    # Session lifecycle
    # ------------------------------------------------------------------

    async def resume(self) -> list[Trade]:
        """
        Reload recent trades from the store and restart countdowns for
        trades still active there. Expired ones settle on the next tick.
        """
        recent = await asyncio.to_thread(self.trade_store.list_recent, self.params.history_size)
        for trade in reversed(recent):
            self._record_history(trade)

        resumed = []
        for trade in recent:
            if trade.status != TradeStatus.ACTIVE or trade.id in self._unsettled:
                continue
            self._unsettled[trade.id] = trade
            if self._active is None:
                self._active = trade
            self._schedule_countdown(trade)
            resumed.append(trade)

        if resumed:
            logger.info("Resumed active trades", trade_ids=[t.id for t in resumed])
        return resumed

    async def shutdown(self) -> None:
        """Cancel countdowns; unsettled trades stay active in the store."""
        tasks = list(self._countdowns.values())
        for task in tasks:
            task.cancel()
        self._countdowns.clear()
        await asyncio.gather(*tasks, return_exceptions=True)
