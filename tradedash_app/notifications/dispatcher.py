"""
Notification dispatcher.

Routes events to ephemeral toasts and persisted alerts:

    TradeOpened          → success toast
    TradeRejected        → error toast
    TradeWon / TradeLost → toast + persisted alert
    MovementToast        → warning toast (tier 1)
    MovementAlertRaised  → persisted alert (tier 2)

Delivery is fire-and-forget. Store and sink failures are logged and never
reach the caller, so a broken alert store cannot block settlement.
"""

import asyncio
import uuid
from collections import deque
from typing import Callable, Optional

import structlog

from ..config.defaults import NotificationParams
from ..delivery.base import BaseAlertSink
from ..errors import PersistenceError
from ..persistence.stores import AlertStore
from ..utils.time import Clock, add_seconds, utc_now
from .events import (
    EventKind,
    MovementAlertRaised,
    MovementToast,
    NotificationEvent,
    TradeLost,
    TradeOpened,
    TradeRejected,
    TradeWon,
)
from .models import AlertNotification, Severity, Toast

logger = structlog.get_logger(__name__)

AlertListener = Callable[[AlertNotification], None]


def _new_id() -> str:
    return uuid.uuid4().hex


def _money(amount: float) -> str:
    return f"${amount:,.2f}"


class NotificationDispatcher:
    """Turns lifecycle and movement events into toasts and persisted alerts."""

    def __init__(
        self,
        params: NotificationParams,
        alert_store: AlertStore,
        sinks: Optional[list[BaseAlertSink]] = None,
        clock: Clock = utc_now,
        id_factory: Callable[[], str] = _new_id
    ):
        self.params = params
        self.alert_store = alert_store
        self.sinks = list(sinks or [])
        self._clock = clock
        self._id_factory = id_factory
        self._toasts: deque[Toast] = deque(maxlen=params.max_toasts)
        self._listeners: list[AlertListener] = []
        self._pending: set[asyncio.Task] = set()

    def subscribe(self, listener: AlertListener) -> Callable[[], None]:
        """Register a listener for persisted alerts; returns an unsubscribe callable."""
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener)

    def dispatch(self, event: NotificationEvent) -> None:
        """Route one event. Never raises."""
        try:
            self._route(event)
        except Exception as e:
            logger.error("Notification dispatch failed", kind=getattr(event, "kind", None), error=str(e))

    def _route(self, event: NotificationEvent) -> None:
        if isinstance(event, TradeOpened):
            trade = event.trade
            self._toast(
                Severity.SUCCESS,
                f"{trade.direction.value.upper()} {trade.symbol} {_money(trade.stake)} "
                f"for {trade.duration_seconds}s at {trade.entry_price}",
                event.kind
            )

        elif isinstance(event, TradeRejected):
            self._toast(Severity.ERROR, event.message, event.kind)

        elif isinstance(event, (TradeWon, TradeLost)):
            trade = event.trade
            won = isinstance(event, TradeWon)
            if won:
                message = f"TRADE WON! {trade.symbol} +{_money(trade.profit_loss or 0.0)}"
            else:
                message = f"TRADE LOST {trade.symbol} -{_money(trade.stake)}"
            severity = Severity.SUCCESS if won else Severity.ERROR
            self._toast(severity, message, event.kind)
            self._persist(AlertNotification(
                id=self._id_factory(),
                kind=event.kind.value,
                severity=severity,
                message=message,
                created_at=self._clock(),
                trade_id=trade.id,
                symbol=trade.symbol,
            ))

        elif isinstance(event, MovementToast):
            self._toast(
                Severity.WARNING,
                f"{event.symbol} moved {event.change_pct:.2f}% ({event.prev_price} → {event.new_price})",
                event.kind
            )

        elif isinstance(event, MovementAlertRaised):
            alert = event.alert
            self._persist(AlertNotification(
                id=self._id_factory(),
                kind=event.kind.value,
                severity=Severity.WARNING,
                message=(
                    f"{alert.symbol} {alert.direction.value} {alert.change_pct:.2f}% "
                    f"({alert.prev_price} → {alert.new_price})"
                ),
                created_at=self._clock(),
                symbol=alert.symbol,
            ))

        else:
            logger.warning("Unknown notification event", event_type=type(event).__name__)

    def _toast(self, severity: Severity, message: str, kind: EventKind) -> Toast:
        now = self._clock()
        toast = Toast(
            id=self._id_factory(),
            severity=severity,
            message=message,
            kind=kind.value,
            created_at=now,
            expires_at=add_seconds(now, self.params.toast_seconds),
        )
        self._toasts.append(toast)
        logger.debug("Toast raised", kind=toast.kind, severity=severity.value, message=message)
        return toast

    def _persist(self, alert: AlertNotification) -> None:
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            self._store_alert(alert)
            self._broadcast(alert)
            self._deliver_to_sinks(alert)
            return

        task = asyncio.create_task(self._persist_async(alert))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _persist_async(self, alert: AlertNotification) -> None:
        await asyncio.to_thread(self._store_alert, alert)
        self._broadcast(alert)
        if self.sinks:
            await asyncio.to_thread(self._deliver_to_sinks, alert)

    def _store_alert(self, alert: AlertNotification) -> None:
        try:
            self.alert_store.insert(alert)
        except PersistenceError as e:
            logger.error(
                "Failed to persist alert",
                alert_id=alert.id,
                kind=alert.kind,
                error=str(e)
            )

    def _broadcast(self, alert: AlertNotification) -> None:
        for listener in list(self._listeners):
            try:
                listener(alert)
            except Exception as e:
                logger.error("Alert listener failed", alert_id=alert.id, error=str(e))

    def _deliver_to_sinks(self, alert: AlertNotification) -> None:
        record = alert.to_record()
        for sink in self.sinks:
            result = sink.deliver(record)
            logger.debug(
                "Alert delivered",
                alert_id=alert.id,
                sink=sink.name,
                status=result.status.value
            )

    async def drain(self) -> None:
        """Wait for persisted-alert tasks started so far."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    def active_toasts(self) -> list[Toast]:
        now = self._clock()
        return [t for t in self._toasts if not t.is_expired(now)]

    def prune(self) -> int:
        """Drop expired toasts; returns how many were removed."""
        now = self._clock()
        before = len(self._toasts)
        live = [t for t in self._toasts if not t.is_expired(now)]
        self._toasts.clear()
        self._toasts.extend(live)
        return before - len(live)

    async def run_pruner(self, interval: float = 1.0) -> None:
        while True:
            await asyncio.sleep(interval)
            self.prune()

    def close(self) -> None:
        for sink in self.sinks:
            sink.close()
