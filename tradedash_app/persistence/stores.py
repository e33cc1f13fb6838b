"""
Store interfaces and in-memory implementations.

Stores are synchronous; the async core calls them through
``asyncio.to_thread``. Every write failure surfaces as PersistenceError.
"""

import threading
from abc import ABC, abstractmethod
from typing import Optional

from ..errors import PersistenceError
from ..notifications.models import AlertNotification
from ..state.models import AccountMode, Trade


class TradeStore(ABC):
    """Trade records keyed by trade id."""

    @abstractmethod
    def create(self, trade: Trade) -> None:
        """Insert a new trade; raises PersistenceError if the id exists."""

    @abstractmethod
    def update(self, trade: Trade) -> None:
        """Replace an existing trade; raises PersistenceError if unknown."""

    @abstractmethod
    def get(self, trade_id: str) -> Optional[Trade]:
        pass

    @abstractmethod
    def list_recent(self, limit: int = 20, account_mode: Optional[AccountMode] = None) -> list[Trade]:
        """Most recently opened first."""


class BalanceStore(ABC):
    """Balances per account and mode."""

    @abstractmethod
    def load(self, account_id: str, mode: AccountMode) -> Optional[float]:
        """Stored balance, or None if the account has none for this mode."""

    @abstractmethod
    def save(self, account_id: str, mode: AccountMode, balance: float) -> None:
        pass


class AlertStore(ABC):
    """Persisted notifications."""

    @abstractmethod
    def insert(self, alert: AlertNotification) -> None:
        pass

    @abstractmethod
    def list(self, limit: int = 50, unread_only: bool = False) -> list[AlertNotification]:
        """Newest first."""

    @abstractmethod
    def mark_read(self, alert_id: str) -> bool:
        """Returns False if the alert does not exist."""


class InMemoryTradeStore(TradeStore):

    def __init__(self) -> None:
        self._trades: dict[str, Trade] = {}
        self._lock = threading.Lock()

    def create(self, trade: Trade) -> None:
        with self._lock:
            if trade.id in self._trades:
                raise PersistenceError(
                    f"Trade {trade.id} already exists", operation="create", target="trades"
                )
            self._trades[trade.id] = trade

    def update(self, trade: Trade) -> None:
        with self._lock:
            if trade.id not in self._trades:
                raise PersistenceError(
                    f"Trade {trade.id} not found", operation="update", target="trades"
                )
            self._trades[trade.id] = trade

    def get(self, trade_id: str) -> Optional[Trade]:
        return self._trades.get(trade_id)

    def list_recent(self, limit: int = 20, account_mode: Optional[AccountMode] = None) -> list[Trade]:
        with self._lock:
            trades = [
                t for t in self._trades.values()
                if account_mode is None or t.account_mode == account_mode
            ]
        trades.sort(key=lambda t: t.opened_at, reverse=True)
        return trades[:limit]


class InMemoryBalanceStore(BalanceStore):

    def __init__(self) -> None:
        self._balances: dict[tuple[str, AccountMode], float] = {}

    def load(self, account_id: str, mode: AccountMode) -> Optional[float]:
        return self._balances.get((account_id, mode))

    def save(self, account_id: str, mode: AccountMode, balance: float) -> None:
        self._balances[(account_id, mode)] = balance


class InMemoryAlertStore(AlertStore):

    def __init__(self) -> None:
        self._alerts: dict[str, AlertNotification] = {}
        self._lock = threading.Lock()

    def insert(self, alert: AlertNotification) -> None:
        with self._lock:
            if alert.id in self._alerts:
                raise PersistenceError(
                    f"Alert {alert.id} already exists", operation="insert", target="alerts"
                )
            self._alerts[alert.id] = alert

    def list(self, limit: int = 50, unread_only: bool = False) -> list[AlertNotification]:
        with self._lock:
            alerts = [a for a in self._alerts.values() if not (unread_only and a.read)]
        alerts.sort(key=lambda a: a.created_at, reverse=True)
        return alerts[:limit]

    def mark_read(self, alert_id: str) -> bool:
        with self._lock:
            alert = self._alerts.get(alert_id)
            if alert is None:
                return False
            self._alerts[alert_id] = alert.with_read()
            return True
