"""
Notification events.

A closed tagged union; every event carries its ``kind`` so sinks and
listeners can filter without isinstance checks.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Union

from ..metrics.models import MovementAlert
from ..state.models import Trade


class EventKind(str, Enum):
    TRADE_OPENED = "trade_opened"
    TRADE_REJECTED = "trade_rejected"
    TRADE_WON = "trade_won"
    TRADE_LOST = "trade_lost"
    MOVEMENT_TOAST = "movement_toast"
    MOVEMENT_ALERT = "movement_alert"


@dataclass(frozen=True)
class TradeOpened:
    trade: Trade
    kind: EventKind = field(default=EventKind.TRADE_OPENED, init=False)


@dataclass(frozen=True)
class TradeRejected:
    reason: str
    message: str
    symbol: str = ""
    kind: EventKind = field(default=EventKind.TRADE_REJECTED, init=False)


@dataclass(frozen=True)
class TradeWon:
    trade: Trade
    kind: EventKind = field(default=EventKind.TRADE_WON, init=False)


@dataclass(frozen=True)
class TradeLost:
    trade: Trade
    kind: EventKind = field(default=EventKind.TRADE_LOST, init=False)


@dataclass(frozen=True)
class MovementToast:
    """Tier-1 move: toast only."""
    symbol: str
    change_pct: float
    prev_price: float
    new_price: float
    kind: EventKind = field(default=EventKind.MOVEMENT_TOAST, init=False)


@dataclass(frozen=True)
class MovementAlertRaised:
    """Tier-2 move: persisted alert."""
    alert: MovementAlert
    kind: EventKind = field(default=EventKind.MOVEMENT_ALERT, init=False)


NotificationEvent = Union[
    TradeOpened, TradeRejected, TradeWon, TradeLost, MovementToast, MovementAlertRaised
]
