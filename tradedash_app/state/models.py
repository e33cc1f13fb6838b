"""
Trade data models for the timed-settlement lifecycle.

Trades are immutable; every status change produces a new instance through
``with_status`` / ``with_settlement`` which enforce the allowed transitions.
"""

from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from ..errors import PersistenceError, PreconditionError, StateTransitionError
from ..utils.time import format_timestamp, parse_timestamp


class TradeStatus(str, Enum):
    """Trade lifecycle states."""
    PENDING = "pending"     # Submitting
    ACTIVE = "active"       # Countdown running
    WON = "won"
    LOST = "lost"

    @property
    def is_terminal(self) -> bool:
        return self in (TradeStatus.WON, TradeStatus.LOST)


ALLOWED_TRANSITIONS: dict[TradeStatus, frozenset] = {
    TradeStatus.PENDING: frozenset({TradeStatus.ACTIVE}),
    TradeStatus.ACTIVE: frozenset({TradeStatus.WON, TradeStatus.LOST}),
    TradeStatus.WON: frozenset(),
    TradeStatus.LOST: frozenset(),
}


class Direction(str, Enum):
    LONG = "long"
    SHORT = "short"

    @classmethod
    def parse(cls, value: Any) -> "Direction":
        """Accept enum members, 'long'/'short' and the 'buy'/'sell' aliases."""
        if isinstance(value, Direction):
            return value
        aliases = {"buy": cls.LONG, "sell": cls.SHORT}
        text = str(value).strip().lower()
        if text in aliases:
            return aliases[text]
        return cls(text)


class AccountMode(str, Enum):
    PRACTICE = "practice"   # Virtual funds
    LIVE = "live"           # Real funds


@dataclass(frozen=True)
class Trade:
    """A fixed-duration directional bet."""

    id: str
    account_mode: AccountMode
    symbol: str
    direction: Direction
    stake: float
    entry_price: float
    duration_seconds: int
    opened_at: datetime
    expires_at: datetime
    payout_rate: float
    status: TradeStatus = TradeStatus.PENDING

    # Settlement fields
    closed_at: Optional[datetime] = None
    exit_price: Optional[float] = None
    profit_loss: Optional[float] = None

    def with_status(self, new_status: TradeStatus) -> "Trade":
        """Move to ``new_status``; raises StateTransitionError if not allowed."""
        if new_status not in ALLOWED_TRANSITIONS[self.status]:
            raise StateTransitionError(
                f"Trade {self.id} cannot move from {self.status.value} to {new_status.value}",
                current_state=self.status.value,
                attempted_transition=new_status.value,
                context={"trade_id": self.id}
            )
        return replace(self, status=new_status)

    def with_settlement(
        self,
        status: TradeStatus,
        exit_price: float,
        closed_at: datetime,
        profit_loss: float
    ) -> "Trade":
        settled = self.with_status(status)
        return replace(settled, exit_price=exit_price, closed_at=closed_at, profit_loss=profit_loss)

    def to_record(self) -> dict[str, Any]:
        """Row representation for trade stores."""
        return {
            "id": self.id,
            "account_mode": self.account_mode.value,
            "symbol": self.symbol,
            "direction": self.direction.value,
            "stake": self.stake,
            "entry_price": self.entry_price,
            "duration_seconds": self.duration_seconds,
            "opened_at": format_timestamp(self.opened_at),
            "expires_at": format_timestamp(self.expires_at),
            "payout_rate": self.payout_rate,
            "status": self.status.value,
            "closed_at": format_timestamp(self.closed_at),
            "close_price": self.exit_price,
            "profit_loss": self.profit_loss,
        }

    @classmethod
    def from_record(cls, row: dict[str, Any]) -> "Trade":
        return cls(
            id=row["id"],
            account_mode=AccountMode(row["account_mode"]),
            symbol=row["symbol"],
            direction=Direction(row["direction"]),
            stake=float(row["stake"]),
            entry_price=float(row["entry_price"]),
            duration_seconds=int(row["duration_seconds"]),
            opened_at=parse_timestamp(row["opened_at"]),
            expires_at=parse_timestamp(row["expires_at"]),
            payout_rate=float(row["payout_rate"]),
            status=TradeStatus(row["status"]),
            closed_at=parse_timestamp(row.get("closed_at")),
            exit_price=row.get("close_price"),
            profit_loss=row.get("profit_loss"),
        )


@dataclass(frozen=True)
class Outcome:
    """Settlement decision for one trade."""
    won: bool
    directional_win: bool
    override_applied: bool       # Won only because of the stochastic draw
    profit_loss: float
    exit_price: float
    used_entry_fallback: bool


@dataclass(frozen=True)
class OpenResult:
    """Result of TradeLifecycleManager.open()."""

    trade: Optional[Trade] = None
    error: Optional[Exception] = None  # PreconditionError | PersistenceError

    @property
    def success(self) -> bool:
        return self.trade is not None

    @property
    def reason(self) -> Optional[str]:
        if isinstance(self.error, PreconditionError):
            return self.error.reason
        if isinstance(self.error, PersistenceError):
            return "persistence_error"
        return None

    @classmethod
    def opened(cls, trade: Trade) -> "OpenResult":
        return cls(trade=trade)

    @classmethod
    def rejected(cls, error: Exception) -> "OpenResult":
        return cls(error=error)
