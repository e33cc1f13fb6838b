"""Movement alert data models."""

from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum


class MovementDirection(str, Enum):
    UP = "up"
    DOWN = "down"


@dataclass(frozen=True)
class MovementAlert:
    """Large quote-to-quote move awaiting dismissal or a trade-now action."""
    id: str
    symbol: str
    prev_price: float
    new_price: float
    change_pct: float
    direction: MovementDirection
    created_at: datetime
    dismissed: bool = False

    def with_dismissed(self) -> "MovementAlert":
        return replace(self, dismissed=True)
