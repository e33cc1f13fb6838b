"""
Trade precondition errors.

Returned (not raised) by TradeLifecycleManager.open() inside an OpenResult
and surfaced to the user as a notification. None of them is retried.
"""

from typing import Any, Optional


class PreconditionError(Exception):
    """Base class for rejected trade requests."""

    reason = "precondition_failed"

    def __init__(self, message: str, context: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.context = context or {}
        self.recoverable = True


class TradeAlreadyActiveError(PreconditionError):
    """Another trade is active or still being submitted."""

    reason = "trade_active"

    def __init__(self, message: str, active_trade_id: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.active_trade_id = active_trade_id


class TradeValidationError(PreconditionError):
    """Request parameters are out of bounds or unknown."""

    reason = "validation"

    def __init__(self, message: str, field: Optional[str] = None,
                 value: Any = None, **kwargs):
        super().__init__(message, **kwargs)
        self.field = field
        self.value = value


class InsufficientBalanceError(PreconditionError):
    """Stake exceeds the balance of the active account mode."""

    reason = "insufficient_balance"

    def __init__(self, message: str, balance: Optional[float] = None,
                 stake: Optional[float] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.balance = balance
        self.stake = stake


class PriceUnavailableError(PreconditionError):
    """No valid, non-expired reconciled price exists for the asset."""

    reason = "price_unavailable"

    def __init__(self, message: str, symbol: Optional[str] = None,
                 staleness: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.symbol = symbol
        self.staleness = staleness
