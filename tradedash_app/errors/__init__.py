"""
Error classification system for the price and trade pipeline.

Feed errors are absorbed at the fetch boundary, precondition errors are
returned to the caller as typed rejections, and system failures carry the
underlying message of the store or sink that failed.
"""

from .feed import (
    FeedError,
    FeedNetworkError,
    MalformedPayloadError,
    PriceValidationError,
)
from .system_failures import (
    SystemFailureError,
    StateTransitionError,
    PersistenceError,
    DeliveryError,
)
from .trading import (
    PreconditionError,
    TradeAlreadyActiveError,
    TradeValidationError,
    InsufficientBalanceError,
    PriceUnavailableError,
)

__all__ = [
    # Feed Errors
    "FeedError",
    "FeedNetworkError",
    "MalformedPayloadError",
    "PriceValidationError",
    # System Failures
    "SystemFailureError",
    "StateTransitionError",
    "PersistenceError",
    "DeliveryError",
    # Trade Preconditions
    "PreconditionError",
    "TradeAlreadyActiveError",
    "TradeValidationError",
    "InsufficientBalanceError",
    "PriceUnavailableError",
]
