"""
Canonical data models for price quotes and accepted price state.

PriceQuote is the immutable unit produced by every feed source.
AcceptedPriceState is the mutable per-asset record owned by the aggregator;
every other component reads it through ``PriceStore.get`` and never keeps a
copy of its fields.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional


class QuoteSource(str, Enum):
    """Where a quote came from."""
    STREAM = "stream"
    REST = "rest"
    BASKET = "basket"


@dataclass(frozen=True)
class PriceQuote:
    """Single price observation for an asset."""
    symbol: str
    price: float
    change_24h: Optional[float] # None when the source carries no daily change
    captured_at: datetime       # UTC; request issue time for REST, receipt time for stream
    source: QuoteSource


@dataclass
class AcceptedPriceState:
    """Reconciled price state for one asset."""
    symbol: str
    last_valid_price: Optional[float] = None
    last_updated_at: Optional[datetime] = None
    is_valid: bool = False
    change_24h: float = 0.0
    source: Optional[QuoteSource] = None
    last_rejected_price: Optional[float] = None

    @property
    def has_price(self) -> bool:
        return self.last_valid_price is not None

    def accept(self, quote: PriceQuote) -> Optional[float]:
        """Apply a validated quote; returns the previous valid price."""
        previous = self.last_valid_price
        self.last_valid_price = quote.price
        self.last_updated_at = quote.captured_at
        if quote.change_24h is not None:
            self.change_24h = quote.change_24h
        self.source = quote.source
        self.is_valid = True
        return previous

    def reject(self, price: float) -> None:
        """Flag the asset invalid while keeping the last valid price."""
        self.is_valid = False
        self.last_rejected_price = price


@dataclass(frozen=True)
class PriceUpdate:
    """Accepted price change forwarded to aggregator listeners."""
    symbol: str
    prev_price: Optional[float]
    new_price: float
    captured_at: datetime
    source: QuoteSource


class ApplyStatus(str, Enum):
    """What the aggregator did with a quote."""
    ACCEPTED = "accepted"
    CACHED = "cached"                   # Background cache only
    REJECTED = "rejected"               # Outside the category range
    STALE_SELECTION = "stale_selection" # Asset switched while in flight
    OUT_OF_ORDER = "out_of_order"       # Older than the last applied quote
    UNKNOWN_ASSET = "unknown_asset"


@dataclass(frozen=True)
class ApplyResult:
    """Result of offering a quote to the aggregator."""
    status: ApplyStatus
    quote: PriceQuote
    update: Optional[PriceUpdate] = None
    reason: Optional[str] = None

    @property
    def accepted(self) -> bool:
        return self.status == ApplyStatus.ACCEPTED

    @classmethod
    def accepted_with(cls, quote: PriceQuote, update: PriceUpdate) -> "ApplyResult":
        return cls(status=ApplyStatus.ACCEPTED, quote=quote, update=update)

    @classmethod
    def dropped(cls, status: ApplyStatus, quote: PriceQuote, reason: str) -> "ApplyResult":
        return cls(status=status, quote=quote, reason=reason)


class PriceStore:
    """
    Single source of truth for reconciled prices.

    Holds the reconciled state per asset, the newest validated price per
    asset for settlement, and a background cache with the newest REST quote
    seen for every asset on the watchlist.
    """

    def __init__(self) -> None:
        self._states: dict[str, AcceptedPriceState] = {}
        self._background: dict[str, PriceQuote] = {}
        self._last_valid: dict[str, float] = {}

    def get(self, symbol: str) -> Optional[AcceptedPriceState]:
        return self._states.get(symbol)

    def get_or_create(self, symbol: str) -> AcceptedPriceState:
        if symbol not in self._states:
            self._states[symbol] = AcceptedPriceState(symbol=symbol)
        return self._states[symbol]

    def reset(self, symbol: str) -> None:
        """Forget the displayed state of one asset; the last valid price is kept."""
        self._states.pop(symbol, None)

    def accept(self, quote: PriceQuote) -> Optional[float]:
        """Apply a validated quote to the asset's state; returns the previous valid price."""
        previous = self.get_or_create(quote.symbol).accept(quote)
        self._last_valid[quote.symbol] = quote.price
        return previous

    def last_valid(self, symbol: str) -> Optional[float]:
        """Newest validated price, surviving selection resets."""
        return self._last_valid.get(symbol)

    def cache(self, quote: PriceQuote) -> None:
        current = self._background.get(quote.symbol)
        if current is None or quote.captured_at >= current.captured_at:
            self._background[quote.symbol] = quote

    def cached(self, symbol: str) -> Optional[PriceQuote]:
        return self._background.get(symbol)

    def symbols(self) -> list[str]:
        return list(self._states)

    def clear(self) -> None:
        self._states.clear()
        self._background.clear()
        self._last_valid.clear()
