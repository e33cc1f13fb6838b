"""
Tradable instrument definitions.

Assets are immutable catalog entries. Push-capable assets carry an exchange
``stream_symbol`` used both by the tick stream and the REST ticker; the rest
are priced from the REST basket under their ``basket_key``.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Iterator, Optional


class AssetCategory(str, Enum):
    """Instrument categories; each has its own price sanity range."""
    CRYPTO = "crypto"
    FOREX = "forex"
    COMMODITY = "commodity"
    EQUITY = "equity"


@dataclass(frozen=True)
class Asset:
    """A single tradable instrument."""
    symbol: str                             # Display symbol, e.g. "BTC/USD"
    name: str
    category: AssetCategory
    payout_rate: float                      # Percent of stake paid as profit on a win
    stream_symbol: Optional[str] = None     # Exchange symbol, e.g. "BTCUSDT"
    venue: Optional[str] = None             # REST ticker venue, e.g. "binance"
    basket_key: Optional[str] = None        # Key in the REST basket payload

    @property
    def is_push_capable(self) -> bool:
        return self.stream_symbol is not None


class AssetCatalog:
    """Read-only lookup of assets by symbol and category."""

    def __init__(self, assets: Iterable[Asset]):
        self._assets: dict[str, Asset] = {}
        for asset in assets:
            if asset.symbol in self._assets:
                raise ValueError(f"Duplicate asset symbol: {asset.symbol}")
            self._assets[asset.symbol] = asset

    def get(self, symbol: str) -> Asset:
        """Return the asset for ``symbol``; raises KeyError when unknown."""
        return self._assets[symbol]

    def find(self, symbol: str) -> Optional[Asset]:
        return self._assets.get(symbol)

    def by_category(self, category: AssetCategory) -> list[Asset]:
        return [a for a in self._assets.values() if a.category == category]

    def push_capable(self) -> list[Asset]:
        return [a for a in self._assets.values() if a.is_push_capable]

    def basket_assets(self) -> list[Asset]:
        return [a for a in self._assets.values() if a.basket_key is not None]

    def by_basket_key(self, key: str) -> Optional[Asset]:
        for asset in self._assets.values():
            if asset.basket_key == key:
                return asset
        return None

    def symbols(self) -> list[str]:
        return list(self._assets)

    def __contains__(self, symbol: object) -> bool:
        return symbol in self._assets

    def __iter__(self) -> Iterator[Asset]:
        return iter(self._assets.values())

    def __len__(self) -> int:
        return len(self._assets)


def _crypto(symbol: str, name: str, stream_symbol: str, payout: float) -> Asset:
    return Asset(symbol, name, AssetCategory.CRYPTO, payout,
                 stream_symbol=stream_symbol, venue="binance")


def _basket(symbol: str, name: str, category: AssetCategory, payout: float, key: str) -> Asset:
    return Asset(symbol, name, category, payout, basket_key=key)


def default_catalog() -> AssetCatalog:
    """The dashboard's instrument list."""
    return AssetCatalog([
        _crypto("BTC/USD", "Bitcoin", "BTCUSDT", 95),
        _crypto("ETH/USD", "Ethereum", "ETHUSDT", 92),
        _crypto("SOL/USD", "Solana", "SOLUSDT", 90),
        _crypto("BNB/USD", "BNB", "BNBUSDT", 88),
        _crypto("XRP/USD", "Ripple", "XRPUSDT", 88),
        _basket("EUR/USD", "Euro / US Dollar", AssetCategory.FOREX, 85, "EUR/USD"),
        _basket("GBP/USD", "British Pound / USD", AssetCategory.FOREX, 85, "GBP/USD"),
        _basket("USD/JPY", "US Dollar / Yen", AssetCategory.FOREX, 85, "USD/JPY"),
        _basket("AUD/USD", "Australian Dollar / USD", AssetCategory.FOREX, 83, "AUD/USD"),
        _basket("XAU/USD", "Gold", AssetCategory.COMMODITY, 87, "Gold"),
        _basket("XAG/USD", "Silver", AssetCategory.COMMODITY, 85, "Silver"),
        _basket("OIL/USD", "Crude Oil", AssetCategory.COMMODITY, 83, "Crude Oil"),
        _basket("AAPL", "Apple Inc.", AssetCategory.EQUITY, 80, "AAPL"),
        _basket("TSLA", "Tesla Inc.", AssetCategory.EQUITY, 80, "TSLA"),
        _basket("NVDA", "NVIDIA Corp.", AssetCategory.EQUITY, 80, "NVDA"),
    ])
