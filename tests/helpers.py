"""Test doubles and builders shared across the suite."""

import random
from collections import defaultdict, deque
from datetime import datetime, timezone
from typing import Optional

from tradedash_app.catalog.assets import Asset
from tradedash_app.data.models import PriceQuote, QuoteSource
from tradedash_app.errors import FeedNetworkError
from tradedash_app.utils.time import ManualClock


START_TIME = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


class FixedRandom(random.Random):
    """Random source whose draws always return the same value."""

    def __init__(self, value: float):
        super().__init__()
        self.value = value

    def random(self) -> float:
        return self.value


class FakeRestClient:
    """
    Stand-in for RestPriceClient.

    Tickers are served from per-symbol queues of prices; a queued exception
    is raised instead. Quotes are stamped with the clock at call time, like
    the real client.
    """

    def __init__(self, clock: ManualClock):
        self.clock = clock
        self.tickers: dict[str, deque] = defaultdict(deque)
        self.basket: list[PriceQuote] = []
        self.basket_error: Optional[Exception] = None
        self.ticker_calls: list[str] = []
        self.closed = False

    def queue_price(self, symbol: str, price: float, change_24h: float = 0.0) -> None:
        self.tickers[symbol].append((price, change_24h))

    def queue_error(self, symbol: str, error: Optional[Exception] = None) -> None:
        self.tickers[symbol].append(error or FeedNetworkError("connection refused", url=f"/prices/{symbol}"))

    async def fetch_ticker(self, asset: Asset) -> PriceQuote:
        self.ticker_calls.append(asset.symbol)
        captured_at = self.clock()
        if not self.tickers[asset.symbol]:
            raise FeedNetworkError("no response queued", url=f"/prices/{asset.venue}")
        item = self.tickers[asset.symbol].popleft()
        if isinstance(item, Exception):
            raise item
        price, change = item
        return PriceQuote(asset.symbol, price, change, captured_at, QuoteSource.REST)

    async def fetch_basket(self) -> list[PriceQuote]:
        if self.basket_error is not None:
            raise self.basket_error
        return list(self.basket)

    async def aclose(self) -> None:
        self.closed = True


def make_quote(
    symbol: str,
    price: float,
    captured_at: datetime,
    source: QuoteSource = QuoteSource.REST,
    change_24h: Optional[float] = 0.0
) -> PriceQuote:
    return PriceQuote(symbol=symbol, price=price, change_24h=change_24h,
                      captured_at=captured_at, source=source)
