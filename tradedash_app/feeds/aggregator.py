"""
Price feed aggregator.

Merges the live tick stream of the selected asset with REST ticker polling and
the REST basket into one reconciled price per asset. All writes go through
``apply_quote``; readers use ``get_current`` and always see the live state.

Reconciliation rules:
- A quote older than the last applied one for its asset is dropped.
- A quote fetched for a previously selected asset is dropped (selection token).
- Out-of-range prices flag the asset invalid and keep the previous price.
- While the stream of the selected asset is live (ticked within
  ``stream_live_seconds``), REST quotes for that asset only refresh the
  background cache. A silent stream hands authority back to REST.
- Right after a switch to a push-capable asset, REST quotes are cached for up
  to ``stream_grace_seconds`` while waiting for the first tick.
"""

import asyncio
from datetime import timedelta
from typing import Callable, Optional

import structlog

from ..catalog.assets import Asset, AssetCatalog
from ..config.defaults import FeedParams, ValidationRanges
from ..data.models import (
    AcceptedPriceState,
    ApplyResult,
    ApplyStatus,
    PriceQuote,
    PriceStore,
    PriceUpdate,
    QuoteSource,
)
from ..data.validators import PriceRangeValidator
from ..errors import FeedError, PriceValidationError
from ..logging.config import get_feed_logger
from ..utils.time import Clock, seconds_since, utc_now
from .rest_client import RestPriceClient
from .stream import TickStream

logger = structlog.get_logger(__name__)
feed_logger = get_feed_logger(__name__)

PriceListener = Callable[[PriceUpdate], None]


class PriceFeedAggregator:
    """Owner of the reconciled price state."""

    def __init__(
        self,
        catalog: AssetCatalog,
        feed_params: FeedParams,
        ranges: ValidationRanges,
        rest_client: RestPriceClient,
        stream: Optional[TickStream] = None,
        clock: Clock = utc_now
    ):
        self.catalog = catalog
        self.params = feed_params
        self.store = PriceStore()
        self._validator = PriceRangeValidator(ranges)
        self._rest = rest_client
        self._stream = stream
        self._clock = clock
        self._listeners: list[PriceListener] = []

        self._selected: Optional[Asset] = None
        self._selection_token = 0
        self._stream_ticks_seen = False
        self._last_stream_tick_at = None
        self._grace_deadline = None

        self._running = False
        self._selection_tasks: list[asyncio.Task] = []
        self._background_tasks: list[asyncio.Task] = []

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    def subscribe(self, listener: PriceListener) -> None:
        """Register a callback for every accepted price update."""
        self._listeners.append(listener)

    @property
    def selected(self) -> Optional[Asset]:
        return self._selected

    @property
    def selection_token(self) -> int:
        return self._selection_token

    @property
    def running(self) -> bool:
        return self._running

    def get_current(self, symbol: str) -> Optional[AcceptedPriceState]:
        """The live reconciled state for ``symbol`` (not a snapshot)."""
        return self.store.get(symbol)

    def reconciled_price(self, symbol: str) -> Optional[float]:
        """Price usable for opening a trade: present and currently valid."""
        state = self.store.get(symbol)
        if state is None or not state.has_price or not state.is_valid:
            return None
        return state.last_valid_price

    def settlement_price(self, symbol: str) -> Optional[float]:
        """
        Last validated price regardless of the current invalid flag.

        Unlike the displayed state it survives re-selecting the asset.
        """
        return self.store.last_valid(symbol)

    def background_quote(self, symbol: str) -> Optional[PriceQuote]:
        return self.store.cached(symbol)

    def in_grace_window(self) -> bool:
        return self._grace_deadline is not None and self._clock() < self._grace_deadline

    def is_stream_live(self, symbol: str) -> bool:
        """Selected asset whose stream ticked recently enough to count as live."""
        if self._selected is None or self._selected.symbol != symbol:
            return False
        if not self._stream_ticks_seen or self._last_stream_tick_at is None:
            return False
        return seconds_since(self._last_stream_tick_at, self._clock()) < self.params.stream_live_seconds

    def watchlist(self) -> list[Asset]:
        if self.params.watchlist:
            return [self.catalog.get(symbol) for symbol in self.params.watchlist
                    if self.catalog.get(symbol).is_push_capable]
        return self.catalog.push_capable()

    # ------------------------------------------------------------------
    # Write side
    # ------------------------------------------------------------------

    def apply_quote(self, quote: PriceQuote, token: Optional[int] = None) -> ApplyResult:
        """
        Offer a quote to the reconciled state.

        Args:
            quote: Quote from any feed source
            token: Selection token captured when the fetch started; None for
                fetches not tied to the selected asset

        Returns:
            ApplyResult describing what happened to the quote
        """
        asset = self.catalog.find(quote.symbol)
        if asset is None:
            return ApplyResult.dropped(ApplyStatus.UNKNOWN_ASSET, quote, "not in catalog")

        if token is not None and token != self._selection_token:
            feed_logger.debug(
                "Dropping response for previous selection",
                symbol=quote.symbol,
                token=token,
                current_token=self._selection_token
            )
            return ApplyResult.dropped(ApplyStatus.STALE_SELECTION, quote, "asset switched")

        is_selected = self._selected is not None and self._selected.symbol == quote.symbol

        if quote.source == QuoteSource.STREAM and not is_selected:
            return ApplyResult.dropped(ApplyStatus.STALE_SELECTION, quote, "stream for unselected asset")

        if quote.source != QuoteSource.STREAM:
            self.store.cache(quote)
            if is_selected and asset.is_push_capable:
                if self.is_stream_live(quote.symbol):
                    return ApplyResult.dropped(ApplyStatus.CACHED, quote, "stream is authoritative")
                if self.in_grace_window():
                    return ApplyResult.dropped(ApplyStatus.CACHED, quote, "awaiting first stream tick")

        state = self.store.get_or_create(quote.symbol)

        if state.last_updated_at is not None and quote.captured_at < state.last_updated_at:
            feed_logger.debug(
                "Dropping out-of-order quote",
                symbol=quote.symbol,
                source=quote.source.value,
                captured_at=quote.captured_at.isoformat(),
                last_updated_at=state.last_updated_at.isoformat()
            )
            return ApplyResult.dropped(ApplyStatus.OUT_OF_ORDER, quote, "older than last applied quote")

        try:
            self._validator.validate(quote, asset)
        except PriceValidationError as e:
            state.reject(quote.price)
            feed_logger.warning(
                "Rejected out-of-range quote",
                symbol=quote.symbol,
                price=quote.price,
                bounds=e.bounds,
                source=quote.source.value,
                kept_price=state.last_valid_price
            )
            return ApplyResult.dropped(ApplyStatus.REJECTED, quote, str(e))

        if quote.source == QuoteSource.STREAM:
            self._stream_ticks_seen = True
            self._last_stream_tick_at = quote.captured_at
            self._grace_deadline = None

        previous = self.store.accept(quote)
        update = PriceUpdate(
            symbol=quote.symbol,
            prev_price=previous,
            new_price=quote.price,
            captured_at=quote.captured_at,
            source=quote.source,
        )
        self._notify(update)
        return ApplyResult.accepted_with(quote, update)

    def _notify(self, update: PriceUpdate) -> None:
        for listener in list(self._listeners):
            try:
                listener(update)
            except Exception as e:
                logger.error(
                    "Price listener failed",
                    symbol=update.symbol,
                    listener=getattr(listener, "__qualname__", repr(listener)),
                    error=str(e),
                    error_type=type(e).__name__
                )

    # ------------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------------

    def select_asset(self, symbol: str) -> Asset:
        """
        Make ``symbol`` the displayed asset.

        Cancels the previous asset's stream and poll tasks, invalidates any
        in-flight request through the selection token, clears the new asset's
        transient display state and opens the stream grace window.

        Raises:
            KeyError: If the symbol is not in the catalog
        """
        asset = self.catalog.get(symbol)
        previous = self._selected

        self._cancel_selection_tasks()
        self._selection_token += 1
        self._selected = asset
        self._stream_ticks_seen = False
        self._last_stream_tick_at = None
        self.store.reset(symbol)

        if asset.is_push_capable and self._stream is not None:
            self._grace_deadline = self._clock() + timedelta(seconds=self.params.stream_grace_seconds)
        else:
            self._grace_deadline = None

        logger.info(
            "Selected asset",
            symbol=symbol,
            previous=previous.symbol if previous else None,
            token=self._selection_token,
            push_capable=asset.is_push_capable
        )

        if self._running:
            self._start_selection_tasks()

        return asset

    def end_grace_window(self) -> Optional[ApplyResult]:
        """
        Stop waiting for the stream and fall back to REST.

        Promotes the newest cached REST quote for the selected asset if no
        tick has arrived.
        """
        self._grace_deadline = None
        if self._selected is None or self._stream_ticks_seen:
            return None

        cached = self.store.cached(self._selected.symbol)
        if cached is None:
            return None

        logger.info(
            "Stream grace window lapsed, using REST price",
            symbol=self._selected.symbol,
            price=cached.price
        )
        return self.apply_quote(cached, self._selection_token)

    # ------------------------------------------------------------------
    # Fetching
    # ------------------------------------------------------------------

    async def poll_selected(self) -> Optional[ApplyResult]:
        """Fetch the REST ticker of the selected push-capable asset."""
        asset = self._selected
        if asset is None or not asset.is_push_capable:
            return None
        return await self._fetch_ticker(asset, self._selection_token)

    async def poll_watchlist(self) -> list[ApplyResult]:
        selected_symbol = self._selected.symbol if self._selected else None
        assets = [a for a in self.watchlist() if a.symbol != selected_symbol]
        results = await asyncio.gather(*(self._fetch_ticker(a, None) for a in assets))
        return [r for r in results if r is not None]

    async def poll_basket(self) -> list[ApplyResult]:
        try:
            quotes = await self._rest.fetch_basket()
        except FeedError as e:
            self._log_feed_error("basket", e)
            return []
        return [self.apply_quote(quote) for quote in quotes]

    async def refresh(self) -> list[ApplyResult]:
        """Re-issue every poll immediately, bypassing the timers."""
        selected, watchlist, basket = await asyncio.gather(
            self.poll_selected(),
            self.poll_watchlist(),
            self.poll_basket(),
        )
        results = list(watchlist) + list(basket)
        if selected is not None:
            results.append(selected)
        logger.info(
            "Forced price refresh",
            requested=len(results),
            accepted=sum(1 for r in results if r.accepted)
        )
        return results

    async def _fetch_ticker(self, asset: Asset, token: Optional[int]) -> Optional[ApplyResult]:
        try:
            quote = await self._rest.fetch_ticker(asset)
        except FeedError as e:
            self._log_feed_error(asset.symbol, e)
            return None
        return self.apply_quote(quote, token)

    def _log_feed_error(self, target: str, error: FeedError) -> None:
        feed_logger.warning(
            "Price fetch failed, keeping previous state",
            target=target,
            error=str(error),
            error_type=type(error).__name__,
            context=error.context
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Start background polling and, if an asset is selected, its feeds."""
        if self._running:
            return
        self._running = True
        self._background_tasks = [
            asyncio.create_task(self._watchlist_loop(), name="poll-watchlist"),
            asyncio.create_task(self._basket_loop(), name="poll-basket"),
        ]
        if self._selected is not None:
            self._start_selection_tasks()
        logger.info("Price feed aggregator started", watchlist=[a.symbol for a in self.watchlist()])

    async def stop(self) -> None:
        """Cancel every timer and stream owned by the aggregator."""
        self._running = False
        tasks = self._selection_tasks + self._background_tasks
        self._cancel_selection_tasks()
        for task in self._background_tasks:
            task.cancel()
        self._background_tasks = []
        await asyncio.gather(*tasks, return_exceptions=True)
        logger.info("Price feed aggregator stopped")

    def _start_selection_tasks(self) -> None:
        asset = self._selected
        token = self._selection_token
        if asset is None or not asset.is_push_capable:
            return

        self._selection_tasks.append(
            asyncio.create_task(self._selected_poll_loop(asset, token), name=f"poll-{asset.symbol}")
        )
        if self._stream is not None:
            self._selection_tasks.append(
                asyncio.create_task(self._stream_loop(asset, token), name=f"stream-{asset.symbol}")
            )
            self._selection_tasks.append(
                asyncio.create_task(self._grace_timer(token), name=f"grace-{asset.symbol}")
            )

    def _cancel_selection_tasks(self) -> None:
        for task in self._selection_tasks:
            task.cancel()
        self._selection_tasks = []

    async def _selected_poll_loop(self, asset: Asset, token: int) -> None:
        while True:
            await self._fetch_ticker(asset, token)
            await asyncio.sleep(self.params.crypto_poll_interval)

    async def _stream_loop(self, asset: Asset, token: int) -> None:
        await self._stream.listen(asset, lambda quote: self.apply_quote(quote, token))

    async def _grace_timer(self, token: int) -> None:
        await asyncio.sleep(self.params.stream_grace_seconds)
        if token == self._selection_token:
            self.end_grace_window()

    async def _watchlist_loop(self) -> None:
        while True:
            await self.poll_watchlist()
            await asyncio.sleep(self.params.crypto_poll_interval)

    async def _basket_loop(self) -> None:
        while True:
            await self.poll_basket()
            await asyncio.sleep(self.params.basket_poll_interval)
