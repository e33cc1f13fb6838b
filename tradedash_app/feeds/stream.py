"""Live tick stream over a per-symbol trade websocket."""

import asyncio
from typing import Any, Callable, Optional

import structlog
import websockets
from websockets.exceptions import WebSocketException

from ..catalog.assets import Asset
from ..config.defaults import FeedParams
from ..data.models import PriceQuote
from ..data.parsers import parse_stream_message
from ..errors import MalformedPayloadError
from ..utils.time import Clock, utc_now

logger = structlog.get_logger(__name__)

QuoteCallback = Callable[[PriceQuote], Any]


class TickStream:
    """
    Push feed for a single asset.

    ``listen`` runs until cancelled, reconnecting after
    ``stream_reconnect_delay`` whenever the connection drops. Ticks are
    delivered to the callback immediately, unbatched.
    """

    def __init__(
        self,
        params: FeedParams,
        clock: Clock = utc_now,
        connect: Optional[Callable[[str], Any]] = None
    ):
        self.params = params
        self._clock = clock
        self._connect = connect or websockets.connect
        self.connected = False
        self.messages_received = 0

    def url_for(self, asset: Asset) -> str:
        return self.params.stream_url_template.format(symbol=asset.stream_symbol.lower())

    async def listen(self, asset: Asset, on_quote: QuoteCallback) -> None:
        if not asset.is_push_capable:
            raise ValueError(f"{asset.symbol} has no stream symbol")

        url = self.url_for(asset)
        while True:
            try:
                async with self._connect(url) as ws:
                    self.connected = True
                    logger.info("Tick stream connected", symbol=asset.symbol, url=url)
                    async for message in ws:
                        self._handle_message(asset, message, on_quote)
            except asyncio.CancelledError:
                raise
            except (OSError, asyncio.TimeoutError, WebSocketException) as e:
                logger.warning(
                    "Tick stream connection lost",
                    symbol=asset.symbol,
                    error=str(e),
                    error_type=type(e).__name__,
                    retry_in=self.params.stream_reconnect_delay
                )
            finally:
                self.connected = False

            await asyncio.sleep(self.params.stream_reconnect_delay)

    def _handle_message(self, asset: Asset, message: Any, on_quote: QuoteCallback) -> None:
        self.messages_received += 1
        try:
            quote = parse_stream_message(asset, message, self._clock())
        except MalformedPayloadError as e:
            logger.debug("Ignoring malformed stream message", symbol=asset.symbol, error=str(e))
            return

        if quote is not None:
            on_quote(quote)
