"""REST polling client for the ticker and basket price endpoints."""

from typing import Optional

import httpx
import structlog

from ..catalog.assets import Asset, AssetCatalog
from ..config.defaults import FeedParams
from ..data.models import PriceQuote
from ..data.parsers import parse_basket_payload, parse_json_payload, parse_ticker_payload
from ..errors import FeedNetworkError, MalformedPayloadError
from ..utils.time import Clock, utc_now

logger = structlog.get_logger(__name__)


class RestPriceClient:
    """
    Async client for ``/prices/{venue}`` and ``/prices/forex``.

    Quotes are stamped with the time the request was issued, so a slow
    response can never look fresher than a later, faster one.
    """

    def __init__(
        self,
        params: FeedParams,
        catalog: AssetCatalog,
        client: Optional[httpx.AsyncClient] = None,
        clock: Clock = utc_now
    ):
        self.params = params
        self.catalog = catalog
        self._clock = clock
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=params.api_base_url,
            timeout=params.request_timeout,
            headers={"Accept": "application/json", "User-Agent": "tradedash-app/1.0"},
        )

    async def fetch_ticker(self, asset: Asset) -> PriceQuote:
        """
        Fetch the current ticker for a push-capable asset.

        Raises:
            FeedError: On transport failure, non-2xx status or bad payload
        """
        if not asset.is_push_capable:
            raise MalformedPayloadError(f"{asset.symbol} has no ticker symbol")

        captured_at = self._clock()
        payload = await self._get_json(
            f"/prices/{asset.venue}",
            params={"symbol": asset.stream_symbol},
        )
        return parse_ticker_payload(asset, payload, captured_at)

    async def fetch_basket(self) -> list[PriceQuote]:
        """
        Fetch every non-streamed asset in one call.

        Raises:
            FeedError: On transport failure, non-2xx status or bad payload
        """
        captured_at = self._clock()
        payload = await self._get_json("/prices/forex")
        return parse_basket_payload(self.catalog, payload, captured_at)

    async def _get_json(self, path: str, params: Optional[dict[str, str]] = None) -> dict:
        try:
            response = await self._client.get(path, params=params)
        except httpx.HTTPError as e:
            raise FeedNetworkError(
                f"Request to {path} failed: {e}",
                url=path,
                context={"params": params or {}}
            )

        if response.status_code >= 400:
            raise FeedNetworkError(
                f"HTTP {response.status_code} from {path}",
                url=path,
                status_code=response.status_code
            )

        return parse_json_payload(response.content)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
