"""
Feed payload parsers for converting raw responses into PriceQuote objects.

Three wire formats are handled:
- REST ticker: ``{"success": true, "price": 50000.1, "change24h": 1.2}``
- REST basket: ``{"success": true, "data": {"EUR/USD": {"price": 1.04, "change": 0.1}, ...}}``
- Tick stream trade event: ``{"e": "trade", "s": "BTCUSDT", "p": "50000.10", ...}``

Parsing never applies range validation; that is the aggregator's job.
"""

from datetime import datetime
from typing import Any, Optional, Union

import orjson
import structlog

from ..catalog.assets import Asset, AssetCatalog
from ..errors import FeedError, MalformedPayloadError
from .models import PriceQuote, QuoteSource

logger = structlog.get_logger(__name__)


def parse_json_payload(raw_data: Union[str, bytes]) -> dict[str, Any]:
    """
    Parse raw JSON into a dictionary.

    Raises:
        MalformedPayloadError: If the payload is not a JSON object
    """
    try:
        payload = orjson.loads(raw_data)
    except orjson.JSONDecodeError as e:
        raise MalformedPayloadError(
            f"Invalid JSON: {e}",
            raw_data=str(raw_data)[:100],
            expected_format="json"
        )

    if not isinstance(payload, dict):
        raise MalformedPayloadError(
            f"Expected JSON object, got {type(payload).__name__}",
            raw_data=str(raw_data)[:100],
            expected_format="json object"
        )

    return payload


def _to_float(value: Any, field: str) -> float:
    if isinstance(value, bool):
        raise MalformedPayloadError(f"Field '{field}' is boolean", raw_data=str(value))
    try:
        return float(value)
    except (TypeError, ValueError):
        raise MalformedPayloadError(
            f"Field '{field}' is not numeric: {value!r}",
            raw_data=str(value)[:100],
            expected_format="number"
        )


def parse_ticker_payload(asset: Asset, payload: dict[str, Any], captured_at: datetime) -> PriceQuote:
    """
    Convert a REST ticker response into a quote.

    Raises:
        FeedError: If the endpoint reported failure
        MalformedPayloadError: If the price field is missing or not numeric
    """
    if not payload.get("success"):
        raise FeedError(
            f"Ticker endpoint reported failure for {asset.symbol}",
            context={"symbol": asset.symbol, "payload": payload}
        )

    if "price" not in payload:
        raise MalformedPayloadError(
            f"Ticker payload for {asset.symbol} has no price",
            raw_data=str(payload)[:100],
            expected_format="{success, price, change24h}"
        )

    return PriceQuote(
        symbol=asset.symbol,
        price=_to_float(payload["price"], "price"),
        change_24h=_to_float(payload.get("change24h", 0.0), "change24h"),
        captured_at=captured_at,
        source=QuoteSource.REST,
    )


def parse_basket_payload(
    catalog: AssetCatalog,
    payload: dict[str, Any],
    captured_at: datetime
) -> list[PriceQuote]:
    """
    Convert a REST basket response into one quote per known basket asset.

    Entries for unknown keys are ignored; malformed entries are skipped
    individually so one bad instrument does not drop the whole basket.

    Raises:
        FeedError: If the endpoint reported failure
        MalformedPayloadError: If ``data`` is missing or not an object
    """
    if not payload.get("success"):
        raise FeedError("Basket endpoint reported failure", context={"payload": payload})

    data = payload.get("data")
    if not isinstance(data, dict):
        raise MalformedPayloadError(
            "Basket payload has no data object",
            raw_data=str(payload)[:100],
            expected_format="{success, data: {key: {price, change}}}"
        )

    quotes = []
    for asset in catalog.basket_assets():
        entry = data.get(asset.basket_key)
        if entry is None:
            continue
        try:
            if not isinstance(entry, dict) or "price" not in entry:
                raise MalformedPayloadError(f"Basket entry for {asset.basket_key} has no price")
            quotes.append(PriceQuote(
                symbol=asset.symbol,
                price=_to_float(entry["price"], "price"),
                change_24h=_to_float(entry.get("change", 0.0), "change"),
                captured_at=captured_at,
                source=QuoteSource.BASKET,
            ))
        except MalformedPayloadError as e:
            logger.warning(
                "Skipping malformed basket entry",
                basket_key=asset.basket_key,
                error=str(e)
            )

    return quotes


def parse_stream_message(
    asset: Asset,
    raw_data: Union[str, bytes],
    captured_at: datetime
) -> Optional[PriceQuote]:
    """
    Convert a stream trade event into a quote.

    Returns None for events that carry no price (subscription acks, pings).

    Raises:
        MalformedPayloadError: If the message is not JSON or the price is not numeric
    """
    payload = parse_json_payload(raw_data)

    if "p" not in payload:
        return None

    return PriceQuote(
        symbol=asset.symbol,
        price=_to_float(payload["p"], "p"),
        change_24h=None,
        captured_at=captured_at,
        source=QuoteSource.STREAM,
    )
