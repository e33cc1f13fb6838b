"""
Feed error classifications for price quote ingestion.

These exceptions describe problems with a single quote or a single fetch.
They never reach the trade path: the aggregator logs them and keeps the
previously accepted price.
"""

from typing import Any, Optional


class FeedError(Exception):
    """Base class for feed issues that are handled at the fetch boundary."""

    def __init__(self, message: str, context: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.context = context or {}
        self.recoverable = True


class FeedNetworkError(FeedError):
    """Transport failure talking to a REST endpoint or the tick stream."""

    def __init__(self, message: str, url: Optional[str] = None,
                 status_code: Optional[int] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.url = url
        self.status_code = status_code


class MalformedPayloadError(FeedError):
    """Payload arrived but could not be decoded into a quote."""

    def __init__(self, message: str, raw_data: Optional[str] = None,
                 expected_format: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.raw_data = raw_data
        self.expected_format = expected_format


class PriceValidationError(FeedError):
    """Price outside the sanity range of its asset category."""

    def __init__(self, message: str, symbol: Optional[str] = None,
                 price: Optional[float] = None,
                 bounds: Optional[tuple[float, float]] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.symbol = symbol
        self.price = price
        self.bounds = bounds
