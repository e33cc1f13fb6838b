"""
Price feed sources and the aggregator that reconciles them.
"""

from .aggregator import PriceFeedAggregator
from .rest_client import RestPriceClient
from .stream import TickStream

__all__ = ["PriceFeedAggregator", "RestPriceClient", "TickStream"]
