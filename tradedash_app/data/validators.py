"""
Price sanity validation.

Each accepted price must be positive and fall inside the configured range of
its asset's category. Failures raise PriceValidationError, which the
aggregator converts into an ``is_valid=False`` flag instead of propagating.
"""

import math

from ..catalog.assets import Asset
from ..config.defaults import ValidationRanges
from ..errors import PriceValidationError
from .models import PriceQuote


class PriceRangeValidator:
    """Validates quotes against per-category [min, max] bounds."""

    def __init__(self, ranges: ValidationRanges):
        self.ranges = ranges

    def validate(self, quote: PriceQuote, asset: Asset) -> None:
        """
        Validate a quote for ``asset``.

        Raises:
            PriceValidationError: If the price is not a finite positive number
                inside the category range
        """
        price = quote.price
        bounds = self.ranges.for_category(asset.category.value)

        if not isinstance(price, (int, float)) or math.isnan(price) or math.isinf(price):
            raise PriceValidationError(
                f"Price for {asset.symbol} is not a finite number: {price!r}",
                symbol=asset.symbol,
                price=price,
                bounds=(bounds.min_price, bounds.max_price),
            )

        if price <= 0:
            raise PriceValidationError(
                f"Price for {asset.symbol} must be positive, got {price}",
                symbol=asset.symbol,
                price=price,
                bounds=(bounds.min_price, bounds.max_price),
            )

        if not bounds.contains(price):
            raise PriceValidationError(
                f"Price {price} for {asset.symbol} outside {asset.category.value} "
                f"range [{bounds.min_price}, {bounds.max_price}]",
                symbol=asset.symbol,
                price=price,
                bounds=(bounds.min_price, bounds.max_price),
            )

    def is_valid(self, quote: PriceQuote, asset: Asset) -> bool:
        try:
            self.validate(quote, asset)
        except PriceValidationError:
            return False
        return True
