"""
Derived price-feed health metrics.

Staleness status per asset and quote-to-quote movement alerts, both fed by
the aggregator's accepted price updates.
"""
