"""
Price data module.

Quote models, payload parsers for the REST and stream feeds, and the
per-category sanity validation applied before a quote is accepted.
"""
