"""
TradeDash App - Price Reconciliation and Timed-Settlement Engine

The core of a demo trading dashboard. Merges live tick streams with REST
polling fallbacks into one reconciled price per asset, tracks feed staleness
and sharp price movements, and drives fixed-duration directional trades from
open to automatic settlement against a per-mode account balance.
"""

__version__ = "0.1.0"
__author__ = "TradeDash Team"
