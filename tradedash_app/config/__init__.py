"""
Static configuration: alert thresholds, stake bounds, per-category price
ranges, feed endpoints and timer cadences.
"""

from .defaults import AppConfig, get_default_config
from .loader import ConfigLoader

__all__ = ["AppConfig", "ConfigLoader", "get_default_config"]
