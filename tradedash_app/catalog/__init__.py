"""
Static registry of tradable instruments.
"""

from .assets import Asset, AssetCatalog, AssetCategory, default_catalog

__all__ = ["Asset", "AssetCatalog", "AssetCategory", "default_catalog"]
