"""
Koios Module

Chain-index lookups for asset metadata.
"""

from .client import KoiosAssetClient

__all__ = ["KoiosAssetClient"]
