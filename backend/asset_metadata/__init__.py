"""
Asset Metadata Module

Decodes on-chain asset metadata and picks the image to serve.

Features:
- CIP68 tagged datum decoding into plain dicts/lists
- Image priority across CIP68 labels and CIP25 minting metadata
- Locator classification (embedded base64, HTTP, IPFS gateway rewrite)
"""

from .cip68 import decode, decode_cip68_metadata, hex_to_string, parse_tagged_value
from .models import ABSENT, AssetRecord, CacheKey, ImageClass, ImageReference, LocatorKind
from .resolver import ImageSourceResolver, decode_embedded

__all__ = [
    "ABSENT",
    "AssetRecord",
    "CacheKey",
    "ImageClass",
    "ImageReference",
    "ImageSourceResolver",
    "LocatorKind",
    "decode",
    "decode_cip68_metadata",
    "decode_embedded",
    "hex_to_string",
    "parse_tagged_value",
]
