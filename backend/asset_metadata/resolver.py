"""
Image Source Resolver

Picks exactly one image reference for an asset by walking the metadata
standards in a fixed priority order:

1. CIP68 label 222 (NFT, CIP25 inner structure)
2. CIP68 label 444 (RFT, union of CIP25 and registry structures)
3. CIP68 label 100 (reference NFT holding the datum)
4. CIP68 label 333 (FT, registry structure, `logo` field)
5. CIP25 minting metadata keyed by the ASCII asset name
6. CIP25 minting metadata keyed by the raw (hex) asset name

The registry logo (CIP26) is a separate image class and never takes part
in this chain.
"""

import base64
import binascii
import logging
from typing import Any, Callable, Dict, Iterable, Optional, Tuple
from urllib.parse import unquote_to_bytes

from image_proxy.errors import ImageDecodeError, NoImageFound, UnsupportedLocatorFormat

from .cip68 import decode_cip68_metadata
from .models import ABSENT, AssetRecord, ImageReference, LocatorKind

logger = logging.getLogger(__name__)

# (label, field) in priority order
CIP68_CANDIDATES: Tuple[Tuple[str, str], ...] = (
    ("222", "image"),
    ("444", "image"),
    ("100", "image"),
    ("333", "logo"),
)

CIP25_LABEL = "721"

DATA_IMAGE_PREFIX = "data:image/"
HTTP_PREFIXES = ("https://", "http://")
IPFS_PREFIX = "ipfs://"


def lookup(tree: Any, *path: Any) -> Any:
    """
    Walk a decoded tree by dict keys and list indexes.

    Returns ABSENT as soon as a step is missing or has the wrong shape.
    """
    node = tree
    for step in path:
        if isinstance(node, dict):
            if step is None or step not in node:
                return ABSENT
            node = node[step]
        elif isinstance(node, list) and isinstance(step, int):
            if not -len(node) <= step < len(node):
                return ABSENT
            node = node[step]
        else:
            return ABSENT
    if node is None:
        return ABSENT
    return node


class ImageSourceResolver:
    """
    Resolves the image of an asset from its metadata.

    Usage:
        resolver = ImageSourceResolver("https://nftstorage.link")
        reference = resolver.resolve(asset)
    """

    def __init__(
        self,
        ipfs_gateway: str,
        decoder: Callable[[Optional[Dict[str, Any]]], Dict[str, Any]] = decode_cip68_metadata,
    ):
        self.ipfs_gateway = ipfs_gateway.rstrip("/")
        self.decoder = decoder

    def candidates(self, asset: AssetRecord) -> Iterable[Tuple[str, Any]]:
        """Yield (source, value) for every candidate, in priority order."""
        cip68 = self.decoder(asset.cip68_metadata)
        for label, field in CIP68_CANDIDATES:
            yield f"cip68:{label}", lookup(cip68, label, 0, field)

        cip25 = asset.minting_tx_metadata or {}
        yield "cip25:ascii", lookup(cip25, CIP25_LABEL, asset.policy_id, asset.asset_name_ascii, "image")
        # For minters that key by the hex asset name instead of the ASCII one
        yield "cip25:hex", lookup(cip25, CIP25_LABEL, asset.policy_id, asset.asset_name, "image")

    def resolve(self, asset: AssetRecord) -> ImageReference:
        """
        Pick and classify the image of an asset.

        Raises:
            NoImageFound: no standard carries an image
            UnsupportedLocatorFormat: the winning candidate has an unknown format
        """
        for source, value in self.candidates(asset):
            if value is ABSENT:
                continue
            logger.debug(f"[Resolver] {asset.fingerprint}: image from {source}")
            return self.classify(self.normalize(value))

        raise NoImageFound(f"No image in CIP68/CIP25 metadata for {asset.fingerprint}")

    @staticmethod
    def normalize(value: Any) -> str:
        """Join chunked values (metadata strings are capped at 64 bytes)."""
        if isinstance(value, list):
            if not all(isinstance(chunk, str) for chunk in value):
                raise UnsupportedLocatorFormat(f"Image chunks are not all strings: {value!r:.80}")
            return "".join(value)
        if isinstance(value, str):
            return value
        raise UnsupportedLocatorFormat(f"Image value is not a string: {value!r:.80}")

    def classify(self, locator: str) -> ImageReference:
        """Classify a locator by its literal prefix."""
        if locator.startswith(HTTP_PREFIXES):
            return ImageReference(LocatorKind.REMOTE_HTTP, locator)

        if locator.startswith(IPFS_PREFIX):
            path = locator.replace("ipfs://", "").replace("ipfs/", "")
            return ImageReference(LocatorKind.REMOTE_IPFS, f"{self.ipfs_gateway}/ipfs/{path}")

        if locator.startswith(DATA_IMAGE_PREFIX):
            return ImageReference(LocatorKind.EMBEDDED_BASE64, locator)

        raise UnsupportedLocatorFormat(f"Unsupported image locator: {locator[:60]}")

    @staticmethod
    def registry_logo(asset: AssetRecord) -> str:
        """Registry (CIP26) logo of an asset, base64 encoded."""
        registry = asset.token_registry_metadata
        if registry is None or not registry.logo:
            raise NoImageFound(f"No registry logo for {asset.fingerprint}")
        return registry.logo


def decode_embedded(data: str) -> bytes:
    """
    Decode an embedded image into raw bytes.

    Accepts `data:` URIs (base64 or percent-encoded) and bare base64 as used
    by registry logos.
    """
    if data.startswith("data:"):
        header, sep, payload = data.partition(",")
        if not sep:
            raise ImageDecodeError("Data URI without payload")
        if ";base64" not in header.lower():
            return unquote_to_bytes(payload)
        data = payload

    try:
        return base64.b64decode("".join(data.split()), validate=True)
    except (binascii.Error, ValueError) as e:
        raise ImageDecodeError(f"Invalid base64 image data: {e}") from None
