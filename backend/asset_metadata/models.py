"""
Asset Metadata Models

Data structures shared by the decoder, the resolver and the pipeline:

- TaggedValue: on-chain datum encoding (CIP68 style), a closed union of nodes
- ABSENT: explicit "not present" marker for decoded trees
- AssetRecord: per-fingerprint bundle returned by the asset lookup
- ImageReference: resolved pointer to image bytes
- CacheKey: (network, image class, fingerprint) cache slot
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict


# ============================================
# Absent marker
# ============================================

class _AbsentType:
    """Singleton marking a value that is not present."""

    _instance: Optional["_AbsentType"] = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "ABSENT"

    def __reduce__(self):
        return (_AbsentType, ())


ABSENT = _AbsentType()


# ============================================
# Tagged value tree
# ============================================

@dataclass(frozen=True)
class IntNode:
    value: int


@dataclass(frozen=True)
class BytesNode:
    hex: str


@dataclass(frozen=True)
class ListNode:
    items: Tuple["TaggedValue", ...]


@dataclass(frozen=True)
class StructNode:
    """Constructor application; `constructor` is informational only."""
    fields: Tuple["TaggedValue", ...]
    constructor: Optional[int] = None


@dataclass(frozen=True)
class MapNode:
    """Ordered key/value pairs, duplicates allowed."""
    pairs: Tuple[Tuple["TaggedValue", "TaggedValue"], ...]


TaggedValue = Union[IntNode, BytesNode, ListNode, StructNode, MapNode]


# ============================================
# Asset record
# ============================================

class TokenRegistryMetadata(BaseModel):
    """CIP26 off-chain registry entry (only the logo matters here)."""
    model_config = ConfigDict(extra="allow")

    logo: Optional[str] = None


class AssetRecord(BaseModel):
    """
    Everything the resolver needs to know about one asset.

    Built fresh for every resolution from the asset lookup response.
    """
    fingerprint: str
    policy_id: str
    asset_name: str = ""
    asset_name_ascii: Optional[str] = None
    minting_tx_metadata: Optional[Dict[str, Any]] = None
    cip68_metadata: Optional[Dict[str, Any]] = None
    token_registry_metadata: Optional[TokenRegistryMetadata] = None


# ============================================
# Image reference
# ============================================

class LocatorKind(str, Enum):
    """Transport of an image locator, decided by its prefix"""
    EMBEDDED_BASE64 = "base64"
    REMOTE_HTTP = "http"
    REMOTE_IPFS = "ipfs"


@dataclass(frozen=True)
class ImageReference:
    kind: LocatorKind
    locator: str

    def __post_init__(self):
        if not self.locator:
            raise ValueError("Image locator must not be empty")

    @property
    def is_remote(self) -> bool:
        return self.kind in (LocatorKind.REMOTE_HTTP, LocatorKind.REMOTE_IPFS)


# ============================================
# Cache key
# ============================================

class ImageClass(str, Enum):
    """Independent cache namespaces"""
    METADATA = "metadata"   # per-asset NFT/FT image
    REGISTRY = "registry"   # off-chain registry logo


@dataclass(frozen=True)
class CacheKey:
    network: str
    image_class: ImageClass
    fingerprint: str

    @property
    def image_id(self) -> str:
        """Image id inside the store, e.g. mainnet/metadata/asset1..."""
        return f"{self.network}/{self.image_class.value}/{self.fingerprint}"
