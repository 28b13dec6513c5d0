"""
Test configuration

Shared fixtures and fakes:
- config: Cloudflare-backed ProxyConfig with dummy credentials
- FakeAssetLookup / FakeImageStore: in-memory collaborators for the pipeline
- mock_client: httpx.AsyncClient driven by a MockTransport handler
"""

import asyncio
import sys
from io import BytesIO
from pathlib import Path
from typing import Callable, Dict, List, Optional

import httpx
import pytest
from PIL import Image

# Add the backend directory to the Python path
backend_dir = Path(__file__).parent.parent
sys.path.insert(0, str(backend_dir))

from asset_metadata.cip68 import string_to_hex
from asset_metadata.models import AssetRecord, CacheKey
from image_proxy.config import ProxyConfig
from image_proxy.errors import LookupFailure, ServeFailure
from image_store.base import ImageStore, ServedImage


GATEWAY = "https://gateway.test"
POLICY_ID = "f0ff48bbb7bbe9d59a40f1ce90e9e9d0ff5002ec48f232b49ca0fb9a"
ASSET_NAME_ASCII = "SpaceBud1"
ASSET_NAME = string_to_hex(ASSET_NAME_ASCII)
FINGERPRINT = "asset1qyx7hqaczrjyaeqz8wrkczp0ajkvntrxe0rjdp"


# ============================================
# Builders
# ============================================

def tagged_bytes(text: str) -> dict:
    return {"bytes": string_to_hex(text)}


def tagged_map(entries: Dict[str, object]) -> dict:
    """Tagged map with string keys; string values become bytes nodes."""
    pairs = []
    for key, value in entries.items():
        if isinstance(value, str):
            value = tagged_bytes(value)
        elif isinstance(value, list):
            value = {"list": [tagged_bytes(chunk) for chunk in value]}
        pairs.append({"k": tagged_bytes(key), "v": value})
    return {"map": pairs}


def cip68_datum(entries: Dict[str, object], version: int = 1) -> dict:
    """CIP68 datum: constructor 0 [metadata, version, extra]."""
    return {
        "constructor": 0,
        "fields": [tagged_map(entries), {"int": version}, {"list": []}],
    }


def make_asset(
    cip68: Optional[dict] = None,
    cip25_image=None,
    cip25_key: str = ASSET_NAME_ASCII,
    registry_logo: Optional[str] = None,
) -> AssetRecord:
    minting = None
    if cip25_image is not None:
        minting = {"721": {POLICY_ID: {cip25_key: {"name": "Bud", "image": cip25_image}}}}
    return AssetRecord(
        fingerprint=FINGERPRINT,
        policy_id=POLICY_ID,
        asset_name=ASSET_NAME,
        asset_name_ascii=ASSET_NAME_ASCII,
        minting_tx_metadata=minting,
        cip68_metadata=cip68,
        token_registry_metadata={"logo": registry_logo} if registry_logo else None,
    )


def png_bytes(color=(255, 0, 0)) -> bytes:
    buffer = BytesIO()
    Image.new("RGB", (4, 4), color).save(buffer, format="PNG")
    return buffer.getvalue()


async def iter_bytes(data: bytes):
    yield data


async def collect(body) -> bytes:
    return b"".join([chunk async for chunk in body])


# ============================================
# Fakes
# ============================================

class FakeAssetLookup:
    """Asset lookup returning prepared records."""

    def __init__(self, assets: Optional[Dict[str, AssetRecord]] = None):
        self.assets = assets or {}
        self.calls: List[tuple] = []

    async def fetch_asset(self, network: str, fingerprint: str) -> AssetRecord:
        self.calls.append((network, fingerprint))
        # Suspend like a network call would
        await asyncio.sleep(0)
        if fingerprint not in self.assets:
            raise LookupFailure(f"Asset {fingerprint} not found")
        return self.assets[fingerprint]


class FakeImageStore(ImageStore):
    """In-memory image store recording every call."""

    ETAG = '"fake-etag"'

    def __init__(self, exists_error: Optional[Exception] = None, upload_error: Optional[Exception] = None):
        self.images: Dict[str, bytes] = {}
        self.exists_error = exists_error
        self.upload_error = upload_error
        self.exists_calls = 0
        self.uploads: List[str] = []
        self.served: List[tuple] = []

    async def exists(self, key: CacheKey) -> bool:
        self.exists_calls += 1
        if self.exists_error:
            raise self.exists_error
        return key.image_id in self.images

    async def upload(self, data: bytes, key: CacheKey) -> None:
        self.uploads.append(key.image_id)
        await asyncio.sleep(0)
        if self.upload_error:
            raise self.upload_error
        self.images[key.image_id] = data

    async def serve(self, key: CacheKey, size: str, request_headers=None) -> ServedImage:
        self.served.append((key.image_id, size))
        if key.image_id not in self.images:
            raise ServeFailure(f"Missing {key.image_id}")
        headers = {"Content-Type": "image/png", "ETag": self.ETAG}
        if request_headers and request_headers.get("if-none-match") == self.ETAG:
            return ServedImage(status_code=304, headers=headers)
        return ServedImage(status_code=200, headers=headers, body=iter_bytes(self.images[key.image_id]))


# ============================================
# Fixtures
# ============================================

@pytest.fixture
def config() -> ProxyConfig:
    return ProxyConfig(
        cf_account_id="account",
        cf_api_token="token",
        cf_account_hash="hash",
        ipfs_gateway=GATEWAY,
    )


@pytest.fixture
def store() -> FakeImageStore:
    return FakeImageStore()


@pytest.fixture
def lookup() -> FakeAssetLookup:
    return FakeAssetLookup()


@pytest.fixture
def requests_seen() -> List[httpx.Request]:
    return []


@pytest.fixture
def mock_client(requests_seen):
    """
    Factory for an httpx.AsyncClient backed by a MockTransport.

    Usage:
        client = mock_client(lambda request: httpx.Response(200))
    """
    def factory(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.AsyncClient:
        def recording_handler(request: httpx.Request) -> httpx.Response:
            requests_seen.append(request)
            return handler(request)

        return httpx.AsyncClient(transport=httpx.MockTransport(recording_handler))

    return factory
