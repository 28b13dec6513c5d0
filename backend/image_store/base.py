"""
Image Store Interface

Contract between the resolution pipeline and the CDN-backed image store:
- exists: is the image already materialized?
- upload: store the original bytes (idempotent per key)
- serve: fetch a size variant, honoring conditional request headers
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import AsyncIterator, Dict, Iterable, Mapping, Optional

import httpx

from asset_metadata.models import CacheKey

# Request headers passed through to the store when serving
FORWARDED_REQUEST_HEADERS = (
    "accept",
    "if-none-match",
    "if-modified-since",
)

# Response headers never copied from the store to the caller
DROPPED_RESPONSE_HEADERS = {
    "content-security-policy",
    "content-length",
    "content-encoding",
    "transfer-encoding",
    "connection",
    "keep-alive",
}


@dataclass
class ServedImage:
    """A size variant served by the store."""
    status_code: int
    headers: Dict[str, str] = field(default_factory=dict)
    body: Optional[AsyncIterator[bytes]] = None  # None for 304

    @property
    def not_modified(self) -> bool:
        return self.status_code == 304


class ImageStore(ABC):
    """Base class for image stores."""

    @abstractmethod
    async def exists(self, key: CacheKey) -> bool:
        """True when the image is stored. Errors count as False."""

    @abstractmethod
    async def upload(self, data: bytes, key: CacheKey) -> None:
        """Store image bytes under the key. Raises UploadFailure."""

    @abstractmethod
    async def serve(
        self,
        key: CacheKey,
        size: str,
        request_headers: Optional[Mapping[str, str]] = None,
    ) -> ServedImage:
        """Serve a size variant. Raises ServeFailure."""

    async def aclose(self) -> None:
        """Release resources held by the store."""


def forwarded_headers(request_headers: Optional[Mapping[str, str]]) -> Dict[str, str]:
    if not request_headers:
        return {}
    lowered = {k.lower(): v for k, v in request_headers.items()}
    return {name: lowered[name] for name in FORWARDED_REQUEST_HEADERS if name in lowered}


def filter_response_headers(headers: Mapping[str, str]) -> Dict[str, str]:
    return {
        k: v for k, v in headers.items()
        if k.lower() not in DROPPED_RESPONSE_HEADERS
    }


async def stream_and_close(
    response: httpx.Response,
    head: Iterable[bytes] = (),
    chunks: Optional[AsyncIterator[bytes]] = None,
) -> AsyncIterator[bytes]:
    """
    Stream a response body and close the response when done or abandoned.

    `head` holds chunks already read from the body, `chunks` the partly
    consumed body iterator they came from.
    """
    try:
        for chunk in head:
            yield chunk
        async for chunk in (chunks if chunks is not None else response.aiter_bytes()):
            yield chunk
    finally:
        await response.aclose()
