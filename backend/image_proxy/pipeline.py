"""
Resolution Pipeline

Materializes an asset image into the image store exactly once per cache
miss, then serves size variants from the store.

States:
    CheckingCache -> Serving                               (hit)
    CheckingCache -> ResolvingSource -> DecodingEmbedded -> Uploading -> Serving
    CheckingCache -> ResolvingSource -> FetchingRemote   -> Uploading -> Serving
    FetchingRemote -> Passthrough                          (too large for the CDN)

Every failure in the resolution branch ends as NotFound. There is no lock
around uploading: concurrent misses for the same key each upload, and the
store accepts same-key re-uploads.
"""

import logging
from dataclasses import dataclass
from typing import AsyncIterator, Mapping, Optional, Union

import httpx

from asset_metadata.models import AssetRecord, CacheKey, ImageClass, ImageReference
from asset_metadata.resolver import ImageSourceResolver, decode_embedded
from image_store.base import ImageStore, ServedImage, stream_and_close

from .config import ProxyConfig
from .errors import FailureKind, RemoteFetchFailure, ResolutionError

logger = logging.getLogger(__name__)


# ============================================
# Outcomes
# ============================================

@dataclass
class Served:
    """Image served from the store (2xx or 304)."""
    image: ServedImage


@dataclass
class Passthrough:
    """Remote original streamed as-is because it exceeds the upload limit."""
    body: AsyncIterator[bytes]
    content_type: Optional[str] = None


@dataclass
class NotFound:
    """No image could be produced; the cause is only logged."""
    kind: FailureKind
    detail: str = ""


Outcome = Union[Served, Passthrough, NotFound]


# ============================================
# Pipeline
# ============================================

class ResolutionPipeline:
    """
    Orchestrates cache check, source resolution, upload and serving.

    Usage:
        pipeline = ResolutionPipeline(config, lookup, store, resolver, http_client)
        outcome = await pipeline.run("mainnet", ImageClass.METADATA, "asset1...", "256")
    """

    def __init__(
        self,
        config: ProxyConfig,
        lookup,
        store: ImageStore,
        resolver: ImageSourceResolver,
        http_client: httpx.AsyncClient,
    ):
        self.config = config
        self.lookup = lookup
        self.store = store
        self.resolver = resolver
        self.http_client = http_client

    async def run(
        self,
        network: str,
        image_class: ImageClass,
        fingerprint: str,
        size: str,
        request_headers: Optional[Mapping[str, str]] = None,
    ) -> Outcome:
        key = CacheKey(network=network, image_class=ImageClass(image_class), fingerprint=fingerprint)

        # CheckingCache
        if await self._is_cached(key):
            try:
                return Served(await self.store.serve(key, size, request_headers))
            except ResolutionError as e:
                logger.warning(f"[Pipeline] Cached image not served, re-resolving {key.image_id}: {e}")

        # ResolvingSource onwards
        try:
            if key.image_class == ImageClass.REGISTRY:
                return await self._materialize_registry(key, size, request_headers)
            return await self._materialize_metadata(key, size, request_headers)
        except ResolutionError as e:
            logger.info(f"[Pipeline] {key.image_id}: {e.kind.value}: {e}")
            return NotFound(kind=e.kind, detail=str(e))
        except Exception as e:
            logger.exception(f"[Pipeline] Unexpected error for {key.image_id}")
            return NotFound(kind=FailureKind.INTERNAL, detail=str(e))

    async def _is_cached(self, key: CacheKey) -> bool:
        """Existence check; any store error degrades to a miss."""
        try:
            return await self.store.exists(key)
        except Exception as e:
            logger.warning(f"[Pipeline] Exists check failed for {key.image_id}, treating as miss: {e}")
            return False

    async def _fetch_asset(self, key: CacheKey) -> AssetRecord:
        logger.info(f"[Pipeline] Cache miss, resolving {key.image_id}")
        return await self.lookup.fetch_asset(key.network, key.fingerprint)

    async def _materialize_metadata(
        self,
        key: CacheKey,
        size: str,
        request_headers: Optional[Mapping[str, str]],
    ) -> Outcome:
        asset = await self._fetch_asset(key)
        reference = self.resolver.resolve(asset)

        if reference.is_remote:
            fetched = await self._fetch_remote(reference)
            if isinstance(fetched, Passthrough):
                return fetched
            data = fetched
        else:
            data = decode_embedded(reference.locator)

        return await self._upload_and_serve(data, key, size, request_headers)

    async def _materialize_registry(
        self,
        key: CacheKey,
        size: str,
        request_headers: Optional[Mapping[str, str]],
    ) -> Outcome:
        asset = await self._fetch_asset(key)
        data = decode_embedded(self.resolver.registry_logo(asset))
        return await self._upload_and_serve(data, key, size, request_headers)

    async def _fetch_remote(self, reference: ImageReference) -> Union[bytes, Passthrough]:
        """
        Download a remote image.

        Returns the bytes, or a Passthrough when the declared or received length
        exceeds the upload limit (the body is then streamed to the caller
        unmodified, starting with any chunks already read).
        """
        logger.info(f"[Pipeline] Fetching {reference.kind.value}: {reference.locator[:80]}")
        request = self.http_client.build_request("GET", reference.locator)
        try:
            response = await self.http_client.send(request, stream=True)
        except httpx.HTTPError as e:
            raise RemoteFetchFailure(f"Error getting image from HTTP/IPFS: {e}") from e

        handed_off = False
        try:
            if not response.is_success:
                raise RemoteFetchFailure(
                    f"Error getting image from HTTP/IPFS: {response.status_code} {reference.locator[:80]}"
                )

            declared = _content_length(response)
            if declared > self.config.size_limit_bytes:
                logger.info(f"[Pipeline] Image too large ({declared} bytes), serving original")
                handed_off = True
                return Passthrough(
                    body=stream_and_close(response),
                    content_type=response.headers.get("content-type"),
                )

            # Undeclared lengths are counted while reading
            chunks = []
            received = 0
            body = response.aiter_bytes()
            try:
                async for chunk in body:
                    chunks.append(chunk)
                    received += len(chunk)
                    if received > self.config.size_limit_bytes:
                        logger.info(f"[Pipeline] Image body over {self.config.size_limit_bytes} bytes, serving original")
                        handed_off = True
                        return Passthrough(
                            body=stream_and_close(response, head=chunks, chunks=body),
                            content_type=response.headers.get("content-type"),
                        )
            except httpx.HTTPError as e:
                raise RemoteFetchFailure(f"Error reading image body: {e}") from e
            return b"".join(chunks)
        finally:
            if not handed_off:
                await response.aclose()

    async def _upload_and_serve(
        self,
        data: bytes,
        key: CacheKey,
        size: str,
        request_headers: Optional[Mapping[str, str]],
    ) -> Served:
        await self.store.upload(data, key)
        return Served(await self.store.serve(key, size, request_headers))


def _content_length(response: httpx.Response) -> int:
    """Declared content length; missing or invalid counts as 0."""
    try:
        return int(response.headers.get("content-length") or 0)
    except ValueError:
        return 0
