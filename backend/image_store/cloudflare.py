"""
Cloudflare Images Store

Uses the Cloudflare Images API for existence checks and uploads, and
imagedelivery.net for size variants (resizing happens on the CDN).
"""

import logging
from typing import Mapping, Optional

import httpx

from asset_metadata.models import CacheKey
from image_proxy.config import ProxyConfig
from image_proxy.errors import ServeFailure, UploadFailure

from .base import (
    ImageStore,
    ServedImage,
    filter_response_headers,
    forwarded_headers,
    stream_and_close,
)

logger = logging.getLogger(__name__)


class CloudflareImageStore(ImageStore):
    """
    Image store backed by Cloudflare Images.

    Image ids are `{network}/{image_class}/{fingerprint}`.
    """

    def __init__(self, config: ProxyConfig, http_client: httpx.AsyncClient):
        self.config = config
        self.http_client = http_client

    @property
    def _images_api(self) -> str:
        return f"{self.config.cf_api_url}/accounts/{self.config.cf_account_id}/images/v1"

    @property
    def _auth_headers(self) -> dict:
        return {"Authorization": f"Bearer {self.config.cf_api_token}"}

    def _delivery_url(self, key: CacheKey, size: str) -> str:
        return f"{self.config.cf_delivery_url}/{self.config.cf_account_hash}/{key.image_id}/{size}"

    async def exists(self, key: CacheKey) -> bool:
        # The API check is slower and rate limited, but the delivery URL keeps
        # serving a cached 404 for a while after upload.
        try:
            if self.config.exists_check == "http":
                logger.debug(f"[CFImages] Checking image exists (HTTP): {key.image_id}")
                response = await self.http_client.get(
                    self._delivery_url(key, self.config.checking_size)
                )
            else:
                logger.debug(f"[CFImages] Checking image exists (API): {key.image_id}")
                response = await self.http_client.get(
                    f"{self._images_api}/{key.image_id}",
                    headers=self._auth_headers,
                )
        except httpx.HTTPError as e:
            logger.warning(f"[CFImages] Exists check failed for {key.image_id}: {e}")
            return False
        return response.is_success

    async def upload(self, data: bytes, key: CacheKey) -> None:
        logger.info(f"[CFImages] Uploading {key.image_id} ({len(data)} bytes)")
        try:
            response = await self.http_client.post(
                self._images_api,
                headers=self._auth_headers,
                data={"id": key.image_id},
                files={"file": (key.fingerprint, data)},
            )
        except httpx.HTTPError as e:
            raise UploadFailure(f"Upload request failed: {e}") from e

        if response.status_code == 409:
            # A concurrent request uploaded the same id first
            logger.info(f"[CFImages] Already uploaded: {key.image_id}")
            return
        if not response.is_success:
            raise UploadFailure(
                f"Cloudflare rejected upload of {key.image_id}: {response.status_code} {response.text[:200]}"
            )

    async def serve(
        self,
        key: CacheKey,
        size: str,
        request_headers: Optional[Mapping[str, str]] = None,
    ) -> ServedImage:
        logger.debug(f"[CFImages] Serving {key.image_id}/{size}")
        request = self.http_client.build_request(
            "GET",
            self._delivery_url(key, size),
            headers=forwarded_headers(request_headers),
        )
        try:
            response = await self.http_client.send(request, stream=True)
        except httpx.HTTPError as e:
            raise ServeFailure(f"Delivery request failed: {e}") from e

        headers = filter_response_headers(response.headers)

        if response.status_code == 304:
            await response.aclose()
            return ServedImage(status_code=304, headers=headers)

        if response.is_success:
            return ServedImage(
                status_code=response.status_code,
                headers=headers,
                body=stream_and_close(response),
            )

        await response.aclose()
        raise ServeFailure(f"Delivery returned {response.status_code} for {key.image_id}/{size}")
