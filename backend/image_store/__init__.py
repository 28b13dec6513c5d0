"""
Image Store Module

CDN-backed storage for materialized images.

Backends:
- cloudflare: Cloudflare Images (production)
- local: file-based store (development, self-hosting)
"""

import httpx

from image_proxy.config import ProxyConfig

from .base import ImageStore, ServedImage
from .cloudflare import CloudflareImageStore
from .local import LocalImageStore


def create_image_store(config: ProxyConfig, http_client: httpx.AsyncClient) -> ImageStore:
    """Build the image store selected by the configuration."""
    if config.store_backend == "local":
        return LocalImageStore(cache_dir=config.cache_dir)
    return CloudflareImageStore(config, http_client)


__all__ = [
    "CloudflareImageStore",
    "ImageStore",
    "LocalImageStore",
    "ServedImage",
    "create_image_store",
]
