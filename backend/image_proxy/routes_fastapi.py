"""
Image Proxy API Routes

    /cdn/{network}/{image_class}/{fingerprint}/{size}

- network: mainnet | preprod | preview
- image_class: metadata (CIP25/CIP68 image) | registry (CIP26 logo)
- size: metadata 32..2048, registry 32..512

Request checks run in a fixed order (preflight, method, path, size) so
that every rejection has a stable plain-text response.
"""

import logging
import re
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Request
from fastapi.responses import JSONResponse, Response

from asset_metadata.models import ImageClass

from .config import ProxyConfig
from .pipeline import NotFound, ResolutionPipeline
from .responses import (
    api_not_found,
    method_not_allowed,
    outcome_response,
    preflight_response,
    wrong_size,
)

logger = logging.getLogger(__name__)

FINGERPRINT_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")

ROUTE_METHODS = ["GET", "POST", "OPTIONS", "HEAD", "PUT", "PATCH", "DELETE"]

# ============================================
# Router
# ============================================

router = APIRouter(tags=["Image Proxy"])


# ============================================
# Endpoints
# ============================================

@router.get("/health")
async def health_check(request: Request):
    """Health check endpoint."""
    config: ProxyConfig = request.app.state.config
    return JSONResponse(content={
        "status": "healthy",
        "service": "image-proxy",
        "store_backend": config.store_backend,
    })


@router.api_route(
    "/{group}/{network}/{image_class}/{fingerprint}/{size}",
    methods=ROUTE_METHODS,
)
async def proxy_image(
    request: Request,
    group: str,
    network: str,
    image_class: str,
    fingerprint: str,
    size: str,
    background_tasks: BackgroundTasks,
) -> Response:
    """
    Serve an asset image at the requested size.

    This endpoint:
    1. Checks if the image is already in the image store
    2. If not, resolves it from CIP68/CIP25 metadata (or the CIP26 registry)
    3. Uploads the original to the store
    4. Serves the requested size variant with long cache headers

    Example:
        GET /cdn/mainnet/metadata/asset1.../256
    """
    config: ProxyConfig = request.app.state.config
    pipeline: ResolutionPipeline = request.app.state.pipeline

    rejected = _check_method(request, config)
    if rejected is not None:
        return rejected
    if group != config.api_group:
        return api_not_found()
    if image_class not in (ImageClass.METADATA.value, ImageClass.REGISTRY.value):
        return api_not_found()
    if network not in config.allowed_networks:
        return api_not_found()
    if not FINGERPRINT_PATTERN.match(fingerprint):
        return api_not_found()
    if size not in config.sizes_for(image_class):
        return wrong_size()

    counter = request.app.state.counter
    background_tasks.add_task(counter.increment, network, image_class)

    outcome = await pipeline.run(
        network,
        ImageClass(image_class),
        fingerprint,
        size,
        request_headers=request.headers,
    )
    if isinstance(outcome, NotFound):
        logger.info(f"[ImageProxy] Not found: {network}/{image_class}/{fingerprint} ({outcome.kind.value})")

    return outcome_response(outcome, config)


@router.api_route("/{path:path}", methods=ROUTE_METHODS, include_in_schema=False)
async def unknown_path(request: Request, path: str) -> Response:
    """Any other path, e.g. missing or extra segments."""
    config: ProxyConfig = request.app.state.config
    rejected = _check_method(request, config)
    if rejected is not None:
        return rejected
    return api_not_found()


def _check_method(request: Request, config: ProxyConfig) -> Optional[Response]:
    """Preflight and method checks shared by every proxy path."""
    if request.method == "OPTIONS":
        return preflight_response(config)
    if request.method not in config.allowed_methods:
        return method_not_allowed()
    return None
