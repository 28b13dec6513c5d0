"""
Image CDN Proxy - Application Entry

Wires configuration, HTTP client, asset lookup, image store and the
resolution pipeline into a FastAPI app.

Run:
    cd backend
    python main.py
"""

import logging
import os
from contextlib import asynccontextmanager
from typing import Optional

import httpx
import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from asset_metadata.resolver import ImageSourceResolver
from image_proxy.config import ProxyConfig
from image_proxy.pipeline import ResolutionPipeline
from image_proxy.routes_fastapi import router as image_proxy_router
from image_store import ImageStore, create_image_store
from koios import KoiosAssetClient
from usage import RequestCounter, usage_router

logger = logging.getLogger(__name__)


def configure_logging(level: Optional[str] = None) -> None:
    """Configure root logging once; level from arg, then LOG_LEVEL, then INFO."""
    logging.basicConfig(
        level=(level or os.getenv("LOG_LEVEL", "INFO")).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def create_app(
    config: Optional[ProxyConfig] = None,
    http_client: Optional[httpx.AsyncClient] = None,
    lookup=None,
    store: Optional[ImageStore] = None,
) -> FastAPI:
    """
    Build the application.

    Collaborators can be injected (tests); otherwise they are built from
    the configuration.
    """
    config = config or ProxyConfig.from_env()
    owns_client = http_client is None
    http_client = http_client or httpx.AsyncClient(
        timeout=config.http_timeout,
        follow_redirects=True,
        headers={"User-Agent": "cardano-image-cdn/0.1"},
    )
    store = store or create_image_store(config, http_client)
    lookup = lookup or KoiosAssetClient(config, http_client)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(f"[App] Image proxy started (store: {config.store_backend})")
        yield
        await store.aclose()
        if owns_client:
            await http_client.aclose()
        logger.info("[App] Image proxy stopped")

    app = FastAPI(title="Cardano Image CDN Proxy", lifespan=lifespan)
    app.state.config = config
    app.state.counter = RequestCounter()
    app.state.pipeline = ResolutionPipeline(
        config=config,
        lookup=lookup,
        store=store,
        resolver=ImageSourceResolver(config.ipfs_gateway),
        http_client=http_client,
    )

    # Covers framework-generated responses; image routes set their own CORS headers
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=list(config.allowed_methods),
        allow_headers=["Origin", "X-Requested-With", "Content-Type", "Accept"],
        max_age=86400,
    )
    app.include_router(usage_router)
    app.include_router(image_proxy_router)
    return app


if __name__ == "__main__":
    configure_logging()
    uvicorn.run(
        create_app(),
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8000")),
    )
