"""
Proxy Configuration

Immutable configuration built once at process start and passed by
reference into the pipeline, the stores and the routes.
"""

import os
from dataclasses import dataclass
from typing import Dict, Mapping, Optional, Tuple

# ============================================
# Policy defaults
# ============================================

API_GROUP = "cdn"
IMAGE_CLASSES = ("metadata", "registry")
ALLOWED_METHODS = ("GET", "POST", "OPTIONS", "HEAD")
ALLOWED_NETWORKS = ("mainnet", "preprod", "preview")
IMG_METADATA_SIZES = ("32", "64", "128", "256", "512", "1024", "2048")
IMG_REGISTRY_SIZES = ("32", "64", "128", "256", "512")
IMG_CHECKING_SIZE = "16"
IMG_SIZE_LIMIT = 20_000_000  # CDN upload limit in bytes, above it the original is passed through

CACHE_MAX_AGE_SECONDS = 604_800_000  # 1000 weeks
NOT_FOUND_MAX_AGE_SECONDS = 604_800 * 10  # 10 weeks

DEFAULT_IPFS_GATEWAY = "https://nftstorage.link"
DEFAULT_CF_API_URL = "https://api.cloudflare.com/client/v4"
DEFAULT_CF_DELIVERY_URL = "https://imagedelivery.net"
DEFAULT_KOIOS_API_URL = "https://{subdomain}.koios.rest/api/v1"

KOIOS_SUBDOMAINS = {
    "mainnet": "api",
    "preprod": "preprod",
    "preview": "preview",
}

STORE_BACKENDS = ("cloudflare", "local")
EXISTS_CHECK_MODES = ("api", "http")


@dataclass(frozen=True)
class ProxyConfig:
    """Configuration for the image proxy."""
    # Cloudflare Images
    cf_account_id: str = ""
    cf_api_token: str = ""
    cf_account_hash: str = ""
    cf_api_url: str = DEFAULT_CF_API_URL
    cf_delivery_url: str = DEFAULT_CF_DELIVERY_URL
    exists_check: str = "api"           # api | http

    # Image store backend
    store_backend: str = "cloudflare"   # cloudflare | local
    cache_dir: str = "./image_cache"

    # Upstream sources
    ipfs_gateway: str = DEFAULT_IPFS_GATEWAY
    koios_api_url: str = DEFAULT_KOIOS_API_URL
    koios_api_token: str = ""
    http_timeout: float = 30.0

    # Request policy
    api_group: str = API_GROUP
    allowed_methods: Tuple[str, ...] = ALLOWED_METHODS
    allowed_networks: Tuple[str, ...] = ALLOWED_NETWORKS
    metadata_sizes: Tuple[str, ...] = IMG_METADATA_SIZES
    registry_sizes: Tuple[str, ...] = IMG_REGISTRY_SIZES
    checking_size: str = IMG_CHECKING_SIZE
    size_limit_bytes: int = IMG_SIZE_LIMIT
    cache_max_age: int = CACHE_MAX_AGE_SECONDS
    not_found_max_age: int = NOT_FOUND_MAX_AGE_SECONDS

    def __post_init__(self):
        if self.store_backend not in STORE_BACKENDS:
            raise ValueError(
                f"Unknown image store backend: {self.store_backend}. Use: {', '.join(STORE_BACKENDS)}"
            )
        if self.exists_check not in EXISTS_CHECK_MODES:
            raise ValueError(
                f"Unknown exists check mode: {self.exists_check}. Use: {', '.join(EXISTS_CHECK_MODES)}"
            )
        if self.store_backend == "cloudflare":
            missing = [
                name for name, value in (
                    ("CF_ACCOUNT_ID", self.cf_account_id),
                    ("CF_API_TOKEN", self.cf_api_token),
                    ("CF_ACCOUNT_HASH", self.cf_account_hash),
                )
                if not value
            ]
            if missing:
                raise ValueError(f"Cloudflare image store needs {', '.join(missing)}")

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "ProxyConfig":
        """Build the configuration from environment variables."""
        env = os.environ if environ is None else environ
        return cls(
            cf_account_id=env.get("CF_ACCOUNT_ID", ""),
            cf_api_token=env.get("CF_API_TOKEN", ""),
            cf_account_hash=env.get("CF_ACCOUNT_HASH", ""),
            cf_api_url=env.get("CF_API_URL", DEFAULT_CF_API_URL).rstrip("/"),
            cf_delivery_url=env.get("CF_DELIVERY_URL", DEFAULT_CF_DELIVERY_URL).rstrip("/"),
            exists_check=env.get("IMAGE_EXISTS_CHECK", "api").lower(),
            store_backend=env.get("IMAGE_STORE_BACKEND", "cloudflare").lower(),
            cache_dir=env.get("IMAGE_CACHE_DIR", "./image_cache"),
            ipfs_gateway=env.get("IPFS_GATEWAY_URL", DEFAULT_IPFS_GATEWAY).rstrip("/"),
            koios_api_url=env.get("KOIOS_API_URL", DEFAULT_KOIOS_API_URL).rstrip("/"),
            koios_api_token=env.get("KOIOS_API_TOKEN", ""),
            http_timeout=float(env.get("HTTP_TIMEOUT_SECONDS", "30")),
        )

    def sizes_for(self, image_class: str) -> Tuple[str, ...]:
        """Allowed size variants for an image class."""
        if image_class == "metadata":
            return self.metadata_sizes
        if image_class == "registry":
            return self.registry_sizes
        return ()

    def koios_base_url(self, network: str) -> str:
        """Koios API base URL for a network."""
        return self.koios_api_url.format(
            network=network,
            subdomain=KOIOS_SUBDOMAINS.get(network, network),
        )

    def koios_headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.koios_api_token:
            headers["Authorization"] = f"Bearer {self.koios_api_token}"
        return headers
