"""
Configuration and usage counter tests

Run:
    pytest tests/test_config.py -v
"""

import pytest

from image_proxy.config import IMG_SIZE_LIMIT, ProxyConfig
from usage.counter import RequestCounter

CF_ENV = {
    "CF_ACCOUNT_ID": "account",
    "CF_API_TOKEN": "token",
    "CF_ACCOUNT_HASH": "hash",
}


class TestProxyConfig:
    """Environment parsing and validation"""

    def test_from_env_defaults(self):
        config = ProxyConfig.from_env(CF_ENV)

        assert config.store_backend == "cloudflare"
        assert config.exists_check == "api"
        assert config.ipfs_gateway == "https://nftstorage.link"
        assert config.size_limit_bytes == IMG_SIZE_LIMIT == 20_000_000
        assert config.cache_max_age == 604_800_000
        assert config.not_found_max_age == 6_048_000

    def test_from_env_overrides(self):
        config = ProxyConfig.from_env({
            **CF_ENV,
            "IPFS_GATEWAY_URL": "https://ipfs.io/",
            "IMAGE_EXISTS_CHECK": "HTTP",
            "HTTP_TIMEOUT_SECONDS": "5",
        })

        assert config.ipfs_gateway == "https://ipfs.io"
        assert config.exists_check == "http"
        assert config.http_timeout == 5.0

    def test_cloudflare_needs_credentials(self):
        with pytest.raises(ValueError, match="CF_API_TOKEN"):
            ProxyConfig.from_env({"CF_ACCOUNT_ID": "account", "CF_ACCOUNT_HASH": "hash"})

    def test_local_backend_needs_no_credentials(self):
        config = ProxyConfig.from_env({"IMAGE_STORE_BACKEND": "local", "IMAGE_CACHE_DIR": "/tmp/images"})

        assert config.store_backend == "local"
        assert config.cache_dir == "/tmp/images"

    def test_unknown_backend(self):
        with pytest.raises(ValueError):
            ProxyConfig.from_env({"IMAGE_STORE_BACKEND": "s3"})

    def test_unknown_exists_check(self):
        with pytest.raises(ValueError):
            ProxyConfig.from_env({**CF_ENV, "IMAGE_EXISTS_CHECK": "dns"})

    def test_sizes_for(self):
        config = ProxyConfig.from_env(CF_ENV)

        assert config.sizes_for("metadata") == ("32", "64", "128", "256", "512", "1024", "2048")
        assert config.sizes_for("registry") == ("32", "64", "128", "256", "512")
        assert config.sizes_for("other") == ()

    def test_koios_base_url(self):
        config = ProxyConfig.from_env(CF_ENV)

        assert config.koios_base_url("mainnet") == "https://api.koios.rest/api/v1"
        assert config.koios_base_url("preview") == "https://preview.koios.rest/api/v1"

    def test_koios_custom_template(self):
        config = ProxyConfig.from_env({**CF_ENV, "KOIOS_API_URL": "http://koios.internal/{network}/api/v1/"})

        assert config.koios_base_url("preprod") == "http://koios.internal/preprod/api/v1"

    def test_frozen(self):
        config = ProxyConfig.from_env(CF_ENV)

        with pytest.raises(AttributeError):
            config.size_limit_bytes = 1


class TestRequestCounter:
    """Usage counts"""

    def test_increment_and_snapshot(self):
        counter = RequestCounter()

        counter.increment("mainnet", "metadata")
        counter.increment("mainnet", "metadata")
        total = counter.increment("preview", "registry")

        snapshot = counter.snapshot()
        assert total == 3
        assert snapshot.total == 3
        assert snapshot.by_key == {"mainnet/metadata": 2, "preview/registry": 1}
        assert "started_at" in snapshot.to_dict()
