"""
Koios asset client tests

Run:
    pytest tests/test_koios_client.py -v
"""

import json
from dataclasses import replace

import httpx
import pytest

from conftest import ASSET_NAME, ASSET_NAME_ASCII, FINGERPRINT, POLICY_ID, cip68_datum
from image_proxy.errors import LookupFailure
from koios.client import KoiosAssetClient, normalize_tx_metadata

ASSET_INFO = {
    "asset_name": ASSET_NAME,
    "asset_name_ascii": ASSET_NAME_ASCII,
    "minting_tx_metadata": {"721": {POLICY_ID: {ASSET_NAME_ASCII: {"image": "ipfs://QmBud"}}}},
    "cip68_metadata": {"222": cip68_datum({"image": "ipfs://QmBud"})},
    "token_registry_metadata": {"logo": "iVBORw0KGgo=", "ticker": "BUD"},
}


def koios_handler(asset_list=None, asset_info=None, status=200):
    """MockTransport handler for the two Koios endpoints."""
    def handler(request: httpx.Request) -> httpx.Response:
        if status != 200:
            return httpx.Response(status, text="upstream error")
        if request.url.path.endswith("/asset_list"):
            return httpx.Response(200, json=asset_list if asset_list is not None else [
                {"policy_id": POLICY_ID, "asset_name": ASSET_NAME, "fingerprint": FINGERPRINT},
            ])
        if request.url.path.endswith("/asset_info"):
            return httpx.Response(200, json=asset_info if asset_info is not None else [ASSET_INFO])
        return httpx.Response(404)
    return handler


class TestFetchAsset:
    """fingerprint -> AssetRecord"""

    @pytest.mark.asyncio
    async def test_success(self, config, mock_client, requests_seen):
        client = KoiosAssetClient(config, mock_client(koios_handler()))

        asset = await client.fetch_asset("mainnet", FINGERPRINT)

        assert asset.policy_id == POLICY_ID
        assert asset.asset_name == ASSET_NAME
        assert asset.asset_name_ascii == ASSET_NAME_ASCII
        assert asset.minting_tx_metadata["721"][POLICY_ID][ASSET_NAME_ASCII]["image"] == "ipfs://QmBud"
        assert "222" in asset.cip68_metadata
        assert asset.token_registry_metadata.logo == "iVBORw0KGgo="

        list_request, info_request = requests_seen
        assert list_request.method == "GET"
        assert str(list_request.url).startswith("https://api.koios.rest/api/v1/asset_list")
        assert list_request.url.params["fingerprint"] == f"eq.{FINGERPRINT}"
        assert info_request.method == "POST"
        assert info_request.url.params["select"].startswith("asset_name,asset_name_ascii")
        assert json.loads(info_request.content) == {"_asset_list": [[POLICY_ID, ASSET_NAME]]}

    @pytest.mark.asyncio
    async def test_network_base_url(self, config, mock_client, requests_seen):
        client = KoiosAssetClient(config, mock_client(koios_handler()))

        await client.fetch_asset("preprod", FINGERPRINT)

        assert requests_seen[0].url.host == "preprod.koios.rest"

    @pytest.mark.asyncio
    async def test_bearer_token(self, config, mock_client, requests_seen):
        config = replace(config, koios_api_token="koios-token")
        client = KoiosAssetClient(config, mock_client(koios_handler()))

        await client.fetch_asset("mainnet", FINGERPRINT)

        assert requests_seen[0].headers["Authorization"] == "Bearer koios-token"

    @pytest.mark.asyncio
    async def test_unknown_fingerprint(self, config, mock_client):
        client = KoiosAssetClient(config, mock_client(koios_handler(asset_list=[])))

        with pytest.raises(LookupFailure):
            await client.fetch_asset("mainnet", FINGERPRINT)

    @pytest.mark.asyncio
    async def test_upstream_error(self, config, mock_client):
        client = KoiosAssetClient(config, mock_client(koios_handler(status=503)))

        with pytest.raises(LookupFailure):
            await client.fetch_asset("mainnet", FINGERPRINT)

    @pytest.mark.asyncio
    async def test_transport_error(self, config, mock_client):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        client = KoiosAssetClient(config, mock_client(handler))

        with pytest.raises(LookupFailure):
            await client.fetch_asset("mainnet", FINGERPRINT)

    @pytest.mark.asyncio
    async def test_invalid_json(self, config, mock_client):
        client = KoiosAssetClient(config, mock_client(lambda request: httpx.Response(200, text="<html>")))

        with pytest.raises(LookupFailure):
            await client.fetch_asset("mainnet", FINGERPRINT)

    @pytest.mark.asyncio
    async def test_missing_optional_metadata(self, config, mock_client):
        info = [{"asset_name": ASSET_NAME, "asset_name_ascii": ASSET_NAME_ASCII,
                 "minting_tx_metadata": None, "cip68_metadata": None, "token_registry_metadata": None}]
        client = KoiosAssetClient(config, mock_client(koios_handler(asset_info=info)))

        asset = await client.fetch_asset("mainnet", FINGERPRINT)

        assert asset.minting_tx_metadata is None
        assert asset.cip68_metadata is None
        assert asset.token_registry_metadata is None


class TestNormalizeTxMetadata:
    """Minting metadata shapes across Koios versions"""

    def test_dict_passthrough(self):
        assert normalize_tx_metadata({"721": {}}) == {"721": {}}

    def test_key_json_list(self):
        raw = [{"key": "721", "json": {"p": {}}}, {"key": 674, "json": {"msg": ["hi"]}}]
        assert normalize_tx_metadata(raw) == {"721": {"p": {}}, "674": {"msg": ["hi"]}}

    def test_other_shapes(self):
        assert normalize_tx_metadata(None) is None
        assert normalize_tx_metadata("721") is None
