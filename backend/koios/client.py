"""
Koios Asset Client

Resolves an asset fingerprint into the metadata the image resolver needs:
1. asset_list: fingerprint -> policy id + hex asset name
2. asset_info: policy id + name -> minting/CIP68/registry metadata
"""

import logging
from typing import Any, Dict, List, Optional

import httpx
from pydantic import ValidationError

from asset_metadata.models import AssetRecord
from image_proxy.config import ProxyConfig
from image_proxy.errors import LookupFailure

logger = logging.getLogger(__name__)

ASSET_INFO_FIELDS = (
    "asset_name",
    "asset_name_ascii",
    "minting_tx_metadata",
    "cip68_metadata",
    "token_registry_metadata",
)


class KoiosAssetClient:
    """
    Asset lookup against the Koios REST API.

    Usage:
        client = KoiosAssetClient(config, http_client)
        asset = await client.fetch_asset("mainnet", "asset1...")
    """

    def __init__(self, config: ProxyConfig, http_client: httpx.AsyncClient):
        self.config = config
        self.http_client = http_client

    async def fetch_asset(self, network: str, fingerprint: str) -> AssetRecord:
        """
        Fetch the asset record for a fingerprint.

        Raises:
            LookupFailure: the asset is unknown or Koios is unavailable
        """
        base_url = self.config.koios_base_url(network)
        logger.info(f"[Koios] Looking up {network}/{fingerprint}")

        listed = await self._request(
            "GET",
            f"{base_url}/asset_list",
            params={"fingerprint": f"eq.{fingerprint}"},
        )
        if not listed:
            raise LookupFailure(f"Asset {fingerprint} not found on {network}")
        policy_id = listed[0].get("policy_id")
        asset_name = listed[0].get("asset_name") or ""
        if not policy_id:
            raise LookupFailure(f"Asset {fingerprint} has no policy id")

        info = await self._request(
            "POST",
            f"{base_url}/asset_info",
            params={"select": ",".join(ASSET_INFO_FIELDS)},
            json={"_asset_list": [[policy_id, asset_name]]},
        )
        data = info[0] if info else {}

        cip68_metadata = data.get("cip68_metadata")
        try:
            return AssetRecord(
                fingerprint=fingerprint,
                policy_id=policy_id,
                asset_name=data.get("asset_name") or asset_name,
                asset_name_ascii=data.get("asset_name_ascii"),
                minting_tx_metadata=normalize_tx_metadata(data.get("minting_tx_metadata")),
                cip68_metadata=cip68_metadata if isinstance(cip68_metadata, dict) else None,
                token_registry_metadata=data.get("token_registry_metadata") or None,
            )
        except ValidationError as e:
            raise LookupFailure(f"Unexpected asset data for {fingerprint}: {e}") from e

    async def _request(self, method: str, url: str, **kwargs) -> List[Dict[str, Any]]:
        try:
            response = await self.http_client.request(
                method,
                url,
                headers=self.config.koios_headers(),
                **kwargs,
            )
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPStatusError as e:
            logger.error(f"[Koios] HTTP error {e.response.status_code}: {url[:80]}")
            raise LookupFailure(f"Koios returned {e.response.status_code}") from e
        except httpx.HTTPError as e:
            logger.error(f"[Koios] Request error: {e}")
            raise LookupFailure(f"Koios request failed: {e}") from e
        except ValueError as e:
            logger.error(f"[Koios] Invalid JSON from {url[:80]}")
            raise LookupFailure("Koios returned invalid JSON") from e

        if not isinstance(payload, list):
            raise LookupFailure("Unexpected Koios response shape")
        return [row for row in payload if isinstance(row, dict)]


def normalize_tx_metadata(raw: Any) -> Optional[Dict[str, Any]]:
    """
    Minting metadata keyed by label.

    Older Koios versions return a list of {"key": label, "json": {...}}.
    """
    if isinstance(raw, dict):
        return raw
    if isinstance(raw, list):
        return {
            str(item.get("key")): item.get("json")
            for item in raw
            if isinstance(item, dict) and "key" in item
        }
    return None
