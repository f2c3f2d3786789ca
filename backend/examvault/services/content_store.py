"""
Content-addressed blob store for published exam envelopes.

The services only rely on two calls: ``publish(obj) -> handle`` and
``fetch(handle) -> obj``. ``PinataContentStore`` pins JSON through the Pinata
API and reads it back through public IPFS gateways, trying each in turn.
"""

import logging
import time
from typing import Any, Dict, List, Optional

import httpx

from ..exceptions import UpstreamUnavailableError

logger = logging.getLogger(__name__)


class ContentStore:
    async def publish(self, content: Dict[str, Any], name: Optional[str] = None) -> str:
        raise NotImplementedError

    async def fetch(self, handle: str) -> Any:
        raise NotImplementedError


class PinataContentStore(ContentStore):
    PIN_JSON_PATH = "/pinning/pinJSONToIPFS"

    def __init__(self, client: httpx.AsyncClient, jwt: str, api_url: str, gateways: List[str], timeout: float = 10.0):
        self.client = client
        self.jwt = jwt
        self.api_url = api_url.rstrip("/")
        self.gateways = [g.rstrip("/") for g in gateways]
        self.timeout = timeout

    async def publish(self, content: Dict[str, Any], name: Optional[str] = None) -> str:
        now_ms = int(time.time() * 1000)
        body = {
            "pinataOptions": {"cidVersion": 1},
            "pinataMetadata": {
                "name": name or f"exam_{now_ms}",
                "keyvalues": {"type": "encrypted_exam", "timestamp": str(now_ms)},
            },
            "pinataContent": content,
        }
        try:
            response = await self.client.post(
                self.api_url + self.PIN_JSON_PATH,
                json=body,
                headers={"Authorization": f"Bearer {self.jwt}"},
                timeout=self.timeout,
            )
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error("Pinning service upload failed: %s", e)
            raise UpstreamUnavailableError(f"Failed to upload to IPFS: {e}")

        handle = data.get("IpfsHash") if isinstance(data, dict) else None
        if not handle:
            logger.error("Pinning service returned no IpfsHash")
            raise UpstreamUnavailableError("Invalid response from pinning service")
        logger.info("Pinned exam content, handle=%s", handle)
        return handle

    async def fetch(self, handle: str) -> Any:
        handle = (handle or "").strip()
        for gateway in self.gateways:
            url = f"{gateway}/ipfs/{handle}"
            try:
                response = await self.client.get(url, timeout=self.timeout, headers={"Accept": "*/*"})
                response.raise_for_status()
                return response.json()
            except (httpx.HTTPError, ValueError) as e:
                logger.warning("Failed to fetch %s from %s: %s", handle, gateway, e)
                continue
        raise UpstreamUnavailableError("Failed to fetch exam content from all IPFS gateways")
