"""
Trading-fee yield feed (secondary source for extended rankings).

Expects a JSON object with a `yields` list of {asset, apy, tvl}.
"""

import logging
from typing import Any, Dict, List, Optional

import httpx

from app.domain.errors import UpstreamError

logger = logging.getLogger(__name__)


class TradingFeeClient:
    def __init__(
        self,
        url: str,
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.url = url
        self.timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout, transport=self._transport)
        return self._client

    async def fetch_yields(self) -> List[Dict[str, Any]]:
        client = await self._get_client()
        try:
            response = await client.get(self.url)
            response.raise_for_status()
            payload = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise UpstreamError(f"Trading-fee feed unavailable: {exc}") from exc

        rows = payload.get("yields") if isinstance(payload, dict) else None
        if not isinstance(rows, list):
            raise UpstreamError("Trading-fee feed payload has no 'yields' list")
        return rows

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
