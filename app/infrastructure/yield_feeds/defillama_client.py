"""
DefiLlama Yield Feed
Fetches the raw pool list from the DefiLlama yields API.

Single GET with a timeout; no retries. Parsing and filtering live in
app.domain.services.yield_ranking.
"""

import logging
from typing import Any, Dict, List, Optional

import httpx

from app.domain.errors import UpstreamError

logger = logging.getLogger(__name__)


class DefiLlamaClient:
    """Async client for GET /pools"""

    DEFAULT_URL = "https://yields.llama.fi/pools"

    HEADERS = {
        "Accept": "application/json",
        "User-Agent": "decision-audit-service/1.0",
    }

    def __init__(
        self,
        url: str = DEFAULT_URL,
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.url = url
        self.timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                headers=self.HEADERS,
                timeout=self.timeout,
                follow_redirects=True,
                transport=self._transport,
            )
        return self._client

    async def fetch_pools(self) -> List[Dict[str, Any]]:
        """
        Fetch every pool element.

        Returns:
            The payload's `data` list (unvalidated elements)

        Raises:
            UpstreamError: transport failure, non-2xx, or malformed payload
        """
        client = await self._get_client()
        try:
            response = await client.get(self.url)
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPError as exc:
            logger.error("DefiLlama request failed: %s", exc)
            raise UpstreamError("Failed to fetch yields") from exc
        except ValueError as exc:
            logger.error("DefiLlama returned invalid JSON: %s", exc)
            raise UpstreamError("Failed to fetch yields") from exc

        pools = payload.get("data") if isinstance(payload, dict) else None
        if not isinstance(pools, list):
            logger.error("DefiLlama payload has no 'data' list")
            raise UpstreamError("Failed to fetch yields")

        logger.debug("DefiLlama returned %d pools", len(pools))
        return pools

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
