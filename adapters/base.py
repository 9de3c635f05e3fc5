"""
ProviderClient — thin httpx wrapper shared by the adapters.

Turns transport errors, HTTP errors and undecodable bodies into
``ProviderAPIError`` so adapters only ever raise one error type.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

from connectors import http_client
from connectors.errors import ProviderAPIError

logger = logging.getLogger(__name__)


def bearer(token: str) -> Dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


class ProviderClient:
    """Async context manager issuing JSON requests for one provider."""

    def __init__(self, provider: str, headers: Optional[Dict[str, str]] = None) -> None:
        self.provider = provider
        self._headers = headers or {}
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self) -> "ProviderClient":
        self._client = http_client.async_client(headers=self._headers)
        return self

    async def __aexit__(self, *exc_info) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def get(self, url: str, params: Optional[Dict[str, Any]] = None) -> Any:
        return await self.request("GET", url, params=params)

    async def post(self, url: str, json: Optional[Dict[str, Any]] = None) -> Any:
        return await self.request("POST", url, json=json)

    async def request(self, method: str, url: str, **kwargs) -> Any:
        if self._client is None:
            raise RuntimeError("ProviderClient used outside 'async with'")
        try:
            resp = await self._client.request(method, url, **kwargs)
        except httpx.HTTPError as exc:
            raise ProviderAPIError(
                f"{self.provider} API unreachable: {exc}", provider=self.provider
            ) from exc

        if resp.is_error:
            logger.debug("%s %s %s → %d: %s", self.provider, method, url, resp.status_code, resp.text[:300])
            raise ProviderAPIError(
                f"{self.provider} API error: HTTP {resp.status_code}",
                provider=self.provider,
                status_code=resp.status_code,
            )
        try:
            return resp.json()
        except ValueError as exc:
            raise ProviderAPIError(
                f"{self.provider} API returned a non-JSON body", provider=self.provider
            ) from exc
