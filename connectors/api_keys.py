"""
Authenticated pass-through calls for services connected with an API key.

The stored key is sent as a Bearer token; the caller chooses the endpoint,
method, body and extra headers.  Non-2xx answers are returned, not raised,
so the caller sees the service's own error body.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx
from sqlalchemy.ext.asyncio import AsyncSession

from connectors import http_client, token_manager
from connectors.errors import ConfigurationError, ProviderAPIError

logger = logging.getLogger(__name__)

ALLOWED_METHODS = ("GET", "POST", "PUT", "PATCH", "DELETE")


def _response_body(resp: httpx.Response) -> Any:
    try:
        return resp.json()
    except ValueError:
        return resp.text


async def call_with_api_key(
    session: AsyncSession,
    user_id: str,
    service: str,
    endpoint: str,
    *,
    method: str = "GET",
    data: Optional[Any] = None,
    headers: Optional[Dict[str, str]] = None,
) -> Dict[str, Any]:
    """
    Call ``endpoint`` with the user's stored key for ``service``.

    Returns ``{"success", "status", "data"}``; ``data`` is the decoded JSON
    body, or the raw text when the body is not JSON.

    Raises
    ------
    NotConnected – no key stored for the service
    ConfigurationError – unsupported method or a non-HTTP endpoint
    ProviderAPIError – the endpoint could not be reached
    """
    method = method.upper()
    if method not in ALLOWED_METHODS:
        raise ConfigurationError(f"Unsupported HTTP method {method}", provider=service)
    if httpx.URL(endpoint).scheme not in ("http", "https"):
        raise ConfigurationError(f"Endpoint must be an http(s) URL: {endpoint}", provider=service)

    api_key, _ = await token_manager.get_api_key(session, user_id, service)
    request_headers = {"Content-Type": "application/json"}
    request_headers.update(
        (name, value) for name, value in (headers or {}).items() if name.lower() != "authorization"
    )
    request_headers["Authorization"] = f"Bearer {api_key}"

    try:
        async with http_client.async_client(headers=request_headers) as client:
            resp = await client.request(
                method,
                endpoint,
                json=data if data is not None and method != "GET" else None,
            )
    except httpx.HTTPError as exc:
        raise ProviderAPIError(f"{service} API unreachable: {exc}", provider=service) from exc

    logger.info("%s %s via %s key for user %s → %d", method, endpoint, service, user_id, resp.status_code)
    return {
        "success": resp.is_success,
        "status": resp.status_code,
        "data": _response_body(resp),
    }
