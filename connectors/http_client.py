"""
Shared httpx client factory for token endpoints and provider APIs.
"""

from __future__ import annotations

import httpx

from config.settings import config


def async_client(**kwargs) -> httpx.AsyncClient:
    """Return a new ``AsyncClient`` using the configured timeout."""
    kwargs.setdefault("timeout", config.http_timeout_seconds)
    return httpx.AsyncClient(**kwargs)
