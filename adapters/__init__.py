"""
@adapter decorator — marks a function as the data adapter for one
(provider, action) pair and names the fallback used when it fails.

Usage:
    from adapters import adapter

    @adapter("gmail", "get_email_stats", fallback=mock_gmail_stats)
    async def get_email_stats(token: str, integration: Dict[str, Any]) -> GmailStats:
        ...

Every adapter receives the fresh access token and the integration's
``config`` blob (shop domain, property id, ...), followed by the
caller's parameters.
"""

from __future__ import annotations

from typing import Any, Callable


def adapter(
    provider: str,
    action: str,
    *,
    fallback: Callable[[], Any],
) -> Callable:
    """
    Decorator that tags a function as a registered adapter.

    Parameters
    ----------
    provider : registry name of the provider the adapter calls.
    action : name the API uses to select this adapter.
    fallback : zero-argument callable returning labelled sample data of
        the same shape, served when the live call cannot be made.
    """

    def decorator(func: Callable) -> Callable:
        func.is_adapter = True  # type: ignore[attr-defined]
        func.provider = provider  # type: ignore[attr-defined]
        func.action = action  # type: ignore[attr-defined]
        func.fallback = fallback  # type: ignore[attr-defined]
        return func

    return decorator
