"""
Integration data service — resolve a fresh token, run the adapter and
fall back to labelled sample data when the live call cannot be made.

Every fallback is logged at WARNING with the provider, the action and the
reason, and the returned ``AdapterResult`` carries the reason in
``error["type"]`` so the dashboard can prompt a reconnect.
"""

from __future__ import annotations

import inspect
import logging
from typing import Any, Dict, Optional

from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from adapters.registry import AdapterRegistry
from adapters.schemas import AdapterResult
from connectors import token_manager
from connectors.errors import (
    AuthExpired,
    ConfigurationError,
    IntegrationError,
    NotConnected,
    ProviderAPIError,
)
from connectors.registry import ConnectorRegistry

logger = logging.getLogger(__name__)

# Errors raised after the action was validated that are served with
# fallback data; everything else propagates.
_FALLBACK_ERRORS = (NotConnected, AuthExpired, ProviderAPIError, ConfigurationError)

# Raised while parsing a provider payload whose shape we did not expect.
_PAYLOAD_ERRORS = (ValidationError, KeyError, TypeError, AttributeError)


def _check_params(adapter_fn, params: Dict[str, Any], provider: str, action: str) -> None:
    try:
        inspect.signature(adapter_fn).bind("token", {}, **params)
    except TypeError as exc:
        raise ConfigurationError(
            f"Invalid parameters for {provider}.{action}: {exc}", provider=provider
        ) from None


def fallback_result(provider: str, action: str, adapter_fn, exc: IntegrationError) -> AdapterResult:
    logger.warning(
        "Serving fallback data for %s.%s: %s (%s)",
        provider,
        action,
        exc.code,
        exc.message,
    )
    error = exc.to_dict()
    if isinstance(exc, ProviderAPIError) and exc.status_code is not None:
        error["statusCode"] = exc.status_code
    return AdapterResult(
        provider=provider,
        action=action,
        source="fallback",
        data=adapter_fn.fallback(),
        error=error,
    )


async def _run_adapter(adapter_fn, token: str, integration_config, params: Dict[str, Any], provider: str) -> Any:
    try:
        return await adapter_fn(token, dict(integration_config or {}), **params)
    except _PAYLOAD_ERRORS as exc:
        logger.debug("Unexpected %s payload", provider, exc_info=True)
        raise ProviderAPIError(
            f"Unexpected {provider} response: {type(exc).__name__}: {exc}", provider=provider
        ) from exc


async def fetch_integration_data(
    session: AsyncSession,
    user_id: str,
    provider: str,
    action: str,
    params: Optional[Dict[str, Any]] = None,
    *,
    adapters: Optional[AdapterRegistry] = None,
    connectors: Optional[ConnectorRegistry] = None,
) -> AdapterResult:
    """
    Run ``provider.action`` for the user.

    Raises
    ------
    ConfigurationError – unknown (provider, action) or parameters the
        adapter does not accept.  Missing client credentials found while
        refreshing a token are served as a ``configuration_error`` fallback.
    """
    params = params or {}
    adapters = adapters or AdapterRegistry()
    adapter_fn = adapters.get(provider, action)
    _check_params(adapter_fn, params, provider, action)

    try:
        record = await token_manager.load_connected_integration(session, user_id, provider)
        token = await token_manager.ensure_fresh_token(session, record, registry=connectors)
        data = await _run_adapter(adapter_fn, token, record.config, params, provider)
    except _FALLBACK_ERRORS as exc:
        return fallback_result(provider, action, adapter_fn, exc)

    await token_manager.mark_synced(session, record)
    logger.debug("Fetched live %s.%s for user %s", provider, action, user_id)
    return AdapterResult(provider=provider, action=action, source="live", data=data)
