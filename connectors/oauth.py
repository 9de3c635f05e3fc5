"""
OAuth initiation and callback handling.

``initiate_oauth`` only builds the provider URL — opening it is the UI's
job.  ``handle_oauth_callback`` runs the code → token exchange and returns
a ``CallbackResult``; the route turns that into the popup HTML page.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from connectors.errors import (
    ConfigurationError,
    IntegrationError,
    MalformedCallback,
    TokenExchangeFailed,
    UserDenied,
)
from connectors.registry import ConnectorRegistry
from connectors.state import build_state, parse_state
from connectors.token_manager import upsert_integration

logger = logging.getLogger(__name__)

SUCCESS = "success"
DENIED = "denied"
MALFORMED = "malformed"
FAILED = "error"


@dataclass
class CallbackResult:
    outcome: str
    provider: Optional[str] = None
    user_id: Optional[str] = None
    error: Optional[IntegrationError] = None

    @property
    def ok(self) -> bool:
        return self.outcome == SUCCESS

    @property
    def message(self) -> str:
        return self.error.message if self.error else ""


def initiate_oauth(
    user_id: str,
    provider: str,
    shop: Optional[str] = None,
    *,
    registry: Optional[ConnectorRegistry] = None,
) -> str:
    """
    Build the authorization URL for ``provider`` on behalf of ``user_id``.

    Raises ``ConfigurationError`` for an unknown provider, missing client
    credentials or a missing shop domain; no URL is produced in that case.
    """
    registry = registry or ConnectorRegistry()
    connector = registry.get(provider)
    connector.client_credentials()
    state = build_state(user_id, provider)
    auth_url = connector.get_auth_url(state, tenant=shop)
    logger.info("OAuth initiated: user=%s provider=%s", user_id, provider)
    return auth_url


async def handle_oauth_callback(
    session: AsyncSession,
    *,
    code: Optional[str],
    state: Optional[str],
    error: Optional[str] = None,
    shop: Optional[str] = None,
    registry: Optional[ConnectorRegistry] = None,
) -> CallbackResult:
    """
    Process the provider's redirect.

    Outcomes: ``success``, ``denied`` (provider sent ``error``; no exchange
    attempted), ``malformed`` (missing code/state or bad state) and
    ``error`` (configuration, exchange or storage failure).
    """
    provider: Optional[str] = None
    user_id: Optional[str] = None
    if state:
        try:
            user_id, provider = parse_state(state)
        except MalformedCallback:
            pass

    if error:
        logger.warning("OAuth denied for %s: %s", provider or "unknown provider", error)
        return CallbackResult(
            DENIED,
            provider=provider,
            user_id=user_id,
            error=UserDenied(f"Authorization failed: {error}", provider=provider),
        )

    if not code or not state:
        logger.warning("Malformed OAuth callback: code or state missing (possible stale link)")
        return CallbackResult(
            MALFORMED,
            provider=provider,
            error=MalformedCallback("Missing authorization code or state", provider=provider),
        )

    try:
        user_id, provider = parse_state(state)
    except MalformedCallback as exc:
        logger.warning("Malformed OAuth callback state %r (possible attack or stale link)", state)
        return CallbackResult(MALFORMED, error=exc)

    registry = registry or ConnectorRegistry()
    try:
        connector = registry.get(provider)
        token = await connector.exchange_code(code, tenant=shop)
        account = await connector.fetch_account(token)
        await upsert_integration(
            session,
            user_id,
            provider,
            token,
            shop=connector.normalize_tenant(shop) if (shop and connector.requires_tenant) else None,
            account=account,
            registry=registry,
        )
    except ConfigurationError as exc:
        logger.error("OAuth callback misconfigured for %s: %s", provider, exc.message)
        return CallbackResult(FAILED, provider=provider, user_id=user_id, error=exc)
    except TokenExchangeFailed as exc:
        logger.error("OAuth token exchange failed for %s: %s", provider, exc.message)
        return CallbackResult(FAILED, provider=provider, user_id=user_id, error=exc)
    except SQLAlchemyError as exc:
        logger.error("Storing %s integration for user %s failed: %s", provider, user_id, exc)
        return CallbackResult(
            FAILED,
            provider=provider,
            user_id=user_id,
            error=IntegrationError(f"Database error: {exc.__class__.__name__}", provider=provider),
        )

    logger.info("%s integration successful for user %s", provider, user_id)
    return CallbackResult(SUCCESS, provider=provider, user_id=user_id)
