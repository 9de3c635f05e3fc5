"""
ConnectorRegistry — the immutable provider table.

Built once at import; lookups of an unregistered name raise
``ConfigurationError`` rather than falling back to a generic connector.
"""

from __future__ import annotations

import logging
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional

from connectors.base import OAuthConnector, ProviderConfig
from connectors.errors import ConfigurationError
from connectors.github import GITHUB, GitHubConnector
from connectors.google import GMAIL, GOOGLE_ANALYTICS, GOOGLE_CALENDAR, GOOGLE_SHEETS
from connectors.shopify import SHOPIFY, ShopifyConnector
from connectors.slack import SLACK, SlackConnector

logger = logging.getLogger(__name__)

STRIPE = ProviderConfig(
    name="stripe",
    display_name="Stripe",
    app_type="payment",
    authorize_url="https://connect.stripe.com/oauth/authorize",
    token_url="https://connect.stripe.com/oauth/token",
    client_id_env="STRIPE_CLIENT_ID",
    client_secret_env="STRIPE_CLIENT_SECRET",
    scopes="read_write",
    icon="💳",
)

MAILCHIMP = ProviderConfig(
    name="mailchimp",
    display_name="Mailchimp",
    app_type="marketing",
    authorize_url="https://login.mailchimp.com/oauth2/authorize",
    token_url="https://login.mailchimp.com/oauth2/token",
    client_id_env="MAILCHIMP_CLIENT_ID",
    client_secret_env="MAILCHIMP_CLIENT_SECRET",
    scopes="r",
    icon="🐵",
)

# ── All known connectors; add new ones here ──────────────────────────────

_ALL_CONNECTORS: List[OAuthConnector] = [
    OAuthConnector(GMAIL),
    OAuthConnector(GOOGLE_SHEETS),
    OAuthConnector(GOOGLE_ANALYTICS),
    OAuthConnector(GOOGLE_CALENDAR),
    OAuthConnector(STRIPE),
    OAuthConnector(MAILCHIMP),
    GitHubConnector(GITHUB),
    SlackConnector(SLACK),
    ShopifyConnector(SHOPIFY),
]

_CONNECTORS: Mapping[str, OAuthConnector] = MappingProxyType(
    {c.provider_name: c for c in _ALL_CONNECTORS}
)


class ConnectorRegistry:
    """Read-only view over the provider table."""

    def __init__(self, connectors: Optional[Mapping[str, OAuthConnector]] = None) -> None:
        self._connectors = connectors if connectors is not None else _CONNECTORS

    def get(self, provider: str) -> OAuthConnector:
        """Get a connector by provider name."""
        connector = self._connectors.get(provider)
        if connector is None:
            raise ConfigurationError(f"Unsupported service: {provider}", provider=provider)
        return connector

    def has(self, provider: str) -> bool:
        return provider in self._connectors

    def app_type(self, provider: str) -> str:
        connector = self._connectors.get(provider)
        return connector.app_type if connector else "other"

    def list_providers(self) -> List[Dict[str, object]]:
        """Return info about all available connectors."""
        return [
            {
                "provider": c.provider_name,
                "display_name": c.display_name,
                "app_type": c.app_type,
                "icon": c.icon,
                "requires_shop": c.requires_tenant,
                "configured": c.is_configured(),
            }
            for c in self._connectors.values()
        ]

    def list_configured(self) -> List[str]:
        """Return names of configured connectors."""
        return [name for name, c in self._connectors.items() if c.is_configured()]

    def log_configuration(self) -> None:
        """Log which connectors have credentials — called once at startup."""
        for c in self._connectors.values():
            if c.is_configured():
                logger.info("Connector ready: %s (%s)", c.display_name, c.provider_name)
            else:
                logger.warning(
                    "Connector %s not configured (missing %s / %s)",
                    c.provider_name,
                    c.provider_config.client_id_env,
                    c.provider_config.client_secret_env,
                )
