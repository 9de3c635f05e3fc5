"""
ShopifyConnector — per-shop OAuth for the Shopify Admin API.

Both endpoints live on the merchant's own ``*.myshopify.com`` domain, so the
shop is substituted into the ``{{shop}}`` placeholder.  Offline access
tokens never expire and come without a refresh token.
"""

from __future__ import annotations

import re

from connectors.base import OAuthConnector, ProviderConfig
from connectors.errors import ConfigurationError

_SHOP_RE = re.compile(r"^[a-z0-9][a-z0-9-]*$")

SHOPIFY = ProviderConfig(
    name="shopify",
    display_name="Shopify",
    app_type="ecommerce",
    authorize_url="https://{{shop}}.myshopify.com/admin/oauth/authorize",
    token_url="https://{{shop}}.myshopify.com/admin/oauth/access_token",
    client_id_env="SHOPIFY_CLIENT_ID",
    client_secret_env="SHOPIFY_CLIENT_SECRET",
    scopes="read_products,read_orders,read_customers",
    icon="🛍️",
)


def normalize_shop(shop: str) -> str:
    """``https://Acme.myshopify.com/`` → ``acme``."""
    value = shop.strip().lower()
    for prefix in ("https://", "http://"):
        if value.startswith(prefix):
            value = value[len(prefix):]
    value = value.rstrip("/")
    if value.endswith(".myshopify.com"):
        value = value[: -len(".myshopify.com")]
    if not _SHOP_RE.match(value):
        raise ConfigurationError(f"Invalid Shopify shop domain: {shop!r}", provider="shopify")
    return value


class ShopifyConnector(OAuthConnector):
    """OAuth2 connector for Shopify."""

    def normalize_tenant(self, tenant: str) -> str:
        return normalize_shop(tenant)
