"""
OAuthConnector — the OAuth2 code / refresh flow shared by every provider.

A connector is driven by an immutable ``ProviderConfig``.  Providers whose
token endpoint deviates from the standard form-encoded exchange (GitHub,
Slack, Shopify, ...) subclass ``OAuthConnector`` and override only the hook
that differs:

  • ``token_request_headers``  — extra headers on the token POST
  • ``exchange_payload`` / ``refresh_payload`` — form fields sent
  • ``check_token_payload``    — errors reported inside an HTTP 200
  • ``normalize_token_response`` — provider payload → ``TokenResponse``
  • ``normalize_tenant``       — tenant value for ``{{shop}}`` templates
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple, Type
from urllib.parse import parse_qsl, urlencode

import httpx

from config.settings import config
from connectors import http_client
from connectors.errors import AuthExpired, ConfigurationError, IntegrationError, TokenExchangeFailed
from connectors.schemas import TokenResponse

logger = logging.getLogger(__name__)

TENANT_PLACEHOLDER = "{{shop}}"
CALLBACK_PATH = "/api/v1/oauth/callback"


@dataclass(frozen=True)
class ProviderConfig:
    """Static description of one provider's OAuth endpoints."""

    name: str
    display_name: str
    app_type: str
    authorize_url: str
    token_url: str
    client_id_env: str
    client_secret_env: str
    scopes: str
    response_type: str = "code"
    extra_auth_params: Tuple[Tuple[str, str], ...] = ()
    revoke_url: Optional[str] = None
    icon: str = "🔗"


def callback_redirect_uri() -> str:
    """The single redirect URI registered with every provider."""
    return f"{config.oauth_redirect_base.rstrip('/')}{CALLBACK_PATH}"


class OAuthConnector:
    """OAuth2 authorization-code connector for one provider."""

    def __init__(self, provider_config: ProviderConfig) -> None:
        self.provider_config = provider_config

    # ── Identity ────────────────────────────────────────────────────────

    @property
    def provider_name(self) -> str:
        return self.provider_config.name

    @property
    def display_name(self) -> str:
        return self.provider_config.display_name

    @property
    def app_type(self) -> str:
        return self.provider_config.app_type

    @property
    def scopes(self) -> str:
        return self.provider_config.scopes

    @property
    def icon(self) -> str:
        return self.provider_config.icon

    @property
    def requires_tenant(self) -> bool:
        return TENANT_PLACEHOLDER in self.provider_config.authorize_url

    # ── Credentials ─────────────────────────────────────────────────────

    def client_credentials(self) -> Tuple[str, str]:
        """
        Return ``(client_id, client_secret)``.

        Raises ``ConfigurationError`` naming the missing variable(s).
        """
        cfg = self.provider_config
        client_id = config.get_secret(cfg.client_id_env)
        client_secret = config.get_secret(cfg.client_secret_env)
        missing = [
            env for env, value in (
                (cfg.client_id_env, client_id),
                (cfg.client_secret_env, client_secret),
            )
            if not value
        ]
        if missing:
            raise ConfigurationError(
                f"{self.display_name} OAuth credentials not configured "
                f"(missing {', '.join(missing)})",
                provider=self.provider_name,
            )
        return client_id, client_secret

    def is_configured(self) -> bool:
        try:
            self.client_credentials()
        except ConfigurationError:
            return False
        return True

    # ── Tenant handling ─────────────────────────────────────────────────

    def normalize_tenant(self, tenant: str) -> str:
        return tenant.strip()

    def resolve_url(self, template: str, tenant: Optional[str] = None) -> str:
        if TENANT_PLACEHOLDER not in template:
            return template
        if not tenant or not tenant.strip():
            raise ConfigurationError(
                f"{self.display_name} requires a shop domain",
                provider=self.provider_name,
            )
        return template.replace(TENANT_PLACEHOLDER, self.normalize_tenant(tenant))

    # ── Authorization URL ───────────────────────────────────────────────

    def get_auth_url(self, state: str, tenant: Optional[str] = None) -> str:
        """
        Build the provider's OAuth2 authorization URL.

        Parameters
        ----------
        state : str
            ``"{user_id}:{provider}"`` round-tripped to the callback.
        tenant : str, optional
            Substituted into ``{{shop}}`` for tenant-specific providers.
        """
        client_id, _ = self.client_credentials()
        cfg = self.provider_config
        base_url = self.resolve_url(cfg.authorize_url, tenant)
        params = {
            "client_id": client_id,
            "redirect_uri": callback_redirect_uri(),
            "scope": cfg.scopes,
            "response_type": cfg.response_type or "code",
            "state": state,
        }
        params.update(dict(cfg.extra_auth_params))
        return f"{base_url}?{urlencode(params)}"

    # ── Token endpoint hooks ────────────────────────────────────────────

    def token_request_headers(self) -> Dict[str, str]:
        return {}

    def exchange_payload(self, code: str, client_id: str, client_secret: str) -> Dict[str, str]:
        return {
            "client_id": client_id,
            "client_secret": client_secret,
            "code": code,
            "grant_type": "authorization_code",
            "redirect_uri": callback_redirect_uri(),
        }

    def refresh_payload(self, refresh_token: str, client_id: str, client_secret: str) -> Dict[str, str]:
        return {
            "client_id": client_id,
            "client_secret": client_secret,
            "refresh_token": refresh_token,
            "grant_type": "refresh_token",
        }

    def check_token_payload(self, data: Dict[str, Any]) -> Optional[str]:
        """Return an error message if ``data`` reports a failure, else None."""
        if "error" in data:
            return str(data.get("error_description") or data["error"])
        return None

    def normalize_token_response(self, data: Dict[str, Any]) -> TokenResponse:
        access_token = data.get("access_token")
        if not access_token:
            raise ValueError("token response has no access_token")
        return TokenResponse(
            access_token=access_token,
            refresh_token=data.get("refresh_token"),
            expires_in=as_seconds(data.get("expires_in")),
            scope=data.get("scope"),
            raw=data,
        )

    # ── OAuth flow ──────────────────────────────────────────────────────

    async def exchange_code(self, code: str, tenant: Optional[str] = None) -> TokenResponse:
        """Exchange an authorization code for tokens."""
        client_id, client_secret = self.client_credentials()
        token_url = self.resolve_url(self.provider_config.token_url, tenant)
        data = await self._post_token(
            token_url,
            self.exchange_payload(code, client_id, client_secret),
            TokenExchangeFailed,
        )
        try:
            return self.normalize_token_response(data)
        except ValueError as exc:
            raise TokenExchangeFailed(
                f"{self.display_name} token exchange failed: {exc}",
                provider=self.provider_name,
            ) from exc

    async def refresh_access_token(self, refresh_token: str, tenant: Optional[str] = None) -> TokenResponse:
        """Use a refresh token to obtain a new access token."""
        client_id, client_secret = self.client_credentials()
        token_url = self.resolve_url(self.provider_config.token_url, tenant)
        data = await self._post_token(
            token_url,
            self.refresh_payload(refresh_token, client_id, client_secret),
            AuthExpired,
        )
        try:
            return self.normalize_token_response(data)
        except ValueError as exc:
            raise AuthExpired(
                f"{self.display_name} token refresh failed: {exc}",
                provider=self.provider_name,
            ) from exc

    async def fetch_account(self, token: TokenResponse) -> Dict[str, Any]:
        """Describe the connected account (login, team, ...). Best effort."""
        return {}

    async def revoke_token(self, access_token: str) -> bool:
        """
        Revoke the token at the provider.
        Returns False when the provider has no revocation endpoint.
        """
        revoke_url = self.provider_config.revoke_url
        if not revoke_url:
            return False
        try:
            async with http_client.async_client() as client:
                resp = await client.post(revoke_url, data={"token": access_token})
            return resp.status_code == 200
        except httpx.HTTPError:
            logger.warning("%s token revocation failed", self.display_name, exc_info=True)
            return False

    async def _post_token(
        self,
        url: str,
        payload: Dict[str, str],
        error_cls: Type[IntegrationError],
    ) -> Dict[str, Any]:
        try:
            async with http_client.async_client() as client:
                resp = await client.post(url, data=payload, headers=self.token_request_headers())
        except httpx.HTTPError as exc:
            raise error_cls(
                f"{self.display_name} token endpoint unreachable: {exc}",
                provider=self.provider_name,
            ) from exc

        data = _decode_token_body(resp)
        error = self.check_token_payload(data)
        if resp.is_error or error:
            raise error_cls(
                f"{self.display_name} token request failed: {error or f'HTTP {resp.status_code}'}",
                provider=self.provider_name,
            )
        return data


def _decode_token_body(resp: httpx.Response) -> Dict[str, Any]:
    """Token endpoints answer JSON, except a few that still answer form-encoded."""
    try:
        body = resp.json()
    except ValueError:
        return dict(parse_qsl(resp.text))
    return body if isinstance(body, dict) else {}


def as_seconds(value: Any) -> Optional[int]:
    if value in (None, ""):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None
