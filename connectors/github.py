"""
GitHubConnector — OAuth2 for GitHub API access.

GitHub's token endpoint differs from the standard exchange:
  • it answers form-encoded unless asked for ``Accept: application/json``;
  • it takes no ``grant_type`` on the code exchange;
  • failures come back as HTTP 200 with an ``error`` field.

Classic OAuth-app tokens never expire; GitHub Apps with expiring user
tokens also return ``refresh_token`` / ``expires_in``.
"""

from __future__ import annotations

import logging
from typing import Any, Dict

import httpx

from connectors import http_client
from connectors.base import OAuthConnector, ProviderConfig, callback_redirect_uri
from connectors.schemas import TokenResponse

logger = logging.getLogger(__name__)

_GH_API = "https://api.github.com"

GITHUB = ProviderConfig(
    name="github",
    display_name="GitHub",
    app_type="development",
    authorize_url="https://github.com/login/oauth/authorize",
    token_url="https://github.com/login/oauth/access_token",
    client_id_env="GITHUB_CLIENT_ID",
    client_secret_env="GITHUB_CLIENT_SECRET",
    scopes="user,repo,read:org",
    icon="🐙",
)


class GitHubConnector(OAuthConnector):
    """OAuth2 connector for GitHub."""

    def token_request_headers(self) -> Dict[str, str]:
        return {"Accept": "application/json"}

    def exchange_payload(self, code: str, client_id: str, client_secret: str) -> Dict[str, str]:
        return {
            "client_id": client_id,
            "client_secret": client_secret,
            "code": code,
            "redirect_uri": callback_redirect_uri(),
        }

    async def fetch_account(self, token: TokenResponse) -> Dict[str, Any]:
        try:
            async with http_client.async_client() as client:
                resp = await client.get(
                    f"{_GH_API}/user",
                    headers={
                        "Authorization": f"Bearer {token.access_token}",
                        "Accept": "application/vnd.github+json",
                    },
                )
            resp.raise_for_status()
            user = resp.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("GitHub profile lookup failed: %s", exc)
            return {}
        return {
            "id": str(user.get("id", "")),
            "login": user.get("login"),
            "name": user.get("name"),
            "avatar_url": user.get("avatar_url"),
        }

    async def revoke_token(self, access_token: str) -> bool:
        """Revoke the token via GitHub's OAuth application API."""
        client_id, client_secret = self.client_credentials()
        try:
            async with http_client.async_client() as client:
                resp = await client.request(
                    "DELETE",
                    f"{_GH_API}/applications/{client_id}/token",
                    auth=(client_id, client_secret),
                    json={"access_token": access_token},
                )
            return resp.status_code == 204
        except httpx.HTTPError:
            logger.warning("GitHub token revocation failed", exc_info=True)
            return False
