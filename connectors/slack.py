"""
SlackConnector — OAuth v2 for Slack workspaces.

Slack's ``oauth.v2.access`` quirks:
  • no ``grant_type`` on the code exchange;
  • errors are HTTP 200 with ``{"ok": false, "error": "..."}``;
  • the user token sits under ``authed_user``; the top-level
    ``access_token`` is the bot token and must not be stored as the
    user's credential.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from connectors.base import OAuthConnector, ProviderConfig, as_seconds, callback_redirect_uri
from connectors.schemas import TokenResponse

SLACK = ProviderConfig(
    name="slack",
    display_name="Slack",
    app_type="communication",
    authorize_url="https://slack.com/oauth/v2/authorize",
    token_url="https://slack.com/api/oauth.v2.access",
    client_id_env="SLACK_CLIENT_ID",
    client_secret_env="SLACK_CLIENT_SECRET",
    scopes="channels:read,chat:write,users:read",
    icon="💬",
)


class SlackConnector(OAuthConnector):
    """OAuth2 connector for Slack."""

    def exchange_payload(self, code: str, client_id: str, client_secret: str) -> Dict[str, str]:
        return {
            "client_id": client_id,
            "client_secret": client_secret,
            "code": code,
            "redirect_uri": callback_redirect_uri(),
        }

    def check_token_payload(self, data: Dict[str, Any]) -> Optional[str]:
        if data.get("ok") is False:
            return str(data.get("error") or "unknown_error")
        return super().check_token_payload(data)

    def normalize_token_response(self, data: Dict[str, Any]) -> TokenResponse:
        authed_user = data.get("authed_user") or {}
        source = authed_user if authed_user.get("access_token") else data
        access_token = source.get("access_token")
        if not access_token:
            raise ValueError("token response has no access_token")
        return TokenResponse(
            access_token=access_token,
            refresh_token=source.get("refresh_token"),
            expires_in=as_seconds(source.get("expires_in")),
            scope=source.get("scope") or data.get("scope"),
            raw=data,
        )

    async def fetch_account(self, token: TokenResponse) -> Dict[str, Any]:
        team = token.raw.get("team") or {}
        authed_user = token.raw.get("authed_user") or {}
        return {
            "team_id": team.get("id"),
            "team_name": team.get("name"),
            "user_id": authed_user.get("id"),
        }
