"""
Tests for the OAuth callback — outcome classification, provider token
quirks and the integration upsert.
"""

from datetime import timedelta

import httpx
import pytest
from sqlalchemy import func, select

from connectors import oauth
from connectors.errors import ConfigurationError, TokenExchangeFailed
from connectors.token_manager import as_utc, get_integration
from database.models import Integration
from tests.conftest import USER_ID, form_body, utcnow


async def _count(session) -> int:
    return (await session.execute(select(func.count()).select_from(Integration))).scalar_one()


class TestCallbackOutcomes:
    @pytest.mark.asyncio
    async def test_provider_error_is_denied_without_exchange(self, session, user, credentials, no_http):
        result = await oauth.handle_oauth_callback(
            session, code=None, state=f"{USER_ID}:gmail", error="access_denied"
        )
        assert result.outcome == oauth.DENIED
        assert result.provider == "gmail"
        assert "access_denied" in result.message
        assert no_http == []
        assert await _count(session) == 0

    @pytest.mark.asyncio
    async def test_state_without_separator_is_malformed(self, session, user, credentials, no_http):
        result = await oauth.handle_oauth_callback(session, code="abc", state="nocolon")
        assert result.outcome == oauth.MALFORMED
        assert no_http == []
        assert await _count(session) == 0

    @pytest.mark.asyncio
    async def test_missing_code_is_malformed(self, session, user, credentials, no_http):
        result = await oauth.handle_oauth_callback(session, code=None, state=f"{USER_ID}:github")
        assert result.outcome == oauth.MALFORMED
        assert no_http == []

    @pytest.mark.asyncio
    async def test_missing_credentials_fail_before_any_request(self, session, user, credentials, no_http, monkeypatch):
        from config.settings import config

        monkeypatch.setattr(config, "github_client_id", "")
        result = await oauth.handle_oauth_callback(session, code="abc", state=f"{USER_ID}:github")
        assert result.outcome == oauth.FAILED
        assert isinstance(result.error, ConfigurationError)
        assert no_http == []

    @pytest.mark.asyncio
    async def test_unknown_provider_in_state(self, session, user, credentials, no_http):
        result = await oauth.handle_oauth_callback(session, code="abc", state=f"{USER_ID}:dropbox")
        assert result.outcome == oauth.FAILED
        assert isinstance(result.error, ConfigurationError)


class TestGitHubExchange:
    @staticmethod
    def _handler(token_body):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.host == "github.com":
                return httpx.Response(200, json=token_body)
            if request.url.path == "/user":
                return httpx.Response(200, json={"id": 7, "login": "octocat", "name": "Octo Cat"})
            return httpx.Response(404)

        return handler

    @pytest.mark.asyncio
    async def test_success_stores_a_non_expiring_token(self, session, user, credentials, http_mock):
        calls = http_mock(self._handler({"access_token": "gho_abc", "token_type": "bearer", "scope": "repo,user"}))

        result = await oauth.handle_oauth_callback(session, code="code-1", state=f"{USER_ID}:github")

        assert result.ok
        token_request = calls[0]
        assert token_request.headers["accept"] == "application/json"
        body = form_body(token_request)
        assert "grant_type" not in body
        assert body["code"] == "code-1"
        assert body["redirect_uri"] == "http://localhost:8000/api/v1/oauth/callback"

        record = await get_integration(session, USER_ID, "github")
        assert record.is_connected is True
        assert record.oauth_token == "gho_abc"
        assert record.refresh_token is None
        assert record.token_expires_at is None
        assert record.app_type == "development"
        assert record.config["scope"] == "repo,user"
        assert record.config["account"]["login"] == "octocat"

    @pytest.mark.asyncio
    async def test_error_inside_http_200_is_an_exchange_failure(self, session, user, credentials, http_mock):
        http_mock(
            self._handler(
                {"error": "bad_verification_code", "error_description": "The code passed is incorrect or expired."}
            )
        )

        result = await oauth.handle_oauth_callback(session, code="replayed", state=f"{USER_ID}:github")

        assert result.outcome == oauth.FAILED
        assert isinstance(result.error, TokenExchangeFailed)
        assert "incorrect or expired" in result.message
        assert await _count(session) == 0


class TestSlackExchange:
    @pytest.mark.asyncio
    async def test_user_token_is_taken_from_authed_user(self, session, user, credentials, http_mock):
        calls = http_mock(
            lambda request: httpx.Response(
                200,
                json={
                    "ok": True,
                    "access_token": "xoxb-bot",
                    "scope": "commands",
                    "team": {"id": "T1", "name": "Acme"},
                    "authed_user": {"id": "U1", "access_token": "xoxp-user", "scope": "channels:read"},
                },
            )
        )

        result = await oauth.handle_oauth_callback(session, code="c", state=f"{USER_ID}:slack")

        assert result.ok
        assert "grant_type" not in form_body(calls[0])
        record = await get_integration(session, USER_ID, "slack")
        assert record.oauth_token == "xoxp-user"
        assert record.config["scope"] == "channels:read"
        assert record.config["account"] == {"team_id": "T1", "team_name": "Acme", "user_id": "U1"}

    @pytest.mark.asyncio
    async def test_ok_false_is_an_exchange_failure(self, session, user, credentials, http_mock):
        http_mock(lambda request: httpx.Response(200, json={"ok": False, "error": "invalid_code"}))

        result = await oauth.handle_oauth_callback(session, code="c", state=f"{USER_ID}:slack")

        assert result.outcome == oauth.FAILED
        assert "invalid_code" in result.message


class TestGoogleExchange:
    @pytest.mark.asyncio
    async def test_expiry_and_standard_payload(self, session, user, credentials, http_mock):
        calls = http_mock(
            lambda request: httpx.Response(
                200,
                json={
                    "access_token": "ya29.first",
                    "refresh_token": "1//refresh",
                    "expires_in": 3599,
                    "scope": "https://www.googleapis.com/auth/gmail.readonly",
                    "token_type": "Bearer",
                },
            )
        )
        before = utcnow()

        result = await oauth.handle_oauth_callback(session, code="c", state=f"{USER_ID}:gmail")

        assert result.ok
        body = form_body(calls[0])
        assert body["grant_type"] == "authorization_code"
        assert body["client_secret"] == "google-secret"
        record = await get_integration(session, USER_ID, "gmail")
        expires_at = as_utc(record.token_expires_at)
        assert before + timedelta(seconds=3598) <= expires_at <= utcnow() + timedelta(seconds=3600)
        assert record.config["service_data"]["token_type"] == "Bearer"

    @pytest.mark.asyncio
    async def test_reconnect_updates_the_same_row(self, session, user, credentials, http_mock):
        responses = iter(
            [
                {"access_token": "first", "refresh_token": "refresh-1", "expires_in": 3600},
                {"access_token": "second", "expires_in": 3600},
            ]
        )
        http_mock(lambda request: httpx.Response(200, json=next(responses)))

        assert (await oauth.handle_oauth_callback(session, code="a", state=f"{USER_ID}:gmail")).ok
        assert (await oauth.handle_oauth_callback(session, code="b", state=f"{USER_ID}:gmail")).ok

        assert await _count(session) == 1
        record = await get_integration(session, USER_ID, "gmail")
        assert record.oauth_token == "second"
        assert record.refresh_token == "refresh-1"


class TestShopifyExchange:
    @pytest.mark.asyncio
    async def test_shop_drives_the_token_url_and_is_stored(self, session, user, credentials, http_mock):
        calls = http_mock(
            lambda request: httpx.Response(200, json={"access_token": "shpat_1", "scope": "read_orders"})
        )

        result = await oauth.handle_oauth_callback(
            session, code="c", state=f"{USER_ID}:shopify", shop="acme.myshopify.com"
        )

        assert result.ok
        assert calls[0].url.host == "acme.myshopify.com"
        assert calls[0].url.path == "/admin/oauth/access_token"
        record = await get_integration(session, USER_ID, "shopify")
        assert record.config["shop"] == "acme"
        assert record.token_expires_at is None

    @pytest.mark.asyncio
    async def test_missing_shop_fails(self, session, user, credentials, no_http):
        result = await oauth.handle_oauth_callback(session, code="c", state=f"{USER_ID}:shopify")
        assert result.outcome == oauth.FAILED
        assert isinstance(result.error, ConfigurationError)
        assert no_http == []
