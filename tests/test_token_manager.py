"""
Tests for the token manager — lazy refresh, fail-fast after a failed
refresh, disconnect and the token-free integration view.
"""

from datetime import timedelta

import httpx
import pytest

from connectors import token_manager
from connectors.errors import AuthExpired, ConfigurationError, NotConnected
from tests.conftest import USER_ID, form_body, utcnow


class TestNeedsRefresh:
    @pytest.mark.asyncio
    async def test_without_expiry_never_refreshes(self, make_integration):
        record = await make_integration(expires_in=None)
        assert token_manager.needs_refresh(record) is False

    @pytest.mark.asyncio
    async def test_naive_timestamps_are_treated_as_utc(self, make_integration):
        record = await make_integration()
        record.token_expires_at = (utcnow() - timedelta(minutes=1)).replace(tzinfo=None)
        assert token_manager.needs_refresh(record) is True

    @pytest.mark.asyncio
    async def test_leeway_refreshes_early(self, make_integration, monkeypatch):
        from config.settings import config

        record = await make_integration(expires_in=60)
        assert token_manager.needs_refresh(record) is False
        monkeypatch.setattr(config, "token_refresh_leeway_seconds", 300)
        assert token_manager.needs_refresh(record) is True


class TestEnsureFreshToken:
    @pytest.mark.asyncio
    async def test_valid_token_is_returned_without_a_request(self, session, make_integration, credentials, no_http):
        record = await make_integration(refresh_token="refresh-1", expires_in=3600)

        token = await token_manager.ensure_fresh_token(session, record)

        assert token == "access-old"
        assert no_http == []

    @pytest.mark.asyncio
    async def test_expired_token_is_refreshed(self, session, make_integration, credentials, http_mock):
        calls = http_mock(lambda request: httpx.Response(200, json={"access_token": "access-new", "expires_in": 3600}))
        record = await make_integration(refresh_token="refresh-1", expires_in=-60)

        token = await token_manager.ensure_fresh_token(session, record)

        assert token == "access-new"
        body = form_body(calls[0])
        assert body["grant_type"] == "refresh_token"
        assert body["refresh_token"] == "refresh-1"
        assert str(calls[0].url) == "https://oauth2.googleapis.com/token"
        assert record.oauth_token == "access-new"
        assert record.refresh_token == "refresh-1"
        assert token_manager.as_utc(record.token_expires_at) > utcnow() + timedelta(minutes=59)

    @pytest.mark.asyncio
    async def test_rotated_refresh_token_replaces_the_old_one(self, session, make_integration, credentials, http_mock):
        http_mock(
            lambda request: httpx.Response(
                200, json={"access_token": "access-new", "refresh_token": "refresh-2", "expires_in": 3600}
            )
        )
        record = await make_integration(refresh_token="refresh-1", expires_in=-60)

        await token_manager.ensure_fresh_token(session, record)

        assert record.refresh_token == "refresh-2"

    @pytest.mark.asyncio
    async def test_failed_refresh_disconnects_and_later_calls_fail_fast(
        self, session, make_integration, credentials, http_mock
    ):
        calls = http_mock(lambda request: httpx.Response(400, json={"error": "invalid_grant"}))
        record = await make_integration(refresh_token="revoked", expires_in=-60)

        with pytest.raises(AuthExpired):
            await token_manager.ensure_fresh_token(session, record)

        assert record.is_connected is False
        assert record.config["last_error"].startswith("Refresh failed")

        with pytest.raises(AuthExpired):
            await token_manager.get_active_token(session, USER_ID, "gmail")
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_expired_without_refresh_token(self, session, make_integration, credentials, no_http):
        record = await make_integration(refresh_token=None, expires_in=-60)

        with pytest.raises(AuthExpired):
            await token_manager.ensure_fresh_token(session, record)

        assert record.is_connected is False
        assert no_http == []

    @pytest.mark.asyncio
    async def test_missing_client_secret_keeps_the_integration_connected(
        self, session, make_integration, credentials, monkeypatch, no_http
    ):
        from config.settings import config

        monkeypatch.setattr(config, "google_client_secret", "")
        record = await make_integration(refresh_token="refresh-1", expires_in=-60)

        with pytest.raises(ConfigurationError, match="GOOGLE_CLIENT_SECRET"):
            await token_manager.ensure_fresh_token(session, record)

        assert record.is_connected is True
        assert "last_error" not in (record.config or {})
        assert no_http == []
        assert record.refresh_token == "refresh-1"


class TestGetActiveToken:
    @pytest.mark.asyncio
    async def test_never_connected(self, session, user):
        with pytest.raises(NotConnected):
            await token_manager.get_active_token(session, USER_ID, "stripe")

    @pytest.mark.asyncio
    async def test_connected(self, session, make_integration, no_http):
        await make_integration("stripe", access_token="sk_live")
        assert await token_manager.get_active_token(session, USER_ID, "stripe") == "sk_live"


class TestDisconnect:
    @pytest.mark.asyncio
    async def test_revokes_and_clears_the_access_token(self, session, make_integration, credentials, http_mock):
        calls = http_mock(lambda request: httpx.Response(200))
        await make_integration(refresh_token="refresh-1", expires_in=3600)

        assert await token_manager.disconnect(session, USER_ID, "gmail") is True

        assert str(calls[0].url) == "https://oauth2.googleapis.com/revoke"
        record = await token_manager.get_integration(session, USER_ID, "gmail")
        assert record.is_connected is False
        assert record.oauth_token is None
        assert record.refresh_token == "refresh-1"

    @pytest.mark.asyncio
    async def test_revocation_failure_does_not_block(self, session, make_integration, credentials, http_mock):
        http_mock(lambda request: httpx.Response(500))
        await make_integration()

        assert await token_manager.disconnect(session, USER_ID, "gmail") is True

    @pytest.mark.asyncio
    async def test_unknown_integration(self, session, user, no_http):
        assert await token_manager.disconnect(session, USER_ID, "gmail") is False


class TestIntegrationView:
    @pytest.mark.asyncio
    async def test_tokens_are_never_exposed(self, session, make_integration):
        await make_integration(refresh_token="refresh-1", config={"scope": "email", "account": {"email": "a@b.c"}})

        views = await token_manager.list_integrations(session, USER_ID)

        dumped = views[0].model_dump(by_alias=True)
        assert dumped["service"] == "gmail"
        assert dumped["isConnected"] is True
        assert dumped["account"] == {"email": "a@b.c"}
        assert not any("token" in key.lower() and key != "tokenExpiresAt" for key in dumped)


class TestIntegrationSettings:
    @pytest.mark.asyncio
    async def test_property_id_is_merged_into_the_config(self, session, make_integration):
        await make_integration("google-analytics", config={"scope": "analytics.readonly"})

        record = await token_manager.update_integration_config(
            session, USER_ID, "google-analytics", {"property_id": "123456"}
        )

        assert record.config == {"scope": "analytics.readonly", "property_id": "123456"}

    @pytest.mark.asyncio
    async def test_empty_value_clears_the_setting(self, session, make_integration):
        await make_integration("google-analytics", config={"property_id": "123456"})

        record = await token_manager.update_integration_config(
            session, USER_ID, "google-analytics", {"property_id": ""}
        )

        assert "property_id" not in record.config

    @pytest.mark.asyncio
    async def test_unknown_setting_is_rejected(self, session, make_integration):
        await make_integration("gmail")

        with pytest.raises(ConfigurationError, match="shop"):
            await token_manager.update_integration_config(session, USER_ID, "gmail", {"shop": "evil"})

    @pytest.mark.asyncio
    async def test_requires_a_connection(self, session, user):
        with pytest.raises(NotConnected):
            await token_manager.update_integration_config(
                session, USER_ID, "google-analytics", {"property_id": "1"}
            )


class TestApiKeys:
    @pytest.mark.asyncio
    async def test_store_and_get(self, session, user):
        record = await token_manager.store_api_key(session, USER_ID, "openai", "sk-abc", {"org": "acme"})

        assert record.app_type == "api"
        assert record.is_connected is True
        assert await token_manager.get_api_key(session, USER_ID, "openai") == ("sk-abc", {"org": "acme"})

    @pytest.mark.asyncio
    async def test_store_replaces_the_previous_key(self, session, user):
        await token_manager.store_api_key(session, USER_ID, "openai", "sk-old")
        await token_manager.store_api_key(session, USER_ID, "openai", "sk-new")

        assert (await token_manager.get_api_key(session, USER_ID, "openai"))[0] == "sk-new"
        assert [v.service for v in await token_manager.list_api_keys(session, USER_ID)] == ["openai"]

    @pytest.mark.asyncio
    async def test_list_skips_oauth_rows_and_deleted_keys(self, session, make_integration):
        await make_integration("gmail")
        await token_manager.store_api_key(session, USER_ID, "openai", "sk-1")
        await token_manager.store_api_key(session, USER_ID, "anthropic", "sk-2")

        assert await token_manager.disconnect(session, USER_ID, "anthropic") is True

        views = await token_manager.list_api_keys(session, USER_ID)
        assert [v.service for v in views] == ["openai"]
        assert "sk-1" not in str(views[0].model_dump())

    @pytest.mark.asyncio
    async def test_deleted_key_is_not_returned(self, session, user, no_http):
        await token_manager.store_api_key(session, USER_ID, "stripe", "sk_live_1")

        await token_manager.disconnect(session, USER_ID, "stripe")

        with pytest.raises(NotConnected):
            await token_manager.get_api_key(session, USER_ID, "stripe")
        # keys are never sent to an OAuth revocation endpoint
        assert no_http == []

    @pytest.mark.asyncio
    async def test_oauth_token_is_not_an_api_key(self, session, make_integration):
        await make_integration("stripe", access_token="sk_oauth")

        with pytest.raises(NotConnected):
            await token_manager.get_api_key(session, USER_ID, "stripe")
