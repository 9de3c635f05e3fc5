"""
Tests for ``fetch_integration_data`` — live results, labelled fallbacks
and the errors that are not served with fallback data.
"""

import httpx
import pytest

from adapters.gmail_adapter import mock_gmail_stats
from adapters.service import fetch_integration_data
from connectors import token_manager
from connectors.errors import ConfigurationError
from tests.conftest import USER_ID


def _labels_handler(request: httpx.Request) -> httpx.Response:
    label = request.url.path.rsplit("/", 1)[-1]
    counts = {"INBOX": (120, 7), "SENT": (40, 0), "DRAFT": (2, 0), "SPAM": (9, 9)}[label]
    return httpx.Response(200, json={"id": label, "messagesTotal": counts[0], "messagesUnread": counts[1]})


class TestLiveResults:
    @pytest.mark.asyncio
    async def test_live_data_and_sync_timestamp(self, session, make_integration, credentials, http_mock):
        calls = http_mock(_labels_handler)
        record = await make_integration("gmail", access_token="ya29.live", expires_in=3600)

        result = await fetch_integration_data(session, USER_ID, "gmail", "get_email_stats")

        assert result.source == "live"
        assert result.error is None
        assert result.data.total_emails == 120
        assert result.data.unread_emails == 7
        assert result.data.spam_emails == 9
        assert calls[0].headers["authorization"] == "Bearer ya29.live"
        assert record.last_sync_at is not None

        wire = result.model_dump(by_alias=True, mode="json")
        assert wire["source"] == "live"
        assert wire["data"]["totalEmails"] == 120

    @pytest.mark.asyncio
    async def test_expired_token_is_refreshed_before_the_call(self, session, make_integration, credentials, http_mock):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.host == "oauth2.googleapis.com":
                return httpx.Response(200, json={"access_token": "ya29.fresh", "expires_in": 3600})
            assert request.headers["authorization"] == "Bearer ya29.fresh"
            return _labels_handler(request)

        http_mock(handler)
        await make_integration("gmail", refresh_token="refresh-1", expires_in=-10)

        result = await fetch_integration_data(session, USER_ID, "gmail", "get_email_stats")

        assert result.source == "live"

    @pytest.mark.asyncio
    async def test_shopify_calls_the_recorded_shop(self, session, make_integration, credentials, http_mock):
        calls = http_mock(lambda request: httpx.Response(200, json={"orders": [{"id": 1, "name": "#1001", "total_price": "12.50"}]}))
        await make_integration("shopify", access_token="shpat_1", config={"shop": "acme"})

        result = await fetch_integration_data(session, USER_ID, "shopify", "get_orders", {"limit": 5})

        assert result.source == "live"
        assert result.data[0].total_price == 12.5
        assert calls[0].url.host == "acme.myshopify.com"
        assert calls[0].url.path == "/admin/api/2024-01/orders.json"
        assert calls[0].headers["x-shopify-access-token"] == "shpat_1"

    @pytest.mark.asyncio
    async def test_analytics_uses_the_stored_property(self, session, make_integration, credentials, http_mock):
        calls = http_mock(lambda request: httpx.Response(200, json={"rows": []}))
        await make_integration("google-analytics", access_token="ya29")
        await token_manager.update_integration_config(
            session, USER_ID, "google-analytics", {"property_id": "987654"}
        )

        result = await fetch_integration_data(session, USER_ID, "google-analytics", "get_analytics")

        assert result.source == "live"
        assert calls[0].url.path == "/v1beta/properties/987654:runReport"


class TestFallbacks:
    @pytest.mark.asyncio
    async def test_never_connected(self, session, user, no_http):
        result = await fetch_integration_data(session, USER_ID, "gmail", "get_email_stats")

        assert result.source == "fallback"
        assert result.fell_back
        assert result.error["type"] == "not_connected"
        assert result.data == mock_gmail_stats()
        assert no_http == []

    @pytest.mark.asyncio
    async def test_failed_refresh_is_labelled_auth_expired(self, session, make_integration, credentials, http_mock):
        calls = http_mock(lambda request: httpx.Response(400, json={"error": "invalid_grant"}))
        record = await make_integration("gmail", refresh_token="revoked", expires_in=-10)

        result = await fetch_integration_data(session, USER_ID, "gmail", "get_email_stats")

        assert result.source == "fallback"
        assert result.error["type"] == "auth_expired"
        assert result.reconnect_required
        assert record.is_connected is False

        again = await fetch_integration_data(session, USER_ID, "gmail", "fetch_emails")
        assert again.error["type"] == "auth_expired"
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_provider_error_is_labelled_with_status(self, session, make_integration, credentials, http_mock):
        http_mock(lambda request: httpx.Response(503, text="unavailable"))
        await make_integration("stripe", access_token="sk_1")

        result = await fetch_integration_data(session, USER_ID, "stripe", "get_sales_data")

        assert result.source == "fallback"
        assert result.error["type"] == "provider_api_error"
        assert result.error["statusCode"] == 503
        assert not result.reconnect_required
        assert result.data.total_orders > 0

    @pytest.mark.asyncio
    async def test_analytics_without_property_falls_back(self, session, make_integration, credentials, no_http):
        await make_integration("google-analytics", access_token="ya29")

        result = await fetch_integration_data(session, USER_ID, "google-analytics", "get_analytics")

        assert result.source == "fallback"
        assert result.error["type"] == "provider_api_error"
        assert no_http == []

    @pytest.mark.asyncio
    async def test_missing_client_secret_is_labelled_configuration_error(
        self, session, make_integration, credentials, monkeypatch, no_http
    ):
        from config.settings import config

        monkeypatch.setattr(config, "google_client_secret", "")
        record = await make_integration("gmail", refresh_token="refresh-1", expires_in=-10)

        result = await fetch_integration_data(session, USER_ID, "gmail", "get_email_stats")

        assert result.source == "fallback"
        assert result.error["type"] == "configuration_error"
        assert not result.reconnect_required
        assert record.is_connected is True
        assert no_http == []

    @pytest.mark.asyncio
    async def test_unexpected_payload_shape_falls_back(self, session, make_integration, credentials, http_mock):
        http_mock(lambda request: httpx.Response(200, json={"ok": True, "channels": ["general", "random"]}))
        record = await make_integration("slack", access_token="xoxb-1")

        result = await fetch_integration_data(session, USER_ID, "slack", "get_channels")

        assert result.source == "fallback"
        assert result.error["type"] == "provider_api_error"
        assert "Unexpected slack response" in result.error["message"]
        assert result.data[0].id == "C-SAMPLE-1"
        assert record.is_connected is True
        assert record.last_sync_at is None

    @pytest.mark.asyncio
    async def test_payload_failing_validation_falls_back(self, session, make_integration, credentials, http_mock):
        http_mock(lambda request: httpx.Response(200, json=[{"full_name": "acme/api", "stargazers_count": "many"}]))
        await make_integration("github", access_token="gho_1")

        result = await fetch_integration_data(session, USER_ID, "github", "get_repositories")

        assert result.source == "fallback"
        assert result.error["type"] == "provider_api_error"


class TestRejectedRequests:
    @pytest.mark.asyncio
    async def test_unknown_action(self, session, user):
        with pytest.raises(ConfigurationError):
            await fetch_integration_data(session, USER_ID, "gmail", "delete_all")

    @pytest.mark.asyncio
    async def test_unexpected_parameter(self, session, user):
        with pytest.raises(ConfigurationError, match="Invalid parameters"):
            await fetch_integration_data(session, USER_ID, "gmail", "get_email_stats", {"folder": "x"})
