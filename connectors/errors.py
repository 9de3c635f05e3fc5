"""
Error taxonomy for OAuth connections and provider calls.

Every error carries the provider it concerns (when known) and a stable
``code`` that is safe to hand to the browser or serialise in API responses.
"""

from __future__ import annotations

from typing import Optional


class IntegrationError(Exception):
    """Base class for every connector / adapter failure."""

    code = "integration_error"

    def __init__(self, message: str, *, provider: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.provider = provider

    def to_dict(self) -> dict:
        return {"type": self.code, "message": self.message, "provider": self.provider}


class ConfigurationError(IntegrationError):
    """Unregistered provider or missing client credentials. Fatal, not retried."""

    code = "configuration_error"


class UserDenied(IntegrationError):
    """The provider redirected back with an ``error`` parameter."""

    code = "user_denied"


class MalformedCallback(IntegrationError):
    """Callback missing ``code``/``state`` or carrying an unparseable state."""

    code = "malformed_callback"


class TokenExchangeFailed(IntegrationError):
    """The provider rejected the authorization code."""

    code = "token_exchange_failed"


class AuthExpired(IntegrationError):
    """Refresh failed; the user has to reconnect the integration."""

    code = "auth_expired"


class NotConnected(IntegrationError):
    """No integration record exists for this user + provider."""

    code = "not_connected"


class ProviderAPIError(IntegrationError):
    """A downstream REST call failed even though the token was valid."""

    code = "provider_api_error"

    def __init__(
        self,
        message: str,
        *,
        provider: Optional[str] = None,
        status_code: Optional[int] = None,
    ) -> None:
        super().__init__(message, provider=provider)
        self.status_code = status_code
