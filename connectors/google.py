"""
Google connectors — Gmail, Sheets, Analytics and Calendar.

All four share Google's OAuth2 endpoints and one client id/secret pair;
they differ only in the scopes requested.  ``access_type=offline`` plus
``prompt=consent`` make Google issue a refresh token on every consent.
"""

from __future__ import annotations

from connectors.base import ProviderConfig

_GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
_GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
_GOOGLE_REVOKE_URL = "https://oauth2.googleapis.com/revoke"

_OFFLINE_PARAMS = (("access_type", "offline"), ("prompt", "consent"))


def _google(name: str, display_name: str, app_type: str, scopes: str, icon: str) -> ProviderConfig:
    return ProviderConfig(
        name=name,
        display_name=display_name,
        app_type=app_type,
        authorize_url=_GOOGLE_AUTH_URL,
        token_url=_GOOGLE_TOKEN_URL,
        client_id_env="GOOGLE_CLIENT_ID",
        client_secret_env="GOOGLE_CLIENT_SECRET",
        scopes=scopes,
        extra_auth_params=_OFFLINE_PARAMS,
        revoke_url=_GOOGLE_REVOKE_URL,
        icon=icon,
    )


GMAIL = _google(
    "gmail",
    "Gmail",
    "email",
    "https://www.googleapis.com/auth/gmail.readonly https://www.googleapis.com/auth/gmail.send",
    "📧",
)

GOOGLE_SHEETS = _google(
    "google-sheets",
    "Google Sheets",
    "productivity",
    "https://www.googleapis.com/auth/spreadsheets https://www.googleapis.com/auth/drive.readonly",
    "📊",
)

GOOGLE_ANALYTICS = _google(
    "google-analytics",
    "Google Analytics",
    "analytics",
    "https://www.googleapis.com/auth/analytics.readonly",
    "📈",
)

GOOGLE_CALENDAR = _google(
    "google-calendar",
    "Google Calendar",
    "productivity",
    "https://www.googleapis.com/auth/calendar.readonly",
    "📅",
)

