"""
Token manager — store, load, refresh and disconnect per-user integrations.

This is the single interface the OAuth callback and the data adapters use
to read or write an ``Integration`` row.  Writes are flushed, never
committed: the caller owns the transaction.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import config
from connectors.encryption import decrypt_token, encrypt_token
from connectors.errors import AuthExpired, ConfigurationError, IntegrationError, NotConnected
from connectors.registry import ConnectorRegistry
from connectors.schemas import IntegrationView, TokenResponse
from database.models import Integration

logger = logging.getLogger(__name__)

API_KEY_TYPE = "api"

# Per-provider settings a user may edit after connecting.
SETTABLE_CONFIG: Dict[str, tuple] = {
    "google-analytics": ("property_id",),
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite hands back naive datetimes; treat them as UTC."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def _expiry(expires_in: Optional[int]) -> Optional[datetime]:
    if expires_in is None:
        return None
    return _utcnow() + timedelta(seconds=expires_in)


async def get_integration(
    session: AsyncSession,
    user_id: str,
    provider: str,
) -> Optional[Integration]:
    """Return the (user, provider) row, connected or not."""
    result = await session.execute(
        select(Integration).where(
            Integration.user_id == user_id,
            Integration.app_name == provider,
        )
    )
    return result.scalar_one_or_none()


async def upsert_integration(
    session: AsyncSession,
    user_id: str,
    provider: str,
    token: TokenResponse,
    *,
    shop: Optional[str] = None,
    account: Optional[Dict[str, Any]] = None,
    registry: Optional[ConnectorRegistry] = None,
) -> Integration:
    """
    Store a successful code exchange, updating the existing row if any.

    The refresh token is only replaced when the provider issued one.
    """
    registry = registry or ConnectorRegistry()
    existing = await get_integration(session, user_id, provider)

    stored_config: Dict[str, Any] = dict(existing.config or {}) if existing else {}
    stored_config.update(
        {
            "scope": token.scope,
            "service_data": token.raw,
            "account": account or {},
            "last_error": None,
        }
    )
    if shop:
        stored_config["shop"] = shop

    if existing:
        existing.is_connected = True
        existing.oauth_token = encrypt_token(token.access_token)
        if token.refresh_token:
            existing.refresh_token = encrypt_token(token.refresh_token)
        existing.token_expires_at = _expiry(token.expires_in)
        existing.config = stored_config
        existing.updated_at = _utcnow()
        record = existing
        logger.info("Updated %s integration for user %s", provider, user_id)
    else:
        record = Integration(
            user_id=user_id,
            app_name=provider,
            app_type=registry.app_type(provider),
            is_connected=True,
            oauth_token=encrypt_token(token.access_token),
            refresh_token=encrypt_token(token.refresh_token),
            token_expires_at=_expiry(token.expires_in),
            config=stored_config,
        )
        session.add(record)
        logger.info("Created %s integration for user %s", provider, user_id)

    await session.flush()
    return record


def needs_refresh(record: Integration, now: Optional[datetime] = None) -> bool:
    """True when the access token is expired (or within the refresh leeway)."""
    expires_at = as_utc(record.token_expires_at)
    if expires_at is None:
        return False
    now = now or _utcnow()
    return expires_at <= now + timedelta(seconds=config.token_refresh_leeway_seconds)


async def _mark_unusable(session: AsyncSession, record: Integration, reason: str) -> None:
    record.is_connected = False
    record.config = {**(record.config or {}), "last_error": reason}
    record.updated_at = _utcnow()
    await session.flush()


async def ensure_fresh_token(
    session: AsyncSession,
    record: Integration,
    *,
    registry: Optional[ConnectorRegistry] = None,
) -> str:
    """
    Return a usable access token for ``record``, refreshing it first if it
    has expired.

    On any refresh failure the integration is marked disconnected and
    ``AuthExpired`` is raised; later calls fail fast until the user
    reconnects.

    A ``ConfigurationError`` (missing client credentials, unknown provider)
    is re-raised unchanged and leaves the integration connected.
    """
    if not needs_refresh(record):
        return decrypt_token(record.oauth_token) or ""

    provider = record.app_name
    refresh_token = decrypt_token(record.refresh_token)
    if not refresh_token:
        reason = "Token expired and no refresh token available"
        await _mark_unusable(session, record, reason)
        logger.warning("%s token for user %s expired without refresh token", provider, record.user_id)
        raise AuthExpired(
            f"{provider} authentication expired. Please reconnect your account.",
            provider=provider,
        )

    registry = registry or ConnectorRegistry()
    try:
        connector = registry.get(provider)
        refreshed = await connector.refresh_access_token(
            refresh_token, tenant=(record.config or {}).get("shop")
        )
    except ConfigurationError as exc:
        logger.error("Cannot refresh %s token for user %s: %s", provider, record.user_id, exc.message)
        raise
    except IntegrationError as exc:
        await _mark_unusable(session, record, f"Refresh failed: {exc.message}")
        logger.warning("Token refresh failed for %s/%s: %s", provider, record.user_id, exc.message)
        raise AuthExpired(
            f"{provider} authentication expired. Please reconnect your account.",
            provider=provider,
        ) from exc

    record.oauth_token = encrypt_token(refreshed.access_token)
    record.token_expires_at = _expiry(refreshed.expires_in)
    # Some providers rotate refresh tokens
    if refreshed.refresh_token:
        record.refresh_token = encrypt_token(refreshed.refresh_token)
    record.updated_at = _utcnow()
    await session.flush()
    logger.info("Refreshed %s token for user %s", provider, record.user_id)
    return refreshed.access_token


async def load_connected_integration(
    session: AsyncSession,
    user_id: str,
    provider: str,
) -> Integration:
    """
    Load a row that may be used for API calls.

    Raises ``NotConnected`` when the user never connected the provider and
    ``AuthExpired`` when the row was disconnected or its refresh failed.
    """
    record = await get_integration(session, user_id, provider)
    if record is None:
        raise NotConnected(f"{provider} integration not found", provider=provider)
    if not record.is_connected:
        raise AuthExpired(
            f"{provider} is disconnected. Please reconnect your account.",
            provider=provider,
        )
    return record


async def get_active_token(
    session: AsyncSession,
    user_id: str,
    provider: str,
    *,
    registry: Optional[ConnectorRegistry] = None,
) -> str:
    """Get a valid access token for the user + provider, refreshing if needed."""
    record = await load_connected_integration(session, user_id, provider)
    return await ensure_fresh_token(session, record, registry=registry)


async def mark_synced(session: AsyncSession, record: Integration) -> None:
    record.last_sync_at = _utcnow()
    await session.flush()


async def disconnect(
    session: AsyncSession,
    user_id: str,
    provider: str,
    *,
    registry: Optional[ConnectorRegistry] = None,
) -> bool:
    """
    Soft-delete a connection: revoke at the provider (best effort), clear
    the access token and flip ``is_connected``.

    Returns False if the user never connected the provider.
    """
    record = await get_integration(session, user_id, provider)
    if record is None:
        return False

    access_token = decrypt_token(record.oauth_token)
    if access_token and record.is_connected and record.app_type != API_KEY_TYPE:
        registry = registry or ConnectorRegistry()
        try:
            revoked = await registry.get(provider).revoke_token(access_token)
        except IntegrationError as exc:
            logger.warning("Skipping %s revocation: %s", provider, exc.message)
        else:
            logger.debug("%s revocation %s", provider, "succeeded" if revoked else "not performed")

    record.is_connected = False
    record.oauth_token = None
    record.updated_at = _utcnow()
    await session.flush()
    logger.info("Disconnected %s for user %s", provider, user_id)
    return True


def to_view(record: Integration) -> IntegrationView:
    cfg = record.config or {}
    return IntegrationView(
        service=record.app_name,
        app_type=record.app_type,
        is_connected=record.is_connected,
        token_expires_at=as_utc(record.token_expires_at),
        last_sync_at=as_utc(record.last_sync_at),
        updated_at=as_utc(record.updated_at),
        scope=cfg.get("scope"),
        account=cfg.get("account") or {},
        last_error=cfg.get("last_error"),
    )


async def list_integrations(session: AsyncSession, user_id: str) -> List[IntegrationView]:
    """Return all integrations for a user (no tokens exposed)."""
    result = await session.execute(
        select(Integration)
        .where(Integration.user_id == user_id)
        .order_by(Integration.app_name)
    )
    return [to_view(r) for r in result.scalars().all()]


async def update_integration_config(
    session: AsyncSession,
    user_id: str,
    provider: str,
    settings: Dict[str, Any],
) -> Integration:
    """
    Merge user-editable settings into a connected integration's config.

    Only keys listed in ``SETTABLE_CONFIG`` for the provider are accepted;
    an empty value removes the key.
    """
    allowed = SETTABLE_CONFIG.get(provider, ())
    rejected = sorted(set(settings) - set(allowed))
    if rejected:
        raise ConfigurationError(
            f"Unsupported settings for {provider}: {', '.join(rejected)}", provider=provider
        )

    record = await load_connected_integration(session, user_id, provider)
    merged = dict(record.config or {})
    for key, value in settings.items():
        if value in (None, ""):
            merged.pop(key, None)
        else:
            merged[key] = value
    record.config = merged
    record.updated_at = _utcnow()
    await session.flush()
    logger.info("Updated %s settings for user %s: %s", provider, user_id, ", ".join(sorted(settings)))
    return record


# ── API keys ────────────────────────────────────────────────────────────
# Keys live in the same table as OAuth rows (app_type "api"), encrypted in
# ``oauth_token``, and are soft-deleted through ``disconnect``.


async def store_api_key(
    session: AsyncSession,
    user_id: str,
    service: str,
    api_key: str,
    config_values: Optional[Dict[str, Any]] = None,
) -> Integration:
    """Create or replace the user's key for ``service``."""
    existing = await get_integration(session, user_id, service)
    if existing:
        existing.app_type = API_KEY_TYPE
        existing.is_connected = True
        existing.oauth_token = encrypt_token(api_key)
        existing.refresh_token = None
        existing.token_expires_at = None
        existing.config = dict(config_values or {})
        existing.updated_at = _utcnow()
        record = existing
    else:
        record = Integration(
            user_id=user_id,
            app_name=service,
            app_type=API_KEY_TYPE,
            is_connected=True,
            oauth_token=encrypt_token(api_key),
            config=dict(config_values or {}),
        )
        session.add(record)

    await session.flush()
    logger.info("Stored %s API key for user %s", service, user_id)
    return record


async def get_api_key(session: AsyncSession, user_id: str, service: str) -> Tuple[str, Dict[str, Any]]:
    """Return ``(api_key, config)`` for a connected key; ``NotConnected`` otherwise."""
    record = await get_integration(session, user_id, service)
    api_key = decrypt_token(record.oauth_token) if record is not None else None
    if record is None or not record.is_connected or record.app_type != API_KEY_TYPE or not api_key:
        raise NotConnected(f"No API key stored for {service}", provider=service)
    return api_key, dict(record.config or {})


async def list_api_keys(session: AsyncSession, user_id: str) -> List[IntegrationView]:
    """Connected API keys for a user (keys themselves are not exposed)."""
    result = await session.execute(
        select(Integration)
        .where(
            Integration.user_id == user_id,
            Integration.app_type == API_KEY_TYPE,
            Integration.is_connected.is_(True),
        )
        .order_by(Integration.app_name)
    )
    return [to_view(r) for r in result.scalars().all()]
