"""
Integration routes — list, configure and disconnect integrations, manage
API keys, fetch widget data and read the notifications produced from
provider data.

Route prefix: /api/v1
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.ext.asyncio import AsyncSession

from adapters.gmail_adapter import create_email_notifications
from adapters.service import fetch_integration_data
from auth.dependencies import get_current_user_id
from connectors import api_keys, token_manager
from connectors.registry import ConnectorRegistry
from database.helpers import (
    count_unread_notifications,
    list_notifications,
    mark_notification_read,
)
from database.session import get_db_session

logger = logging.getLogger(__name__)

router = APIRouter(tags=["integrations"])


class DataRequest(BaseModel):
    action: str
    params: Dict[str, Any] = Field(default_factory=dict)


class SettingsUpdate(BaseModel):
    settings: Dict[str, Any]


class StoreApiKeyRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    service: str = Field(min_length=1, max_length=64)
    api_key: str = Field(alias="apiKey", min_length=1)
    config: Dict[str, Any] = Field(default_factory=dict)


class ApiKeyCallRequest(BaseModel):
    endpoint: str
    method: str = "GET"
    data: Optional[Any] = None
    headers: Dict[str, str] = Field(default_factory=dict)


# ── Integrations ───────────────────────────────────────────────────────


@router.get("/integrations")
async def list_user_integrations(
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_db_session),
) -> List[Dict[str, Any]]:
    """The user's integrations; tokens are never included."""
    views = await token_manager.list_integrations(session, user_id)
    return [v.model_dump(by_alias=True, mode="json") for v in views]


@router.delete("/integrations/{provider}")
async def disconnect_integration(
    provider: str,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_db_session),
) -> Dict[str, Any]:
    """Revoke (best effort) and disconnect an integration."""
    ConnectorRegistry().get(provider)
    if not await token_manager.disconnect(session, user_id, provider):
        raise HTTPException(status.HTTP_404_NOT_FOUND, f"{provider} integration not found")
    await session.commit()
    return {"status": "disconnected", "service": provider}


@router.patch("/integrations/{provider}/config")
async def update_integration_settings(
    provider: str,
    req: SettingsUpdate,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_db_session),
) -> Dict[str, Any]:
    """Set per-integration options such as the Analytics ``property_id``."""
    record = await token_manager.update_integration_config(session, user_id, provider, req.settings)
    await session.commit()
    return token_manager.to_view(record).model_dump(by_alias=True, mode="json")


@router.post("/integrations/{provider}/data")
async def integration_data(
    provider: str,
    req: DataRequest,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_db_session),
) -> Dict[str, Any]:
    """
    Run one adapter action.  Always answers 200 with an ``AdapterResult``;
    ``source`` says whether the data is live or fallback.
    """
    result = await fetch_integration_data(session, user_id, provider, req.action, req.params)
    # persists a refresh, a failed refresh or the sync timestamp
    await session.commit()
    return result.model_dump(by_alias=True, mode="json")


# ── API keys ─────────────────────────────────────────────────────────────


@router.post("/api-keys", status_code=status.HTTP_201_CREATED)
async def store_api_key(
    req: StoreApiKeyRequest,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_db_session),
) -> Dict[str, str]:
    await token_manager.store_api_key(session, user_id, req.service, req.api_key, req.config)
    await session.commit()
    return {"status": "stored", "service": req.service}


@router.get("/api-keys")
async def list_api_keys(
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_db_session),
) -> List[Dict[str, Any]]:
    """Connected API-key services; the keys themselves are not listed."""
    views = await token_manager.list_api_keys(session, user_id)
    return [v.model_dump(by_alias=True, mode="json") for v in views]


@router.get("/api-keys/{service}")
async def get_api_key(
    service: str,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_db_session),
) -> Dict[str, Any]:
    api_key, config = await token_manager.get_api_key(session, user_id, service)
    return {"service": service, "apiKey": api_key, "config": config}


@router.delete("/api-keys/{service}")
async def delete_api_key(
    service: str,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_db_session),
) -> Dict[str, str]:
    # raises NotConnected (404) for unknown or already deleted keys
    await token_manager.get_api_key(session, user_id, service)
    await token_manager.disconnect(session, user_id, service)
    await session.commit()
    return {"status": "deleted", "service": service}


@router.post("/api-keys/{service}/call")
async def call_api_key_service(
    service: str,
    req: ApiKeyCallRequest,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_db_session),
) -> Dict[str, Any]:
    """Forward a request to ``endpoint`` authenticated with the stored key."""
    return await api_keys.call_with_api_key(
        session,
        user_id,
        service,
        req.endpoint,
        method=req.method,
        data=req.data,
        headers=req.headers,
    )


# ── Notifications ──────────────────────────────────────────────────────


@router.get("/notifications")
async def get_notifications(
    unread_only: bool = Query(False, alias="unreadOnly"),
    limit: int = Query(50, ge=1, le=200),
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_db_session),
) -> Dict[str, Any]:
    items = await list_notifications(session, user_id, unread_only=unread_only, limit=limit)
    return {
        "notifications": items,
        "unreadCount": await count_unread_notifications(session, user_id),
    }


@router.post("/notifications/{notification_id}/read")
async def read_notification(
    notification_id: str,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_db_session),
) -> Dict[str, str]:
    if not await mark_notification_read(session, user_id, notification_id):
        raise HTTPException(status.HTTP_404_NOT_FOUND, "Notification not found")
    await session.commit()
    return {"status": "read", "id": notification_id}


@router.post("/notifications/gmail/sync")
async def sync_gmail_notifications(
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_db_session),
) -> Dict[str, Any]:
    """
    Pull the inbox and create a notification for each new priority email.
    Fallback data never produces notifications.
    """
    result = await fetch_integration_data(session, user_id, "gmail", "fetch_emails", {})
    created = 0
    if not result.fell_back:
        created = await create_email_notifications(session, user_id, result.data.emails)
    await session.commit()
    return {"created": created, "source": result.source}
