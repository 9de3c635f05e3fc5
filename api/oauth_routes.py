"""
OAuth routes — start a connection, receive the provider redirect and let
the UI poll for completion.

Route prefix: /api/v1/oauth
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import HTMLResponse
from sqlalchemy.ext.asyncio import AsyncSession

from auth.dependencies import get_current_user_id
from connectors import token_manager
from connectors.callback_page import render_callback_page
from connectors.errors import NotConnected
from connectors.oauth import handle_oauth_callback, initiate_oauth
from connectors.registry import ConnectorRegistry
from connectors.schemas import InitiateRequest
from database.session import get_db_session

logger = logging.getLogger(__name__)

router = APIRouter(tags=["oauth"])


@router.get("/providers")
async def list_providers() -> List[Dict[str, Any]]:
    """
    All registered providers and whether their credentials are configured.
    No auth required — the UI uses it to render the connect buttons.
    """
    return ConnectorRegistry().list_providers()


@router.post("/initiate")
async def initiate(
    req: InitiateRequest,
    user_id: str = Depends(get_current_user_id),
) -> Dict[str, str]:
    """
    Return the provider's consent URL.  The UI opens it in a popup.
    """
    auth_url = initiate_oauth(user_id, req.service, shop=req.shop_domain)
    return {"authUrl": auth_url}


@router.get("/callback", response_class=HTMLResponse)
async def oauth_callback(
    code: Optional[str] = Query(None),
    state: Optional[str] = Query(None),
    error: Optional[str] = Query(None),
    shop: Optional[str] = Query(None),
    session: AsyncSession = Depends(get_db_session),
) -> HTMLResponse:
    """
    Provider redirect target.  Always answers with the popup page; the
    outcome travels in the page's ``postMessage`` payload.
    """
    result = await handle_oauth_callback(
        session, code=code, state=state, error=error, shop=shop
    )
    if result.ok:
        await session.commit()
    else:
        await session.rollback()
    return HTMLResponse(content=render_callback_page(result), status_code=200)


@router.get("/status/{provider}")
async def oauth_status(
    provider: str,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_db_session),
) -> Dict[str, Any]:
    """Completion signal for clients that cannot receive ``postMessage``."""
    ConnectorRegistry().get(provider)
    record = await token_manager.get_integration(session, user_id, provider)
    if record is None:
        raise NotConnected(f"{provider} integration not found", provider=provider)
    view = token_manager.to_view(record)
    return {
        "service": view.service,
        "isConnected": view.is_connected,
        "updatedAt": view.updated_at.isoformat() if view.updated_at else None,
        "lastError": view.last_error,
    }
