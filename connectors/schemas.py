"""
Pydantic shapes shared by the connector layer.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class TokenResponse(BaseModel):
    """Canonical result of a code exchange or refresh, whatever the provider."""

    access_token: str
    refresh_token: Optional[str] = None
    expires_in: Optional[int] = None
    scope: Optional[str] = None
    raw: Dict[str, Any] = Field(default_factory=dict)


class IntegrationView(BaseModel):
    """An integration as exposed to the UI — never includes tokens."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    service: str
    app_type: str
    is_connected: bool
    token_expires_at: Optional[datetime] = None
    last_sync_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    scope: Optional[str] = None
    account: Dict[str, Any] = Field(default_factory=dict)
    last_error: Optional[str] = None


class InitiateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    service: str
    shop_domain: Optional[str] = Field(default=None, alias="shopDomain")
