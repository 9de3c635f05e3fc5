"""
FastAPI dependencies shared by the auth and integration routes.
"""

from __future__ import annotations

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from auth.jwt import verify_token

_bearer_scheme = HTTPBearer()


async def get_current_user_id(
    credentials: HTTPAuthorizationCredentials = Depends(_bearer_scheme),
) -> str:
    """The ``user_id`` carried by the request's Bearer token."""
    return verify_token(credentials.credentials)
