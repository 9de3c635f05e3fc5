"""
Auth API routes — register, login, whoami.

Route prefix: /api/v1/auth
"""

from __future__ import annotations

import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from auth.dependencies import get_current_user_id
from auth.jwt import create_token
from auth.password import hash_password, verify_password
from database.helpers import get_user_by_email
from database.models import User
from database.session import get_db_session

logger = logging.getLogger(__name__)

router = APIRouter(tags=["auth"])


# ── Request / response schemas ─────────────────────────────────────────


class RegisterRequest(BaseModel):
    display_name: str = Field(..., min_length=2, max_length=128)
    email: str = Field(..., min_length=5, max_length=255, pattern=r"^[^@\s]+@[^@\s]+$")
    password: str = Field(..., min_length=8, max_length=128)


class LoginRequest(BaseModel):
    email: str
    password: str


class AuthResponse(BaseModel):
    user_id: str
    display_name: str
    email: str
    token: str


def _auth_response(user: User) -> Dict[str, Any]:
    return {
        "user_id": user.user_id,
        "display_name": user.display_name or "",
        "email": user.email,
        "token": create_token(user.user_id),
    }


# ── Endpoints ──────────────────────────────────────────────────────────


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
async def register(
    req: RegisterRequest,
    session: AsyncSession = Depends(get_db_session),
) -> Dict[str, Any]:
    """Create a dashboard account and return a session token."""
    if await get_user_by_email(session, req.email) is not None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Email already registered",
        )

    user = User(
        email=req.email.lower(),
        display_name=req.display_name,
        password_hash=hash_password(req.password),
    )
    session.add(user)
    try:
        await session.flush()
    except IntegrityError:
        # a concurrent registration won the unique email constraint
        await session.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Email already registered",
        ) from None

    logger.info("Registered user %s", user.user_id)
    return _auth_response(user)


@router.post("/login", response_model=AuthResponse)
async def login(
    req: LoginRequest,
    session: AsyncSession = Depends(get_db_session),
) -> Dict[str, Any]:
    user = await get_user_by_email(session, req.email)
    if user is None or not verify_password(req.password, user.password_hash):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
        )

    logger.info("Login: %s", user.user_id)
    return _auth_response(user)


@router.get("/me")
async def whoami(
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_db_session),
) -> Dict[str, Any]:
    user = await session.get(User, user_id)
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return {"user_id": user.user_id, "display_name": user.display_name, "email": user.email}
