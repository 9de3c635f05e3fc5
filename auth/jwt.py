"""
Signed Bearer tokens for dashboard sessions.

A token is ``<urlsafe-b64 JSON payload>.<hex HMAC-SHA256>`` carrying the
``user_id`` and an ``exp`` timestamp.  The secret and lifetime are read
from ``config`` on every call.
"""

from __future__ import annotations

import binascii
import hashlib
import hmac
import json
import time
from base64 import urlsafe_b64decode, urlsafe_b64encode

from fastapi import HTTPException, status

from config.settings import config


class InvalidToken(ValueError):
    pass


def _sign(raw: bytes) -> str:
    return hmac.new(config.jwt_secret.encode(), raw, hashlib.sha256).hexdigest()


def create_token(user_id: str, now: float | None = None) -> str:
    issued = int(now if now is not None else time.time())
    payload = {"user_id": user_id, "iat": issued, "exp": issued + config.jwt_expiry_seconds}
    raw = json.dumps(payload, separators=(",", ":")).encode()
    return urlsafe_b64encode(raw).decode() + "." + _sign(raw)


def decode_token(token: str, now: float | None = None) -> str:
    """Return the ``user_id`` of a valid token or raise ``InvalidToken``."""
    body, sep, signature = token.partition(".")
    if not sep:
        raise InvalidToken("bad format")
    try:
        raw = urlsafe_b64decode(body.encode())
    except (binascii.Error, ValueError):
        raise InvalidToken("bad encoding") from None
    if not hmac.compare_digest(signature, _sign(raw)):
        raise InvalidToken("bad signature")
    try:
        payload = json.loads(raw)
    except ValueError:
        raise InvalidToken("bad payload") from None
    if payload.get("exp", 0) < (now if now is not None else time.time()):
        raise InvalidToken("token expired")
    user_id = payload.get("user_id")
    if not user_id:
        raise InvalidToken("missing user_id")
    return user_id


def verify_token(token: str) -> str:
    """
    Verify token and return ``user_id``.

    Raises ``HTTPException(401)`` on invalid or expired tokens.
    """
    try:
        return decode_token(token)
    except InvalidToken as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Invalid or expired token: {exc}",
            headers={"WWW-Authenticate": "Bearer"},
        ) from exc
