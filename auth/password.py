"""
Password hashing for dashboard accounts (bcrypt, auto-salted).

The work factor comes from ``config.password_hash_rounds``.
"""

from __future__ import annotations

import bcrypt

from config.settings import config


def hash_password(password: str) -> str:
    salt = bcrypt.gensalt(rounds=config.password_hash_rounds)
    return bcrypt.hashpw(password.encode(), salt).decode()


def verify_password(password: str, password_hash: str | None) -> bool:
    """Constant-time check; accounts without a hash never verify."""
    if not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode(), password_hash.encode())
    except (ValueError, TypeError):
        return False
