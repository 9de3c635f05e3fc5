"""
Token encryption — encrypt / decrypt OAuth tokens at rest.

Uses Fernet (AES-128-CBC + HMAC-SHA256) from the ``cryptography`` library.
The key is read from ``config.token_encryption_key``
(env var: ``TOKEN_ENCRYPTION_KEY``).  Without a key, tokens are stored as
plaintext and a warning is logged once.  Generate a key with::

    python -c "from cryptography.fernet import Fernet; print(Fernet.generate_key().decode())"
"""

from __future__ import annotations

import logging
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken

from config.settings import config

logger = logging.getLogger(__name__)

_fernet: Optional[Fernet] = None
_initialised = False


def _cipher() -> Optional[Fernet]:
    """Build the Fernet cipher on first use."""
    global _fernet, _initialised
    if _initialised:
        return _fernet
    _initialised = True

    key = config.token_encryption_key
    if not key:
        logger.warning("TOKEN_ENCRYPTION_KEY not set — OAuth tokens will be stored as plaintext")
        return None
    try:
        _fernet = Fernet(key.encode())
    except ValueError as exc:
        logger.error("Invalid TOKEN_ENCRYPTION_KEY, tokens will be stored as plaintext: %s", exc)
        return None
    logger.info("Token encryption enabled")
    return _fernet


def encrypt_token(plaintext: Optional[str]) -> Optional[str]:
    """Encrypt a token for storage. ``None`` passes through."""
    if plaintext is None:
        return None
    cipher = _cipher()
    if cipher is None:
        return plaintext
    return cipher.encrypt(plaintext.encode()).decode()


def decrypt_token(stored: Optional[str]) -> Optional[str]:
    """
    Decrypt a stored token.

    Values written before a key was configured are not Fernet tokens and
    are returned unchanged.
    """
    if stored is None:
        return None
    cipher = _cipher()
    if cipher is None:
        return stored
    try:
        return cipher.decrypt(stored.encode()).decode()
    except InvalidToken:
        return stored


def reset_cipher() -> None:
    """Forget the cached cipher so a changed key takes effect."""
    global _fernet, _initialised
    _fernet = None
    _initialised = False
