"""
OAuth ``state`` parameter — carries ``user_id`` and provider name through
the provider's redirect round-trip as ``"{user_id}:{provider}"``.
"""

from __future__ import annotations

from typing import Tuple

from connectors.errors import MalformedCallback

_SEPARATOR = ":"


def build_state(user_id: str, provider: str) -> str:
    if not user_id or _SEPARATOR in user_id:
        raise ValueError(f"user_id cannot be empty or contain '{_SEPARATOR}'")
    return f"{user_id}{_SEPARATOR}{provider}"


def parse_state(state: str) -> Tuple[str, str]:
    """
    Split a state string back into ``(user_id, provider)``.

    Raises ``MalformedCallback`` unless the string holds exactly two
    non-empty fields.
    """
    parts = (state or "").split(_SEPARATOR)
    if len(parts) != 2 or not all(p.strip() for p in parts):
        raise MalformedCallback(f"Invalid state parameter: {state!r}")
    user_id, provider = (p.strip() for p in parts)
    return user_id, provider
