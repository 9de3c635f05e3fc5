"""
Slack adapters — channel list and channel history.

Slack answers HTTP 200 even for failures and flags them with
``"ok": false``; those are raised as ``ProviderAPIError``.
"""

from __future__ import annotations

from typing import Any, Dict, List

from adapters import adapter
from adapters.base import ProviderClient, bearer
from adapters.schemas import SlackChannel, SlackMessage
from connectors.errors import ProviderAPIError

_SLACK_API = "https://slack.com/api"


async def _call(client: ProviderClient, method: str, params: Dict[str, Any]) -> Dict[str, Any]:
    data = await client.get(f"{_SLACK_API}/{method}", params=params)
    if not data.get("ok"):
        raise ProviderAPIError(
            f"slack {method} failed: {data.get('error', 'unknown_error')}",
            provider="slack",
        )
    return data


def mock_channels() -> List[SlackChannel]:
    return [
        SlackChannel(id="C-SAMPLE-1", name="general", num_members=24, topic="Company-wide announcements"),
        SlackChannel(id="C-SAMPLE-2", name="engineering", num_members=9),
    ]


def mock_messages() -> List[SlackMessage]:
    return [
        SlackMessage(user="U-SAMPLE", text="Sample message", ts="0.000001"),
    ]


@adapter("slack", "get_channels", fallback=mock_channels)
async def get_channels(token: str, integration: Dict[str, Any], limit: int = 100) -> List[SlackChannel]:
    async with ProviderClient("slack", bearer(token)) as client:
        data = await _call(
            client,
            "conversations.list",
            {"limit": max(1, min(limit, 1000)), "exclude_archived": "true"},
        )
    return [
        SlackChannel(
            id=c["id"],
            name=c.get("name", ""),
            is_private=bool(c.get("is_private")),
            num_members=c.get("num_members") or 0,
            topic=(c.get("topic") or {}).get("value", ""),
        )
        for c in data.get("channels") or []
    ]


@adapter("slack", "get_messages", fallback=mock_messages)
async def get_messages(
    token: str,
    integration: Dict[str, Any],
    channel: str = "",
    limit: int = 20,
) -> List[SlackMessage]:
    if not channel:
        raise ProviderAPIError("slack get_messages needs a channel id", provider="slack")
    async with ProviderClient("slack", bearer(token)) as client:
        data = await _call(
            client,
            "conversations.history",
            {"channel": channel, "limit": max(1, min(limit, 200))},
        )
    return [
        SlackMessage(user=m.get("user"), text=m.get("text", ""), ts=m.get("ts", ""))
        for m in data.get("messages") or []
    ]
