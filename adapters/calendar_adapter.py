"""
Google Calendar adapter — upcoming events on the primary calendar.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List

from adapters import adapter
from adapters.base import ProviderClient, bearer
from adapters.schemas import CalendarEvent

_CALENDAR_API = "https://www.googleapis.com/calendar/v3/calendars/primary/events"


def parse_event(item: Dict[str, Any]) -> CalendarEvent:
    start = item.get("start") or {}
    end = item.get("end") or {}
    return CalendarEvent(
        id=item.get("id", ""),
        title=item.get("summary") or "Untitled Event",
        description=item.get("description"),
        # all-day events carry ``date`` instead of ``dateTime``
        start_time=start.get("dateTime") or start.get("date"),
        end_time=end.get("dateTime") or end.get("date"),
        location=item.get("location"),
        attendees=[a["email"] for a in item.get("attendees") or [] if a.get("email")],
    )


def mock_events() -> List[CalendarEvent]:
    base = datetime.now(timezone.utc).replace(hour=9, minute=0, second=0, microsecond=0)
    return [
        CalendarEvent(
            id="sample-standup",
            title="Team Standup",
            start_time=(base + timedelta(days=1)).isoformat(),
            end_time=(base + timedelta(days=1, minutes=15)).isoformat(),
            attendees=["team@company.com"],
        ),
        CalendarEvent(
            id="sample-review",
            title="Quarterly Review",
            location="Conference Room A",
            start_time=(base + timedelta(days=3, hours=5)).isoformat(),
            end_time=(base + timedelta(days=3, hours=6)).isoformat(),
        ),
    ]


@adapter("google-calendar", "list_events", fallback=mock_events)
async def list_events(
    token: str,
    integration: Dict[str, Any],
    max_results: int = 10,
    days_ahead: int = 7,
) -> List[CalendarEvent]:
    """Events starting between now and ``days_ahead`` days from now."""
    now = datetime.now(timezone.utc)
    async with ProviderClient("google-calendar", bearer(token)) as client:
        data = await client.get(
            _CALENDAR_API,
            params={
                "timeMin": now.isoformat(),
                "timeMax": (now + timedelta(days=days_ahead)).isoformat(),
                "maxResults": max(1, min(max_results, 250)),
                "singleEvents": "true",
                "orderBy": "startTime",
            },
        )
    return [parse_event(item) for item in data.get("items") or []]
