"""
Google Analytics adapter — 30-day traffic summary from the GA4 Data API.

The GA4 property id is taken from the call parameters or, failing that,
from ``property_id`` in the integration's config.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from adapters import adapter
from adapters.base import ProviderClient, bearer
from adapters.schemas import AnalyticsPoint, AnalyticsSummary
from connectors.errors import ProviderAPIError

_GA_DATA_API = "https://analyticsdata.googleapis.com/v1beta"
_METRICS = ["sessions", "totalUsers", "screenPageViews", "bounceRate"]


def _iso_day(value: str) -> str:
    """GA4 reports dates as ``YYYYMMDD``."""
    if len(value) == 8 and value.isdigit():
        return f"{value[:4]}-{value[4:6]}-{value[6:]}"
    return value


def _number(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def summarize_report(report: Dict[str, Any]) -> AnalyticsSummary:
    """Collapse a ``runReport`` response (one row per day) into a summary."""
    headers = [m.get("name") for m in report.get("metricHeaders", [])] or _METRICS
    points: List[AnalyticsPoint] = []
    sessions = users = pageviews = 0
    weighted_bounce = 0.0

    for row in report.get("rows", []):
        values = {
            name: _number(v.get("value"))
            for name, v in zip(headers, row.get("metricValues", []))
        }
        day = _iso_day((row.get("dimensionValues") or [{}])[0].get("value", ""))
        day_sessions = int(values.get("sessions", 0))
        day_users = int(values.get("totalUsers", 0))
        sessions += day_sessions
        users += day_users
        pageviews += int(values.get("screenPageViews", 0))
        weighted_bounce += values.get("bounceRate", 0.0) * day_sessions
        points.append(AnalyticsPoint(date=day, sessions=day_sessions, users=day_users))

    points.sort(key=lambda p: p.date)
    bounce_rate = (weighted_bounce / sessions * 100) if sessions else 0.0
    return AnalyticsSummary(
        sessions=sessions,
        users=users,
        pageviews=pageviews,
        bounce_rate=round(bounce_rate, 1),
        chart_data=points,
    )


def mock_analytics() -> AnalyticsSummary:
    today = date.today()
    return AnalyticsSummary(
        sessions=12580,
        users=8420,
        pageviews=24560,
        bounce_rate=42.3,
        last_updated=datetime.now(timezone.utc),
        chart_data=[
            AnalyticsPoint(
                date=(today - timedelta(days=29 - i)).isoformat(),
                sessions=300 + (i * 37) % 200,
                users=200 + (i * 23) % 100,
            )
            for i in range(30)
        ],
    )


@adapter("google-analytics", "get_analytics", fallback=mock_analytics)
async def get_analytics(
    token: str,
    integration: Dict[str, Any],
    property_id: Optional[str] = None,
    start_date: str = "30daysAgo",
    end_date: str = "today",
) -> AnalyticsSummary:
    """Sessions, users, page views and bounce rate with a daily chart."""
    property_id = property_id or integration.get("property_id")
    if not property_id:
        raise ProviderAPIError(
            "No GA4 property configured; set property_id on the integration", provider="google-analytics"
        )

    async with ProviderClient("google-analytics", bearer(token)) as client:
        report = await client.post(
            f"{_GA_DATA_API}/properties/{property_id}:runReport",
            json={
                "dateRanges": [{"startDate": start_date, "endDate": end_date}],
                "dimensions": [{"name": "date"}],
                "metrics": [{"name": m} for m in _METRICS],
            },
        )
    return summarize_report(report)
