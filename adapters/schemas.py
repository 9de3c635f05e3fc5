"""
Pydantic records returned by the data adapters.

Fields are snake_case in Python and camelCase on the wire
(``model_dump(by_alias=True)``), matching what the dashboard widgets read.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class Record(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ═══════════════════════════════════════════════════════════════════════════════
# Gmail
# ═══════════════════════════════════════════════════════════════════════════════


class GmailEmail(Record):
    id: str
    thread_id: str = ""
    subject: str = ""
    sender: str = Field(default="", alias="from")
    to: str = ""
    date: str = ""
    snippet: str = ""
    is_read: bool = True
    is_important: bool = False
    labels: List[str] = Field(default_factory=list)
    timestamp: int = 0


class EmailList(Record):
    emails: List[GmailEmail] = Field(default_factory=list)
    total_results: int = 0


class GmailStats(Record):
    total_emails: int = 0
    unread_emails: int = 0
    sent_emails: int = 0
    draft_emails: int = 0
    spam_emails: int = 0


class SenderCount(Record):
    sender: str
    count: int


class DailyCount(Record):
    date: str
    count: int


class GmailAnalysis(Record):
    total_emails: int = 0
    unread_count: int = 0
    important_count: int = 0
    top_senders: List[SenderCount] = Field(default_factory=list)
    email_trends: List[DailyCount] = Field(default_factory=list)
    priority_emails: List[GmailEmail] = Field(default_factory=list)


# ═══════════════════════════════════════════════════════════════════════════════
# Google Analytics / Calendar
# ═══════════════════════════════════════════════════════════════════════════════


class AnalyticsPoint(Record):
    date: str
    sessions: int = 0
    users: int = 0


class AnalyticsSummary(Record):
    sessions: int = 0
    users: int = 0
    pageviews: int = 0
    bounce_rate: float = 0.0
    last_updated: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    chart_data: List[AnalyticsPoint] = Field(default_factory=list)


class CalendarEvent(Record):
    id: str
    title: str = "Untitled Event"
    description: Optional[str] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    location: Optional[str] = None
    attendees: List[str] = Field(default_factory=list)


# ═══════════════════════════════════════════════════════════════════════════════
# Stripe / Shopify
# ═══════════════════════════════════════════════════════════════════════════════


class SalesPoint(Record):
    date: str
    revenue: float = 0.0
    orders: int = 0


class SalesData(Record):
    total_revenue: float = 0.0
    total_orders: int = 0
    average_order_value: float = 0.0
    currency: str = "usd"
    sales_trends: List[SalesPoint] = Field(default_factory=list)


class Customer(Record):
    id: str
    email: Optional[str] = None
    name: Optional[str] = None
    created: Optional[datetime] = None


class ShopifyOrder(Record):
    id: str
    name: str = ""
    total_price: float = 0.0
    currency: str = ""
    financial_status: Optional[str] = None
    customer_email: Optional[str] = None
    created_at: Optional[str] = None


class ShopifyProduct(Record):
    id: str
    title: str = ""
    status: Optional[str] = None
    vendor: Optional[str] = None
    product_type: Optional[str] = None
    total_inventory: int = 0


# ═══════════════════════════════════════════════════════════════════════════════
# GitHub / Slack
# ═══════════════════════════════════════════════════════════════════════════════


class Repository(Record):
    full_name: str
    description: Optional[str] = None
    language: Optional[str] = None
    stars: int = 0
    private: bool = False
    html_url: str = ""
    updated_at: Optional[str] = None


class Commit(Record):
    sha: str
    message: str = ""
    author: Optional[str] = None
    date: Optional[str] = None
    html_url: str = ""


class SlackChannel(Record):
    id: str
    name: str = ""
    is_private: bool = False
    num_members: int = 0
    topic: str = ""


class SlackMessage(Record):
    user: Optional[str] = None
    text: str = ""
    ts: str = ""


# ═══════════════════════════════════════════════════════════════════════════════
# Adapter result
# ═══════════════════════════════════════════════════════════════════════════════


class AdapterResult(Record):
    """
    Outcome of one adapter call.

    ``source`` tells live data from fallback data; ``error`` is set only for
    fallbacks and carries the error taxonomy name in ``error["type"]``.
    """

    provider: str
    action: str
    source: Literal["live", "fallback"]
    data: Any = None
    error: Optional[Dict[str, Any]] = None
    fetched_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def fell_back(self) -> bool:
        return self.source == "fallback"

    @property
    def reconnect_required(self) -> bool:
        return bool(self.error and self.error.get("type") == "auth_expired")
