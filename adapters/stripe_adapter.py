"""
Stripe adapters — 30-day sales summary and recent customers.

Amounts arrive in the currency's minor unit; revenue is net of refunds
and counts only succeeded charges.
"""

from __future__ import annotations

from collections import defaultdict
from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List

from adapters import adapter
from adapters.base import ProviderClient, bearer
from adapters.schemas import Customer, SalesData, SalesPoint

_STRIPE_API = "https://api.stripe.com/v1"


def summarize_charges(charges: Iterable[Dict[str, Any]]) -> SalesData:
    revenue_by_day: Dict[str, float] = defaultdict(float)
    orders_by_day: Dict[str, int] = defaultdict(int)
    total_revenue = 0.0
    total_orders = 0
    currency = "usd"

    for charge in charges:
        if charge.get("status") != "succeeded":
            continue
        net = (charge.get("amount", 0) - charge.get("amount_refunded", 0)) / 100
        day = datetime.fromtimestamp(charge.get("created", 0), tz=timezone.utc).date().isoformat()
        revenue_by_day[day] += net
        orders_by_day[day] += 1
        total_revenue += net
        total_orders += 1
        currency = charge.get("currency") or currency

    return SalesData(
        total_revenue=round(total_revenue, 2),
        total_orders=total_orders,
        average_order_value=round(total_revenue / total_orders, 2) if total_orders else 0.0,
        currency=currency,
        sales_trends=[
            SalesPoint(date=d, revenue=round(revenue_by_day[d], 2), orders=orders_by_day[d])
            for d in sorted(revenue_by_day)
        ],
    )


def mock_sales_data() -> SalesData:
    today = date.today()
    trends = [
        SalesPoint(
            date=(today - timedelta(days=29 - i)).isoformat(),
            revenue=float(1200 + (i * 173) % 900),
            orders=10 + (i * 7) % 12,
        )
        for i in range(30)
    ]
    revenue = sum(p.revenue for p in trends)
    orders = sum(p.orders for p in trends)
    return SalesData(
        total_revenue=revenue,
        total_orders=orders,
        average_order_value=round(revenue / orders, 2),
        sales_trends=trends,
    )


def mock_customers() -> List[Customer]:
    return [
        Customer(id="cus_sample_1", email="jane@example.com", name="Jane Cooper"),
        Customer(id="cus_sample_2", email="alex@example.com", name="Alex Morgan"),
    ]


@adapter("stripe", "get_sales_data", fallback=mock_sales_data)
async def get_sales_data(token: str, integration: Dict[str, Any], days: int = 30) -> SalesData:
    since = datetime.now(timezone.utc) - timedelta(days=days)
    async with ProviderClient("stripe", bearer(token)) as client:
        data = await client.get(
            f"{_STRIPE_API}/charges",
            params={"limit": 100, "created[gte]": int(since.timestamp())},
        )
    return summarize_charges(data.get("data") or [])


@adapter("stripe", "get_customers", fallback=mock_customers)
async def get_customers(token: str, integration: Dict[str, Any], limit: int = 20) -> List[Customer]:
    async with ProviderClient("stripe", bearer(token)) as client:
        data = await client.get(f"{_STRIPE_API}/customers", params={"limit": max(1, min(limit, 100))})
    return [
        Customer(
            id=c["id"],
            email=c.get("email"),
            name=c.get("name"),
            created=datetime.fromtimestamp(c["created"], tz=timezone.utc) if c.get("created") else None,
        )
        for c in data.get("data") or []
    ]
