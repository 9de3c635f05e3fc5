"""
Shopify adapters — recent orders and the product catalogue.

Requests go to the shop recorded at connect time (``integration["shop"]``)
and authenticate with the ``X-Shopify-Access-Token`` header.
"""

from __future__ import annotations

from typing import Any, Dict, List

from adapters import adapter
from adapters.base import ProviderClient
from adapters.schemas import ShopifyOrder, ShopifyProduct
from connectors.errors import ProviderAPIError

API_VERSION = "2024-01"


def _shop_api(integration: Dict[str, Any]) -> str:
    shop = integration.get("shop")
    if not shop:
        raise ProviderAPIError("No shop recorded for this integration", provider="shopify")
    return f"https://{shop}.myshopify.com/admin/api/{API_VERSION}"


def _price(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def parse_order(item: Dict[str, Any]) -> ShopifyOrder:
    return ShopifyOrder(
        id=str(item.get("id", "")),
        name=item.get("name", ""),
        total_price=_price(item.get("total_price")),
        currency=item.get("currency", ""),
        financial_status=item.get("financial_status"),
        customer_email=item.get("email"),
        created_at=item.get("created_at"),
    )


def parse_product(item: Dict[str, Any]) -> ShopifyProduct:
    return ShopifyProduct(
        id=str(item.get("id", "")),
        title=item.get("title", ""),
        status=item.get("status"),
        vendor=item.get("vendor"),
        product_type=item.get("product_type"),
        total_inventory=sum(v.get("inventory_quantity") or 0 for v in item.get("variants") or []),
    )


def mock_orders() -> List[ShopifyOrder]:
    return [
        ShopifyOrder(id="sample-1001", name="#1001", total_price=89.5, currency="USD", financial_status="paid"),
        ShopifyOrder(id="sample-1002", name="#1002", total_price=42.0, currency="USD", financial_status="pending"),
    ]


def mock_products() -> List[ShopifyProduct]:
    return [
        ShopifyProduct(id="sample-1", title="Sample Product", status="active", total_inventory=120),
    ]


@adapter("shopify", "get_orders", fallback=mock_orders)
async def get_orders(
    token: str,
    integration: Dict[str, Any],
    limit: int = 50,
    status: str = "any",
) -> List[ShopifyOrder]:
    base = _shop_api(integration)
    async with ProviderClient("shopify", {"X-Shopify-Access-Token": token}) as client:
        data = await client.get(
            f"{base}/orders.json",
            params={"limit": max(1, min(limit, 250)), "status": status},
        )
    return [parse_order(item) for item in data.get("orders") or []]


@adapter("shopify", "get_products", fallback=mock_products)
async def get_products(token: str, integration: Dict[str, Any], limit: int = 50) -> List[ShopifyProduct]:
    base = _shop_api(integration)
    async with ProviderClient("shopify", {"X-Shopify-Access-Token": token}) as client:
        data = await client.get(f"{base}/products.json", params={"limit": max(1, min(limit, 250))})
    return [parse_product(item) for item in data.get("products") or []]
