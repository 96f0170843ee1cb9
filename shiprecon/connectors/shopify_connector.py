"""
Shopify Admin REST connector
Fetches orders and resolves per-line-item cost of goods from inventory items.
"""
from typing import Any, Dict, List, Optional
import asyncio
import re
from shiprecon.connectors.base_connector import BaseConnector
from shiprecon.config import get_settings
from shiprecon.utils.logger import log
from shiprecon.utils.rate_limiter import RateLimiter, shopify_limiter

settings = get_settings()

_NEXT_LINK_RE = re.compile(r'<([^>]+)>\s*;\s*rel="?next"?')


def parse_next_link(link_header: Optional[str]) -> Optional[str]:
    """Return the rel="next" URL from a Shopify Link header, if any."""
    if not link_header:
        return None
    match = _NEXT_LINK_RE.search(link_header)
    return match.group(1) if match else None


def _to_float(value) -> float:
    try:
        return float(value or 0)
    except (TypeError, ValueError):
        return 0.0


class ShopifyConnector(BaseConnector):
    """Connector for Shopify e-commerce platform"""

    REQUEST_TIMEOUT = 15

    def __init__(
        self,
        store_url: Optional[str] = None,
        access_token: Optional[str] = None,
        api_version: Optional[str] = None,
        limiter: Optional[RateLimiter] = None,
    ):
        super().__init__("Shopify")
        store = (store_url if store_url is not None else settings.shopify_store_url)
        store = store.replace("https://", "").replace("http://", "").rstrip("/")
        version = api_version or settings.shopify_api_version
        self.base_url = f"https://{store}/admin/api/{version}"
        self.headers = {
            "X-Shopify-Access-Token": access_token if access_token is not None else settings.shopify_access_token,
            "Content-Type": "application/json",
        }
        self.limiter = limiter or shopify_limiter

    async def _get(self, url: str, params: Optional[Dict[str, Any]] = None):
        await self.limiter.wait()
        return await self._request_json("GET", url, headers=self.headers, params=params)

    async def get_order(self, shopify_order_id) -> Optional[Dict]:
        """
        Get a Shopify order by its numeric ID (e.g. 6608984637748).

        Returns None when Shopify reports 404; other failures raise.
        """
        url = f"{self.base_url}/orders/{shopify_order_id}.json"
        response = await self._get(url)
        if response.status == 404:
            log.warning(f"Shopify order {shopify_order_id} not found")
            return None
        self._raise_for_status(response, url)
        return (response.data or {}).get("order")

    async def get_variant(self, variant_id) -> Optional[Dict]:
        url = f"{self.base_url}/variants/{variant_id}.json"
        response = await self._get(url)
        self._raise_for_status(response, url)
        return (response.data or {}).get("variant")

    async def get_inventory_item_cost(self, inventory_item_id) -> Optional[float]:
        """Unit cost recorded on an inventory item, or None when unavailable."""
        url = f"{self.base_url}/inventory_items/{inventory_item_id}.json"
        try:
            response = await self._get(url)
            self._raise_for_status(response, url)
        except Exception as e:
            log.warning(f"Failed to fetch inventory item cost for {inventory_item_id}: {e}")
            return None
        cost = ((response.data or {}).get("inventory_item") or {}).get("cost")
        if cost in (None, ""):
            return None
        try:
            return float(cost)
        except (TypeError, ValueError):
            log.warning(f"Inventory item {inventory_item_id} has non-numeric cost {cost!r}")
            return None

    async def _line_item_cost(self, item: Dict) -> Optional[float]:
        """Resolve unit cost for a line item: variant -> inventory item -> cost."""
        variant_id = item.get("variant_id")
        if not variant_id:
            return None
        try:
            variant = await self.get_variant(variant_id)
            inventory_item_id = (variant or {}).get("inventory_item_id")
            if not inventory_item_id:
                log.warning(f"Variant {variant_id} has no inventory item")
                return None
            cost = await self.get_inventory_item_cost(inventory_item_id)
        except Exception as e:
            log.warning(f"Could not look up COGS for variant {variant_id}: {e}")
            return None
        if cost is None:
            log.warning(f"No cost recorded for variant {variant_id}")
        return cost

    async def get_order_with_cogs(self, shopify_order_id) -> Optional[Dict]:
        """
        Fetch an order and compute its cost basis.

        Line item cost lookups run concurrently (each still passes through the
        Shopify limiter). Items without a resolvable cost contribute nothing;
        total_cogs is None when no item resolved a cost.
        """
        order = await self.get_order(shopify_order_id)
        if not order:
            return None

        raw_items = order.get("line_items") or []
        costs = await asyncio.gather(*(self._line_item_cost(item) for item in raw_items))

        line_items = []
        total_cogs = 0.0
        any_cost = False
        for item, cost in zip(raw_items, costs):
            quantity = item.get("quantity") or 0
            line_items.append({
                "name": item.get("name"),
                "sku": item.get("sku"),
                "quantity": quantity,
                "price": _to_float(item.get("price")),
                "cogs": cost,
                "variant_id": item.get("variant_id"),
                "product_id": item.get("product_id"),
            })
            if cost is not None:
                total_cogs += cost * quantity
                any_cost = True

        shipping_lines = order.get("shipping_lines") or []
        shipping_paid = sum(_to_float(line.get("price")) for line in shipping_lines)
        shipping_method = shipping_lines[0].get("title") if shipping_lines else None

        customer = order.get("customer") or {}
        customer_name = f"{customer.get('first_name') or ''} {customer.get('last_name') or ''}".strip()
        if not customer_name:
            customer_name = (order.get("shipping_address") or {}).get("name")

        total_price = order.get("total_price")

        return {
            "shopify_order_id": order.get("id"),
            "shopify_order_number": order.get("name"),  # e.g. "#26276"
            "order_date": order.get("created_at"),
            "customer_name": customer_name,
            "customer_email": customer.get("email") or order.get("email"),
            "line_items": line_items,
            "item_revenue": sum(li["price"] * li["quantity"] for li in line_items),
            "total_cogs": total_cogs if any_cost else None,
            "shipping_paid": shipping_paid,
            "shipping_method": shipping_method,
            "order_total": float(total_price) if total_price not in (None, "") else None,
        }

    async def list_orders(self, max_pages: Optional[int] = None, **params) -> List[Dict]:
        """
        List orders, following the Link: rel="next" cursor until exhausted.

        Keyword arguments are passed as query parameters on the first page
        only; subsequent pages use the cursor URL as given.
        """
        query = {"limit": 250, "status": "any"}
        query.update(params)

        url = f"{self.base_url}/orders.json"
        orders: List[Dict] = []
        pages = 0

        while url:
            response = await self._get(url, params=query)
            self._raise_for_status(response, url)
            orders.extend((response.data or {}).get("orders") or [])
            pages += 1
            if max_pages and pages >= max_pages:
                break

            link = next((v for k, v in response.headers.items() if k.lower() == "link"), None)
            url = parse_next_link(link)
            query = None

        log.info(f"Fetched {len(orders)} Shopify orders over {pages} page(s)")
        return orders
