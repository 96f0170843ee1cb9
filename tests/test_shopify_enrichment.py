"""
Shopify order enrichment: cost-of-goods aggregation and order listing.
"""
import pytest

from shiprecon.connectors.base_connector import ApiError, ApiResponse
from shiprecon.connectors.shopify_connector import ShopifyConnector, parse_next_link
from shiprecon.utils.rate_limiter import RateLimiter

from fakes import run

ORDER_ID = 6608984637748


class ScriptedShopify(ShopifyConnector):
    """Routes requests by path suffix to canned responses."""

    def __init__(self, routes):
        super().__init__(
            store_url="feeders.myshopify.com",
            access_token="shpat_test",
            api_version="2024-10",
            limiter=RateLimiter(0),
        )
        self.routes = routes
        self.requested = []

    async def _request_json(self, method, url, **kwargs):
        self.requested.append((url, kwargs.get("params")))
        for suffix, response in self.routes.items():
            if url.endswith(suffix):
                if callable(response):
                    return response(url, kwargs)
                return response
        return ApiResponse(404, {"errors": "Not Found"}, {})


def order_payload(line_items, shipping_lines=None):
    return {
        "order": {
            "id": ORDER_ID,
            "name": "#26276",
            "created_at": "2026-02-01T10:15:00-05:00",
            "email": "fallback@example.com",
            "total_price": "101.50",
            "customer": {"first_name": "Jane", "last_name": "Doe", "email": "jane@example.com"},
            "line_items": line_items,
            "shipping_lines": shipping_lines if shipping_lines is not None else [
                {"title": "UPS Ground", "price": "9.00"},
                {"title": "Handling", "price": "2.50"},
            ],
        }
    }


def ok(body):
    return ApiResponse(200, body, {})


class TestGetOrderWithCogs:

    def test_aggregates_revenue_cogs_and_shipping(self):
        shopify = ScriptedShopify({
            f"/orders/{ORDER_ID}.json": ok(order_payload([
                {"name": "Mealworms", "sku": "MW", "quantity": 2, "price": "25.00", "variant_id": 11},
                {"name": "Crickets", "sku": "CR", "quantity": 1, "price": "40.00", "variant_id": 22},
            ])),
            "/variants/11.json": ok({"variant": {"id": 11, "inventory_item_id": 111}}),
            "/variants/22.json": ok({"variant": {"id": 22, "inventory_item_id": 222}}),
            "/inventory_items/111.json": ok({"inventory_item": {"id": 111, "cost": "8.00"}}),
            "/inventory_items/222.json": ok({"inventory_item": {"id": 222, "cost": "15.50"}}),
        })

        result = run(shopify.get_order_with_cogs(ORDER_ID))

        assert result["shopify_order_id"] == ORDER_ID
        assert result["shopify_order_number"] == "#26276"
        assert result["item_revenue"] == pytest.approx(90.0)
        assert result["total_cogs"] == pytest.approx(2 * 8.0 + 15.5)
        assert result["shipping_paid"] == pytest.approx(11.5)
        assert result["shipping_method"] == "UPS Ground"
        assert result["order_total"] == pytest.approx(101.5)
        assert result["customer_name"] == "Jane Doe"
        assert result["customer_email"] == "jane@example.com"
        assert [li["cogs"] for li in result["line_items"]] == [8.0, 15.5]

    def test_missing_cost_contributes_nothing(self):
        shopify = ScriptedShopify({
            f"/orders/{ORDER_ID}.json": ok(order_payload([
                {"name": "Mealworms", "quantity": 2, "price": "25.00", "variant_id": 11},
                {"name": "Gift card", "quantity": 1, "price": "40.00", "variant_id": None},
                {"name": "Crickets", "quantity": 1, "price": "10.00", "variant_id": 33},
            ])),
            "/variants/11.json": ok({"variant": {"inventory_item_id": 111}}),
            "/inventory_items/111.json": ok({"inventory_item": {"cost": "8.00"}}),
            "/variants/33.json": ApiResponse(500, None, {}),
        })

        result = run(shopify.get_order_with_cogs(ORDER_ID))

        assert result["total_cogs"] == pytest.approx(16.0)
        assert result["item_revenue"] == pytest.approx(100.0)
        assert [li["cogs"] for li in result["line_items"]] == [8.0, None, None]

    def test_total_cogs_none_when_no_costs_resolve(self):
        shopify = ScriptedShopify({
            f"/orders/{ORDER_ID}.json": ok(order_payload(
                [{"name": "Mealworms", "quantity": 2, "price": "25.00", "variant_id": 11}],
                shipping_lines=[],
            )),
            "/variants/11.json": ok({"variant": {"inventory_item_id": 111}}),
            "/inventory_items/111.json": ok({"inventory_item": {"cost": None}}),
        })

        result = run(shopify.get_order_with_cogs(ORDER_ID))

        assert result["total_cogs"] is None
        assert result["shipping_paid"] == 0
        assert result["shipping_method"] is None

    def test_customer_name_falls_back_to_shipping_address(self):
        payload = order_payload([])
        payload["order"]["customer"] = None
        payload["order"]["shipping_address"] = {"name": "Front Desk"}
        shopify = ScriptedShopify({f"/orders/{ORDER_ID}.json": ok(payload)})

        result = run(shopify.get_order_with_cogs(ORDER_ID))

        assert result["customer_name"] == "Front Desk"
        assert result["customer_email"] == "fallback@example.com"

    def test_order_not_found_returns_none(self):
        shopify = ScriptedShopify({})
        assert run(shopify.get_order_with_cogs(ORDER_ID)) is None

    def test_server_error_raises(self):
        shopify = ScriptedShopify({f"/orders/{ORDER_ID}.json": ApiResponse(502, None, {})})
        with pytest.raises(ApiError):
            run(shopify.get_order_with_cogs(ORDER_ID))


class TestListOrders:

    def test_follows_next_links_until_exhausted(self):
        page2 = "https://feeders.myshopify.com/admin/api/2024-10/orders.json?page_info=abc&limit=250"

        def first_or_second(url, kwargs):
            if "page_info" in url:
                return ApiResponse(200, {"orders": [{"id": 3}]}, {})
            return ApiResponse(
                200,
                {"orders": [{"id": 1}, {"id": 2}]},
                {"Link": f'<{page2}>; rel="next"'},
            )

        shopify = ScriptedShopify({"orders.json": first_or_second, "limit=250": first_or_second})

        orders = run(shopify.list_orders(created_at_min="2026-01-01"))

        assert [o["id"] for o in orders] == [1, 2, 3]
        assert shopify.requested[0][1]["created_at_min"] == "2026-01-01"
        assert shopify.requested[1] == (page2, None)


def test_parse_next_link():
    header = (
        '<https://s.myshopify.com/admin/api/2024-10/orders.json?page_info=prev>; rel="previous", '
        '<https://s.myshopify.com/admin/api/2024-10/orders.json?page_info=next>; rel="next"'
    )
    assert parse_next_link(header).endswith("page_info=next")
    assert parse_next_link('<https://x/orders.json?page_info=prev>; rel="previous"') is None
    assert parse_next_link(None) is None
