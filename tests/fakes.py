"""
In-memory stand-ins for the ShipStation, Shopify and UPS connectors plus
payload builders shaped like the real APIs.
"""
import asyncio
from datetime import datetime, timedelta

from shiprecon.models.shipment import Shipment


def run(coro):
    """Run an async coroutine in a sync test."""
    return asyncio.run(coro)


class FakeShipStation:
    def __init__(self, shipments=None, labels=None, orders=None, orders_by_number=None,
                 v2_shipments=None, failing_order_ids=(), failing_webhook=False):
        self.shipments = shipments or []
        self.labels = labels or []
        self.orders = orders or {}
        self.orders_by_number = orders_by_number or {}
        self.v2_shipments = v2_shipments or {}
        self.failing_order_ids = {str(i) for i in failing_order_ids}
        self.failing_webhook = failing_webhook
        self.calls = []

    async def fetch_shipments_from_webhook(self, resource_url):
        self.calls.append(("fetch_shipments", resource_url))
        if self.failing_webhook:
            raise RuntimeError("ShipStation unavailable")
        return list(self.shipments)

    async def fetch_labels_from_webhook(self, resource_url):
        self.calls.append(("fetch_labels", resource_url))
        return list(self.labels)

    async def get_order(self, order_id):
        self.calls.append(("get_order", str(order_id)))
        if str(order_id) in self.failing_order_ids:
            raise RuntimeError(f"order {order_id} lookup failed")
        return self.orders.get(str(order_id))

    async def find_orders_by_number(self, order_number):
        self.calls.append(("find_orders_by_number", order_number))
        return list(self.orders_by_number.get(order_number, []))

    async def get_shipment(self, shipment_id):
        self.calls.append(("get_shipment", shipment_id))
        if shipment_id not in self.v2_shipments:
            raise RuntimeError(f"shipment {shipment_id} not found")
        return self.v2_shipments[shipment_id]

    def count(self, name):
        return sum(1 for call in self.calls if call[0] == name)


class FakeShopify:
    def __init__(self, orders=None, failing=False):
        self.orders = orders or {}
        self.failing = failing
        self.calls = []

    async def get_order_with_cogs(self, shopify_order_id):
        self.calls.append(int(shopify_order_id))
        if self.failing:
            raise RuntimeError("Shopify unavailable")
        return self.orders.get(int(shopify_order_id))


def tracking_result(tracking_number, status="ok", delivery_status="in_transit",
                    scheduled=None, actual=None):
    return {
        "tracking_number": tracking_number,
        "status": status,
        "delivery_status": delivery_status,
        "scheduled_delivery": scheduled,
        "actual_delivery": actual,
        "last_activity": None,
    }


class FakeUPS:
    """Returns scripted results per tracking number; exceptions are raised."""

    def __init__(self, results=None):
        self.results = results or {}
        self.calls = []

    async def get_tracking_details(self, tracking_number):
        self.calls.append(tracking_number)
        result = self.results.get(tracking_number)
        if isinstance(result, Exception):
            raise result
        if result is None:
            return tracking_result(tracking_number, status="not_found", delivery_status="pending")
        return result


SHOPIFY_ORDER_ID = 6608984637748


def shopify_order_data(shopify_order_id=SHOPIFY_ORDER_ID, revenue=90.0, cogs=30.0, shipping=15.0):
    return {
        "shopify_order_id": shopify_order_id,
        "shopify_order_number": "#26276",
        "order_date": "2026-02-01T10:15:00-05:00",
        "customer_name": "Jane Doe",
        "customer_email": "jane@example.com",
        "line_items": [{"name": "Mealworms 1000ct", "sku": "MW-1000", "quantity": 2, "price": revenue / 2,
                        "cogs": cogs / 2 if cogs is not None else None}],
        "item_revenue": revenue,
        "total_cogs": cogs,
        "shipping_paid": shipping,
        "shipping_method": "UPS Ground",
        "order_total": (revenue or 0) + (shipping or 0),
    }


def legacy_order(order_id=555, order_number="26276", external_order_id=f"{SHOPIFY_ORDER_ID}-7587786555700",
                 order_key=None):
    order = {
        "orderId": order_id,
        "orderNumber": order_number,
        "orderKey": order_key or f"{SHOPIFY_ORDER_ID}",
    }
    if external_order_id is not None:
        order["externalOrderId"] = external_order_id
    return order


def legacy_shipment(tracking_number="1ZR1833C0001234567", order_id=555, order_number="26276",
                    shipment_id=111, voided=False, weight=(32, "ounces"), cost=12.5):
    return {
        "shipmentId": shipment_id,
        "orderId": order_id,
        "orderKey": f"{SHOPIFY_ORDER_ID}",
        "orderNumber": order_number,
        "trackingNumber": tracking_number,
        "carrierCode": "ups",
        "serviceCode": "ups_ground",
        "shipDate": "2026-02-01",
        "voided": voided,
        "shipmentCost": cost,
        "weight": {"value": weight[0], "units": weight[1]},
        "dimensions": {"length": 10, "width": 8, "height": 6, "units": "inches"},
        "shipTo": {
            "name": "Jane Doe",
            "city": "Austin",
            "state": "TX",
            "postalCode": "78701",
            "residential": True,
        },
    }


def v2_label(tracking_number="1ZR1833C0001234567", shipment_id="se-901", label_id="se-lbl-1",
             voided=False):
    return {
        "label_id": label_id,
        "status": "voided" if voided else "completed",
        "shipment_id": shipment_id,
        "ship_date": "2026-02-01T00:00:00Z",
        "tracking_number": tracking_number,
        "carrier_code": "ups",
        "service_code": "ups_ground",
        "voided": voided,
        "shipment_cost": {"currency": "usd", "amount": 12.5},
    }


def v2_shipment(shipment_id="se-901", shipment_number="26276",
                external_shipment_id=f"{SHOPIFY_ORDER_ID}-7587786555700"):
    return {
        "shipment_id": shipment_id,
        "shipment_number": shipment_number,
        "external_shipment_id": external_shipment_id,
        "ship_to": {
            "name": "Jane Doe",
            "city_locality": "Austin",
            "state_province": "TX",
            "postal_code": "78701",
            "address_residential_indicator": "yes",
        },
        "packages": [{
            "weight": {"value": 2, "unit": "pound"},
            "dimensions": {"unit": "inch", "length": 10, "width": 8, "height": 6},
        }],
    }


def make_shipment(db, tracking_number, **fields):
    values = {
        "tracking_number": tracking_number,
        "carrier_code": "ups",
        "ship_date": datetime.utcnow() - timedelta(days=2),
        "delivery_status": "pending",
        "is_voided": False,
    }
    values.update(fields)
    shipment = Shipment(**values)
    db.add(shipment)
    db.commit()
    db.refresh(shipment)
    return shipment
