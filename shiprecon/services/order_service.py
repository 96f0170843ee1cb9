"""
Order persistence and multi-package cost splitting
"""
from typing import Any, Dict, Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from shiprecon.models.order import Order
from shiprecon.models.shipment import Shipment
from shiprecon.utils.helpers import parse_datetime, safe_divide
from shiprecon.utils.logger import log

# Fields merged on conflict: a new non-null value wins, null keeps the old one
MERGE_FIELDS = (
    "shopify_order_number",
    "shipstation_order_number",
    "order_date",
    "customer_name",
    "customer_email",
    "items_json",
    "item_revenue",
    "total_cogs",
    "shipping_paid_by_customer",
    "shipping_method_selected",
    "order_total",
)


class OrderService:
    """Keyed upserts on orders and recomputation of per-package splits."""

    def __init__(self, db: Session):
        self.db = db

    def find_by_shopify_id(self, shopify_order_id: int) -> Optional[Order]:
        return self.db.query(Order).filter(Order.shopify_order_id == shopify_order_id).first()

    def upsert(self, data: Dict[str, Any]) -> Order:
        """
        Create or merge an order keyed by shopify_order_id.

        Existing non-null values are preserved when the incoming value is None.
        The Chewy flag is only ever raised, never cleared.
        """
        shopify_order_id = int(data["shopify_order_id"])
        values = dict(data)
        if "order_date" in values:
            values["order_date"] = parse_datetime(values["order_date"])

        order = self.find_by_shopify_id(shopify_order_id)
        if order is None:
            order = Order(
                shopify_order_id=shopify_order_id,
                is_chewy_order=bool(values.get("is_chewy_order")),
                **{k: values.get(k) for k in MERGE_FIELDS},
            )
            self.db.add(order)
            try:
                self.db.commit()
            except IntegrityError:
                # Concurrent insert of the same order; merge into the winner
                self.db.rollback()
                order = self.find_by_shopify_id(shopify_order_id)
                self._merge(order, values)
                self.db.commit()
        else:
            self._merge(order, values)
            self.db.commit()

        self.db.refresh(order)
        return order

    @staticmethod
    def _merge(order: Order, values: Dict[str, Any]):
        for key in MERGE_FIELDS:
            if values.get(key) is not None:
                setattr(order, key, values[key])
        if values.get("is_chewy_order"):
            order.is_chewy_order = True

    def update_package_count(self, order_id: int) -> int:
        """
        Recount an order's non-voided shipments and re-split its totals.

        Every non-voided shipment gets total / package_count for revenue,
        COGS and customer-paid shipping (None where the total is None).
        Voided shipments have their splits cleared. Runs as one transaction.
        """
        try:
            order = self.db.query(Order).filter(Order.id == order_id).first()
            if order is None:
                log.warning(f"Cannot update package count: order {order_id} not found")
                return 0

            package_count = (
                self.db.query(func.count(Shipment.id))
                .filter(Shipment.order_id == order_id, Shipment.is_voided.is_(False))
                .scalar()
            ) or 0

            order.package_count = package_count
            is_multi = package_count > 1
            split_revenue = safe_divide(order.item_revenue, package_count)
            split_cogs = safe_divide(order.total_cogs, package_count)
            split_shipping = safe_divide(order.shipping_paid_by_customer, package_count)

            shipments = self.db.query(Shipment).filter(Shipment.order_id == order_id).all()
            for shipment in shipments:
                if shipment.is_voided:
                    shipment.split_revenue = None
                    shipment.split_cogs = None
                    shipment.split_shipping_paid = None
                    continue
                shipment.is_multi_package = is_multi
                shipment.split_revenue = split_revenue
                shipment.split_cogs = split_cogs
                shipment.split_shipping_paid = split_shipping

            self.db.commit()
        except Exception as e:
            self.db.rollback()
            log.error(f"Failed to update package count for order {order_id}: {e}")
            raise

        log.info(f"Updated package count for order {order_id}: {package_count} package(s)")
        return package_count
