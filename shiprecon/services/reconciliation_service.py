"""
Shipment Reconciliation Service

Turns ShipStation webhook notifications into Order and Shipment rows:
dedup by tracking number, link to the Shopify order, enrich the order with
cost of goods, upsert the shipment, re-split order totals across packages,
and fetch a promised delivery date from UPS when one is available.
"""
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from shiprecon.models.order import Order
from shiprecon.services.order_service import OrderService
from shiprecon.services.shipment_normalizer import (
    CanonicalShipmentEvent,
    Dimensions,
    ShipmentNormalizer,
    WebhookNotification,
    normalize_event,
)
from shiprecon.services.shipment_service import ShipmentService
from shiprecon.utils.logger import log
from shiprecon.utils.ups_account import get_ups_account_type, is_chewy_order, is_ups_tracking

OUTCOME_CREATED = "created"
OUTCOME_UPDATED = "updated"
OUTCOME_DUPLICATE = "duplicate"
OUTCOME_VOIDED = "voided"
OUTCOME_SKIPPED = "skipped"
OUTCOME_EXTERNAL_MARKETPLACE = "external_marketplace"

OUTCOMES = (
    OUTCOME_CREATED,
    OUTCOME_UPDATED,
    OUTCOME_DUPLICATE,
    OUTCOME_VOIDED,
    OUTCOME_SKIPPED,
    OUTCOME_EXTERNAL_MARKETPLACE,
)


class ReconciliationService:
    """Processes ShipStation shipment events against the local database."""

    def __init__(self, db: Session, shipstation, shopify, ups, normalizer: Optional[ShipmentNormalizer] = None):
        self.db = db
        self.shipstation = shipstation
        self.shopify = shopify
        self.ups = ups
        self.normalizer = normalizer or ShipmentNormalizer(shipstation)
        self.orders = OrderService(db)
        self.shipments = ShipmentService(db)

    async def process_notification(self, notification: WebhookNotification) -> Dict[str, int]:
        """
        Process every shipment a webhook points at, one at a time.

        A failure in one shipment is logged and counted; the rest of the
        batch still runs. Failure to fetch the batch itself propagates.
        """
        counts = {"received": 0, "failed": 0}
        counts.update({outcome: 0 for outcome in OUTCOMES})

        raw_events = await self.normalizer.fetch_events(notification)
        counts["received"] = len(raw_events)

        for raw in raw_events:
            tracking_number = None
            try:
                event = normalize_event(raw)
                tracking_number = event.tracking_number
                outcome = await self.process_one_shipment(event)
                counts[outcome] += 1
            except Exception as e:
                counts["failed"] += 1
                self.db.rollback()
                log.error(f"Error processing shipment {tracking_number}: {e}")

        log.info(f"Processed {notification.resource_type} notification: {counts}")
        return counts

    async def process_one_shipment(self, event: CanonicalShipmentEvent) -> str:
        """Reconcile a single canonical shipment event; returns the outcome."""
        tracking_number = event.tracking_number

        if event.voided:
            return self._handle_void(event)

        if not tracking_number:
            log.warning(f"Shipment {event.shipment_id} has no tracking number, skipping")
            return OUTCOME_SKIPPED

        existing = self.shipments.find_by_tracking_number(tracking_number)
        if existing is not None and not existing.is_voided and existing.order_id is not None:
            log.info(f"Shipment {tracking_number} already linked to order {existing.order_id}, skipping")
            return OUTCOME_DUPLICATE

        event = await self.normalizer.resolve_order_link(event)
        chewy = is_chewy_order(event.order_number)

        log.info(
            f"Processing shipment {tracking_number} (order {event.order_number}, "
            f"carrier {event.carrier_code}, shopify {event.shopify_order_id})"
        )

        order = await self._upsert_order(event, chewy)

        if chewy:
            log.info(f"Chewy order {event.order_number}: skipping shipment record for {tracking_number}")
            return OUTCOME_EXTERNAL_MARKETPLACE

        shipment, created = self.shipments.upsert(self._shipment_values(event, order))
        log.info(
            f"{'Created' if created else 'Updated'} shipment {shipment.id} "
            f"({tracking_number}, {event.carrier_code}/{event.service_code}, cost {event.cost})"
        )

        if order is not None:
            self.orders.update_package_count(order.id)

        await self._fetch_promised_date(tracking_number)

        return OUTCOME_CREATED if created else OUTCOME_UPDATED

    def _handle_void(self, event: CanonicalShipmentEvent) -> str:
        tracking_number = event.tracking_number
        if not tracking_number:
            log.warning(f"Voided shipment {event.shipment_id} has no tracking number")
            return OUTCOME_SKIPPED

        shipment = self.shipments.mark_voided(tracking_number)
        if shipment is None:
            log.info(f"Voided label {tracking_number} was never recorded")
        else:
            log.info(f"Marked shipment {tracking_number} voided")
            if shipment.order_id is not None:
                self.orders.update_package_count(shipment.order_id)
        return OUTCOME_VOIDED

    async def _upsert_order(self, event: CanonicalShipmentEvent, chewy: bool) -> Optional[Order]:
        shopify_order_id = event.shopify_order_id
        if shopify_order_id is None:
            log.warning(f"No Shopify order linked for shipment {event.tracking_number}")
            return None

        order = self.orders.find_by_shopify_id(shopify_order_id)
        if order is not None:
            renumbered = event.order_number and order.shipstation_order_number != event.order_number
            if renumbered or (chewy and not order.is_chewy_order):
                order = self.orders.upsert({
                    "shopify_order_id": shopify_order_id,
                    "shipstation_order_number": event.order_number,
                    "is_chewy_order": chewy,
                })
            return order

        try:
            shopify_data = await self.shopify.get_order_with_cogs(shopify_order_id)
        except Exception as e:
            log.error(f"Failed to enrich order {shopify_order_id} from Shopify, creating basic order: {e}")
            return self.orders.upsert({
                "shopify_order_id": shopify_order_id,
                "shipstation_order_number": event.order_number,
                "is_chewy_order": chewy,
            })

        if not shopify_data:
            log.warning(f"Shopify order {shopify_order_id} not found, shipment will be unlinked")
            return None

        order = self.orders.upsert({
            "shopify_order_id": shopify_data.get("shopify_order_id") or shopify_order_id,
            "shopify_order_number": shopify_data.get("shopify_order_number"),
            "shipstation_order_number": event.order_number,
            "order_date": shopify_data.get("order_date"),
            "customer_name": shopify_data.get("customer_name"),
            "customer_email": shopify_data.get("customer_email"),
            "items_json": shopify_data.get("line_items"),
            "item_revenue": shopify_data.get("item_revenue"),
            "total_cogs": shopify_data.get("total_cogs"),
            "shipping_paid_by_customer": shopify_data.get("shipping_paid"),
            "shipping_method_selected": shopify_data.get("shipping_method"),
            "order_total": shopify_data.get("order_total"),
            "is_chewy_order": chewy,
        })
        log.info(
            f"Created order {order.id} ({order.shopify_order_number}) with COGS {shopify_data.get('total_cogs')}"
        )
        return order

    @staticmethod
    def _shipment_values(event: CanonicalShipmentEvent, order: Optional[Order]) -> Dict[str, Any]:
        dims = event.dimensions or Dimensions()
        return {
            "order_id": order.id if order is not None else None,
            "shipstation_shipment_id": event.shipment_id,
            "shipstation_label_id": event.label_id,
            "tracking_number": event.tracking_number,
            "carrier_code": event.carrier_code,
            "service_code": event.service_code,
            "ups_account_type": get_ups_account_type(event.tracking_number),
            "ship_date": event.ship_date,
            "dimensions_length": dims.length,
            "dimensions_width": dims.width,
            "dimensions_height": dims.height,
            "weight_entered": event.weight_lbs,
            "label_cost": event.cost,
            "ship_to_name": event.ship_to.name,
            "ship_to_city": event.ship_to.city,
            "ship_to_state": event.ship_to.state,
            "ship_to_zip": event.ship_to.postal_code,
            "is_residential": event.ship_to.residential,
        }

    async def _fetch_promised_date(self, tracking_number: str):
        """Best effort; the daily poll picks up anything missed here."""
        if not is_ups_tracking(tracking_number):
            return
        try:
            tracking = await self.ups.get_tracking_details(tracking_number)
            if tracking.get("scheduled_delivery"):
                self.shipments.update_tracking(
                    tracking_number,
                    delivery_status=tracking.get("delivery_status"),
                    actual_delivery_date=tracking.get("actual_delivery"),
                    promised_delivery_date=tracking.get("scheduled_delivery"),
                    is_late=None,
                )
                log.info(f"Updated UPS promised delivery for {tracking_number}: {tracking['scheduled_delivery']}")
        except Exception as e:
            self.db.rollback()
            log.warning(f"Could not get UPS tracking info for {tracking_number} (will retry in daily poll): {e}")
