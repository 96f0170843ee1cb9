"""
Shipment persistence: keyed upsert, void, tracking updates, poll selection, counts
"""
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from shiprecon.models.invoice import InvoiceLineItem
from shiprecon.models.order import Order
from shiprecon.models.shipment import DeliveryStatus, Shipment, TERMINAL_DELIVERY_STATUSES
from shiprecon.utils.logger import log
from shiprecon.utils.ups_account import UPS_TRACKING_PREFIX

# Refreshed on conflict when the incoming value is non-null.
# Destination and weight keep their first recorded values.
CONFLICT_REFRESH_FIELDS = (
    "order_id",
    "carrier_code",
    "service_code",
    "label_cost",
    "promised_delivery_date",
)


class ShipmentService:
    """Shipment table access keyed by tracking number."""

    def __init__(self, db: Session):
        self.db = db

    def find_by_tracking_number(self, tracking_number: str) -> Optional[Shipment]:
        return self.db.query(Shipment).filter(Shipment.tracking_number == tracking_number).first()

    def upsert(self, data: Dict[str, Any]) -> Tuple[Shipment, bool]:
        """
        Insert a shipment, or refresh an existing one with the same tracking
        number. Returns (shipment, created).
        """
        tracking_number = data["tracking_number"]
        shipment = self.find_by_tracking_number(tracking_number)
        if shipment is not None:
            self._refresh(shipment, data)
            self.db.commit()
            self.db.refresh(shipment)
            return shipment, False

        shipment = Shipment(**data)
        self.db.add(shipment)
        try:
            self.db.commit()
        except IntegrityError:
            # Another delivery of the same webhook won the insert
            self.db.rollback()
            log.warning(f"Shipment {tracking_number} inserted concurrently, merging")
            shipment = self.find_by_tracking_number(tracking_number)
            if shipment is None:
                raise
            self._refresh(shipment, data)
            self.db.commit()
            self.db.refresh(shipment)
            return shipment, False

        self.db.refresh(shipment)
        return shipment, True

    @staticmethod
    def _refresh(shipment: Shipment, data: Dict[str, Any]):
        for key in CONFLICT_REFRESH_FIELDS:
            if data.get(key) is not None:
                setattr(shipment, key, data[key])

    def mark_voided(self, tracking_number: str) -> Optional[Shipment]:
        """Flag a shipment voided; returns None if it was never recorded."""
        shipment = self.find_by_tracking_number(tracking_number)
        if shipment is None:
            return None
        shipment.is_voided = True
        shipment.delivery_status = DeliveryStatus.VOIDED.value
        shipment.split_revenue = None
        shipment.split_cogs = None
        shipment.split_shipping_paid = None
        self.db.commit()
        self.db.refresh(shipment)
        return shipment

    def update_tracking(
        self,
        tracking_number: str,
        delivery_status: Optional[str] = None,
        actual_delivery_date: Optional[datetime] = None,
        promised_delivery_date: Optional[datetime] = None,
        is_late: Optional[bool] = None,
    ) -> Optional[Shipment]:
        """
        Apply carrier tracking data. Status and dates only change when a new
        value is given; is_late is always overwritten.
        """
        shipment = self.find_by_tracking_number(tracking_number)
        if shipment is None:
            return None
        if delivery_status is not None:
            shipment.delivery_status = delivery_status
        if actual_delivery_date is not None:
            shipment.actual_delivery_date = actual_delivery_date
        if promised_delivery_date is not None:
            shipment.promised_delivery_date = promised_delivery_date
        shipment.is_late = is_late
        shipment.updated_at = datetime.utcnow()
        self.db.commit()
        self.db.refresh(shipment)
        return shipment

    def get_undelivered_ups_shipments(self, window_days: int = 30, now: Optional[datetime] = None) -> List[Shipment]:
        """
        UPS-trackable shipments still worth polling: 1Z tracking number,
        non-terminal status, not voided, shipped within the window.
        """
        cutoff = (now or datetime.utcnow()) - timedelta(days=window_days)
        return (
            self.db.query(Shipment)
            .filter(
                func.upper(Shipment.tracking_number).like(f"{UPS_TRACKING_PREFIX}%"),
                Shipment.delivery_status.notin_(TERMINAL_DELIVERY_STATUSES),
                Shipment.is_voided.is_(False),
                Shipment.ship_date > cutoff,
            )
            .order_by(Shipment.ship_date.asc())
            .all()
        )

    def get_stats(self) -> Dict[str, int]:
        undelivered_ups = (
            self.db.query(func.count(Shipment.id))
            .filter(
                Shipment.carrier_code == "ups",
                Shipment.delivery_status.notin_((DeliveryStatus.DELIVERED.value, DeliveryStatus.RETURNED.value)),
                Shipment.is_voided.is_(False),
            )
            .scalar()
        )
        return {
            "total_orders": self.db.query(func.count(Order.id)).scalar() or 0,
            "total_shipments": self.db.query(func.count(Shipment.id)).filter(Shipment.is_voided.is_(False)).scalar() or 0,
            "total_invoice_items": self.db.query(func.count(InvoiceLineItem.id)).scalar() or 0,
            "undelivered_ups_shipments": undelivered_ups or 0,
        }
