"""
Shipment Models

One row per physical parcel (tracking number) shipped through ShipStation,
enriched with UPS delivery tracking and per-package order financials.
"""
import enum
from sqlalchemy import Column, Integer, String, DateTime, Numeric, Boolean, ForeignKey
from sqlalchemy.orm import relationship
from datetime import datetime
from shiprecon.models.base import Base


class DeliveryStatus(str, enum.Enum):
    """Delivery lifecycle of a shipment."""
    PENDING = "pending"
    IN_TRANSIT = "in_transit"
    EXCEPTION = "exception"
    DELIVERED = "delivered"
    RETURNED = "returned"
    VOIDED = "voided"


# No carrier polling happens after one of these
TERMINAL_DELIVERY_STATUSES = (
    DeliveryStatus.DELIVERED.value,
    DeliveryStatus.RETURNED.value,
    DeliveryStatus.VOIDED.value,
)


class Shipment(Base):
    """
    A single shipped package.

    Keyed by tracking_number (unique). Created from ShipStation webhooks,
    updated by the UPS tracking poller, voided but never deleted.
    """
    __tablename__ = "shipments"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id"), index=True, nullable=True)

    # ShipStation identifiers
    shipstation_shipment_id = Column(String, nullable=True)
    shipstation_label_id = Column(String, nullable=True)

    # Carrier and service
    tracking_number = Column(String, unique=True, index=True, nullable=False)
    carrier_code = Column(String, index=True, nullable=True)
    service_code = Column(String, nullable=True)
    ups_account_type = Column(String, index=True, nullable=True)  # nda / ground

    # Dates
    ship_date = Column(DateTime, index=True, nullable=True)
    promised_delivery_date = Column(DateTime, nullable=True)
    actual_delivery_date = Column(DateTime, nullable=True)

    # Delivery tracking
    delivery_status = Column(String, index=True, default=DeliveryStatus.PENDING.value, nullable=False)
    is_late = Column(Boolean, nullable=True)
    is_voided = Column(Boolean, default=False, nullable=False)

    # Package (inches / pounds)
    dimensions_length = Column(Numeric(8, 2), nullable=True)
    dimensions_width = Column(Numeric(8, 2), nullable=True)
    dimensions_height = Column(Numeric(8, 2), nullable=True)
    weight_entered = Column(Numeric(8, 3), nullable=True)
    label_cost = Column(Numeric(10, 2), nullable=True)

    # Destination
    ship_to_name = Column(String, nullable=True)
    ship_to_city = Column(String, nullable=True)
    ship_to_state = Column(String, nullable=True)
    ship_to_zip = Column(String, nullable=True)
    is_residential = Column(Boolean, default=False)

    # Order financials split across the order's packages
    is_multi_package = Column(Boolean, default=False)
    split_revenue = Column(Numeric(12, 4), nullable=True)
    split_cogs = Column(Numeric(12, 4), nullable=True)
    split_shipping_paid = Column(Numeric(12, 4), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    order = relationship("Order", back_populates="shipments")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "tracking_number": self.tracking_number,
            "carrier_code": self.carrier_code,
            "service_code": self.service_code,
            "ups_account_type": self.ups_account_type,
            "ship_date": self.ship_date.isoformat() if self.ship_date else None,
            "promised_delivery_date": self.promised_delivery_date.isoformat() if self.promised_delivery_date else None,
            "actual_delivery_date": self.actual_delivery_date.isoformat() if self.actual_delivery_date else None,
            "delivery_status": self.delivery_status,
            "is_late": self.is_late,
            "is_voided": self.is_voided,
            "weight_entered": float(self.weight_entered) if self.weight_entered is not None else None,
            "label_cost": float(self.label_cost) if self.label_cost is not None else None,
            "ship_to_city": self.ship_to_city,
            "ship_to_state": self.ship_to_state,
            "ship_to_zip": self.ship_to_zip,
            "is_multi_package": self.is_multi_package,
            "split_revenue": float(self.split_revenue) if self.split_revenue is not None else None,
            "split_cogs": float(self.split_cogs) if self.split_cogs is not None else None,
            "split_shipping_paid": float(self.split_shipping_paid) if self.split_shipping_paid is not None else None,
        }
