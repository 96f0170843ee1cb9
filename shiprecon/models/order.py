"""
Order Models

Shopify orders that ShipStation shipments link to. Keyed by the numeric
Shopify order ID so repeated webhooks merge into one row.
"""
from sqlalchemy import Column, Integer, String, DateTime, JSON, Numeric, BigInteger, Boolean
from sqlalchemy.orm import relationship
from datetime import datetime
from shiprecon.models.base import Base


class Order(Base):
    """
    Sales order with cost basis.

    package_count is derived from the non-voided shipments and is only ever
    set by recomputation.
    """
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)

    # Identifiers
    shopify_order_id = Column(BigInteger, unique=True, index=True, nullable=False)
    shopify_order_number = Column(String, nullable=True)  # e.g. "#26276"
    shipstation_order_number = Column(String, index=True, nullable=True)

    order_date = Column(DateTime, index=True, nullable=True)
    customer_name = Column(String, nullable=True)
    customer_email = Column(String, nullable=True)
    items_json = Column(JSON, nullable=True)

    # Financials
    item_revenue = Column(Numeric(10, 2), nullable=True)
    total_cogs = Column(Numeric(10, 2), nullable=True)
    shipping_paid_by_customer = Column(Numeric(10, 2), nullable=True)
    shipping_method_selected = Column(String, nullable=True)
    order_total = Column(Numeric(10, 2), nullable=True)

    package_count = Column(Integer, default=1)
    is_chewy_order = Column(Boolean, default=False)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    shipments = relationship("Shipment", back_populates="order")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "shopify_order_id": self.shopify_order_id,
            "shopify_order_number": self.shopify_order_number,
            "shipstation_order_number": self.shipstation_order_number,
            "order_date": self.order_date.isoformat() if self.order_date else None,
            "customer_name": self.customer_name,
            "customer_email": self.customer_email,
            "item_revenue": float(self.item_revenue) if self.item_revenue is not None else None,
            "total_cogs": float(self.total_cogs) if self.total_cogs is not None else None,
            "shipping_paid_by_customer": float(self.shipping_paid_by_customer) if self.shipping_paid_by_customer is not None else None,
            "shipping_method_selected": self.shipping_method_selected,
            "order_total": float(self.order_total) if self.order_total is not None else None,
            "package_count": self.package_count,
            "is_chewy_order": self.is_chewy_order,
        }
