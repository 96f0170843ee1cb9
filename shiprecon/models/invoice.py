"""
UPS Invoice Models

Carrier-billed charges loaded from uploaded invoice files and matched to
shipments by tracking number.
"""
from sqlalchemy import Column, Integer, String, DateTime, Date, Numeric, Boolean, ForeignKey
from datetime import datetime
from shiprecon.models.base import Base


class InvoiceLineItem(Base):
    """One billed package row from a UPS invoice."""
    __tablename__ = "invoice_line_items"

    id = Column(Integer, primary_key=True, index=True)

    tracking_number = Column(String, index=True, nullable=True)
    invoice_number = Column(String, index=True, nullable=True)
    invoice_date = Column(Date, nullable=True)
    ups_account_type = Column(String, nullable=True)

    pickup_date = Column(Date, nullable=True)
    service = Column(String, nullable=True)
    zone = Column(String, nullable=True)
    receiver_zip = Column(String, nullable=True)

    # Weights and dimensions (declared vs audited)
    customer_weight = Column(Numeric(8, 2), nullable=True)
    billed_weight = Column(Numeric(8, 2), nullable=True)
    entered_dimensions = Column(String, nullable=True)
    audited_dimensions = Column(String, nullable=True)

    # Charges
    published_charge = Column(Numeric(10, 2), nullable=True)
    incentive_credit = Column(Numeric(10, 2), nullable=True)
    original_billed_total = Column(Numeric(10, 2), nullable=True)
    fuel_surcharge = Column(Numeric(10, 2), nullable=True)
    residential_surcharge = Column(Numeric(10, 2), nullable=True)
    large_package_surcharge = Column(Numeric(10, 2), nullable=True)
    das_extended = Column(Numeric(10, 2), nullable=True)
    additional_handling = Column(Numeric(10, 2), nullable=True)
    adjustment_amount = Column(Numeric(10, 2), nullable=True)
    final_billed_total = Column(Numeric(10, 2), nullable=True)

    receiver_name = Column(String, nullable=True)
    receiver_company = Column(String, nullable=True)
    receiver_city = Column(String, nullable=True)
    receiver_state = Column(String, nullable=True)

    # Set once by matching, never cleared
    shipment_id = Column(Integer, ForeignKey("shipments.id"), index=True, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "tracking_number": self.tracking_number,
            "invoice_number": self.invoice_number,
            "invoice_date": self.invoice_date.isoformat() if self.invoice_date else None,
            "ups_account_type": self.ups_account_type,
            "pickup_date": self.pickup_date.isoformat() if self.pickup_date else None,
            "service": self.service,
            "zone": self.zone,
            "receiver_zip": self.receiver_zip,
            "billed_weight": float(self.billed_weight) if self.billed_weight is not None else None,
            "final_billed_total": float(self.final_billed_total) if self.final_billed_total is not None else None,
            "receiver_name": self.receiver_name,
            "shipment_id": self.shipment_id,
        }


class InvoiceUpload(Base):
    """Audit record for one invoice upload."""
    __tablename__ = "invoice_uploads"

    id = Column(Integer, primary_key=True, index=True)
    invoice_number = Column(String, index=True, nullable=True)
    ups_account_type = Column(String, nullable=True)
    invoice_date = Column(Date, nullable=True)
    invoice_total = Column(Numeric(12, 2), nullable=True)

    line_item_count = Column(Integer, default=0)
    matched_count = Column(Integer, nullable=True)
    unmatched_count = Column(Integer, nullable=True)
    reconciled = Column(Boolean, default=False)

    uploaded_at = Column(DateTime, default=datetime.utcnow)
