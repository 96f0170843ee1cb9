"""Database models for the shipping reconciliation service"""

from shiprecon.models.order import Order

from shiprecon.models.shipment import (
    Shipment,
    DeliveryStatus,
    TERMINAL_DELIVERY_STATUSES
)

from shiprecon.models.invoice import (
    InvoiceLineItem,
    InvoiceUpload
)

__all__ = [
    "Order",
    "Shipment",
    "DeliveryStatus",
    "TERMINAL_DELIVERY_STATUSES",
    "InvoiceLineItem",
    "InvoiceUpload",
]
