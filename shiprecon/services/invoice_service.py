"""
UPS invoice ingestion and reconciliation against shipments
"""
from datetime import datetime, time
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session

from shiprecon.models.invoice import InvoiceLineItem, InvoiceUpload
from shiprecon.models.order import Order
from shiprecon.models.shipment import Shipment
from shiprecon.utils.helpers import parse_date, parse_num
from shiprecon.utils.logger import log
from shiprecon.utils.ups_account import get_account_type_from_invoice

# Line item field -> column headers used in UPS invoice exports.
# The snake_case field name itself is always accepted as well.
TEXT_COLUMNS = {
    "tracking_number": ("Tracking Number",),
    "invoice_number": ("Invoice Number",),
    "service": ("Service",),
    "zone": ("Zone",),
    "receiver_zip": ("Receiver ZIP", "ZIP Code"),
    "entered_dimensions": ("Entered Dimensions",),
    "audited_dimensions": ("Audited Dimensions",),
    "receiver_name": ("Receiver Name",),
    "receiver_company": ("Receiver Company",),
    "receiver_city": ("Receiver City",),
    "receiver_state": ("Receiver State",),
}

NUMERIC_COLUMNS = {
    "customer_weight": ("Customer Weight",),
    "billed_weight": ("Billed Weight",),
    "published_charge": ("Published Charge",),
    "incentive_credit": ("Incentive Credit",),
    "original_billed_total": ("Original Billed Total",),
    "fuel_surcharge": ("Fuel Surcharge",),
    "residential_surcharge": ("Residential Surcharge",),
    "large_package_surcharge": ("Large Package Surcharge",),
    "das_extended": ("DAS Extended",),
    "additional_handling": ("Additional Handling",),
    "adjustment_amount": ("Adjustment Amount",),
    "final_billed_total": ("Final Billed Total",),
}

DATE_COLUMNS = {
    "invoice_date": ("Invoice Date",),
    "pickup_date": ("Pickup Date",),
}


def get_cell(row: Dict[str, Any], field: str, headers: Tuple[str, ...] = ()) -> Optional[Any]:
    """First non-empty value among the export headers and the snake_case key."""
    for key in headers + (field,):
        value = row.get(key)
        if isinstance(value, str):
            value = value.strip()
        if value not in (None, ""):
            return value
    return None


def _money(value) -> Optional[float]:
    return float(value) if value is not None else None


def _normalize_dimensions(value: Optional[str]) -> str:
    return "".join((value or "").lower().split())


def reconciliation_row(shipment: Shipment, item: Optional[InvoiceLineItem], order: Optional[Order]) -> Dict[str, Any]:
    """
    One shipment against its billed line item.

    cost_delta is billed minus quoted label cost. shipping_margin is the
    customer-paid shipping share minus the billed cost, falling back to the
    label cost until the invoice arrives.
    """
    label_cost = _money(shipment.label_cost)
    billed = _money(item.final_billed_total) if item is not None else None
    shipping_paid = _money(shipment.split_shipping_paid)

    cost_delta = round(billed - label_cost, 2) if billed is not None and label_cost is not None else None
    cost = billed if billed is not None else label_cost
    shipping_margin = round((shipping_paid or 0.0) - cost, 2) if cost is not None else None

    entered = item.entered_dimensions if item is not None else None
    audited = item.audited_dimensions if item is not None else None
    dimension_discrepancy = bool(entered and audited) and _normalize_dimensions(entered) != _normalize_dimensions(audited)

    return {
        "shipment_id": shipment.id,
        "tracking_number": shipment.tracking_number,
        "ship_date": shipment.ship_date.isoformat() if shipment.ship_date else None,
        "ups_account_type": shipment.ups_account_type,
        "service_code": shipment.service_code,
        "delivery_status": shipment.delivery_status,
        "is_late": shipment.is_late,
        "shopify_order_number": order.shopify_order_number if order is not None else None,
        "invoice_number": item.invoice_number if item is not None else None,
        "label_cost": label_cost,
        "final_billed_total": billed,
        "cost_delta": cost_delta,
        "shipping_paid": shipping_paid,
        "shipping_margin": shipping_margin,
        "entered_dimensions": entered,
        "audited_dimensions": audited,
        "dimension_discrepancy": dimension_discrepancy,
        "invoiced": item is not None,
    }


def summarize_reconciliation(rows: List[Dict[str, Any]]) -> Dict[str, Any]:
    def total(key):
        return round(sum(row[key] for row in rows if row[key] is not None), 2)

    with_invoice = sum(1 for row in rows if row["invoiced"])
    return {
        "total_shipments": len({row["shipment_id"] for row in rows}),
        "total_label_cost": total("label_cost"),
        "total_billed": total("final_billed_total"),
        "total_cost_delta": total("cost_delta"),
        "total_shipping_margin": total("shipping_margin"),
        "late_deliveries": sum(1 for row in rows if row["is_late"]),
        "dimension_discrepancies": sum(1 for row in rows if row["dimension_discrepancy"]),
        "with_invoice": with_invoice,
        "without_invoice": len(rows) - with_invoice,
    }


def build_line_item(row: Dict[str, Any], ups_account_type: Optional[str]) -> Dict[str, Any]:
    item: Dict[str, Any] = {"ups_account_type": ups_account_type}
    for field, headers in TEXT_COLUMNS.items():
        value = get_cell(row, field, headers)
        item[field] = str(value) if value is not None else None
    for field, headers in NUMERIC_COLUMNS.items():
        item[field] = parse_num(get_cell(row, field, headers))
    for field, headers in DATE_COLUMNS.items():
        item[field] = parse_date(get_cell(row, field, headers))
    return item


class InvoiceService:
    """Loads invoice rows, keeps the upload audit trail, matches to shipments."""

    def __init__(self, db: Session):
        self.db = db

    def insert_line_items(self, line_items: List[Dict[str, Any]]) -> List[int]:
        """Insert all line items in one transaction; returns their ids."""
        items = [InvoiceLineItem(**item) for item in line_items]
        try:
            self.db.add_all(items)
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            log.error(f"Failed to insert invoice line items: {e}")
            raise
        return [item.id for item in items]

    def create_upload_record(
        self,
        invoice_number: Optional[str],
        ups_account_type: Optional[str],
        invoice_date,
        invoice_total: Optional[float],
        line_item_count: int,
    ) -> InvoiceUpload:
        upload = InvoiceUpload(
            invoice_number=invoice_number,
            ups_account_type=ups_account_type,
            invoice_date=invoice_date,
            invoice_total=invoice_total,
            line_item_count=line_item_count,
        )
        self.db.add(upload)
        self.db.commit()
        self.db.refresh(upload)
        return upload

    def update_upload_record(self, upload_id: int, matched_count: int, unmatched_count: int):
        upload = self.db.query(InvoiceUpload).filter(InvoiceUpload.id == upload_id).first()
        if upload is None:
            log.warning(f"Invoice upload {upload_id} not found")
            return
        upload.matched_count = matched_count
        upload.unmatched_count = unmatched_count
        upload.reconciled = True
        self.db.commit()

    def _scoped(self, query, invoice_number: Optional[str], line_item_ids: Optional[List[int]] = None):
        if invoice_number:
            query = query.filter(InvoiceLineItem.invoice_number == invoice_number)
        if line_item_ids is not None:
            query = query.filter(InvoiceLineItem.id.in_(line_item_ids))
        return query

    def match_to_shipments(
        self,
        invoice_number: Optional[str] = None,
        line_item_ids: Optional[List[int]] = None,
    ) -> Dict[str, int]:
        """
        Link still-unmatched line items to shipments by tracking number.

        Already-matched rows are never touched, so re-running is a no-op.
        Returns the invoice's total matched count, how many were linked by
        this call, and how many remain unmatched. Passing line_item_ids
        limits both the matching and the counts to those rows.
        """
        candidates = self._scoped(
            self.db.query(InvoiceLineItem, Shipment.id)
            .join(Shipment, Shipment.tracking_number == InvoiceLineItem.tracking_number)
            .filter(InvoiceLineItem.shipment_id.is_(None)),
            invoice_number,
            line_item_ids,
        ).all()

        for item, shipment_id in candidates:
            item.shipment_id = shipment_id
        self.db.commit()

        matched = self._scoped(
            self.db.query(func.count(InvoiceLineItem.id)).filter(InvoiceLineItem.shipment_id.isnot(None)),
            invoice_number,
            line_item_ids,
        ).scalar() or 0
        unmatched = self._scoped(
            self.db.query(func.count(InvoiceLineItem.id)).filter(InvoiceLineItem.shipment_id.is_(None)),
            invoice_number,
            line_item_ids,
        ).scalar() or 0

        return {"matched": matched, "newly_matched": len(candidates), "unmatched": unmatched}

    def get_reconciliation(
        self,
        start_date=None,
        end_date=None,
        invoice_number: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Non-voided shipments joined to their invoice line items, one row per
        line item (or one unbilled row), newest ship date first.

        start_date / end_date bound the ship date inclusively.
        """
        query = (
            self.db.query(Shipment, InvoiceLineItem, Order)
            .outerjoin(InvoiceLineItem, InvoiceLineItem.shipment_id == Shipment.id)
            .outerjoin(Order, Order.id == Shipment.order_id)
            .filter(Shipment.is_voided.is_(False))
        )
        if start_date:
            query = query.filter(Shipment.ship_date >= datetime.combine(start_date, time.min))
        if end_date:
            query = query.filter(Shipment.ship_date <= datetime.combine(end_date, time.max))
        if invoice_number:
            query = query.filter(InvoiceLineItem.invoice_number == invoice_number)

        rows = [
            reconciliation_row(shipment, item, order)
            for shipment, item, order in query.order_by(Shipment.ship_date.desc(), Shipment.id, InvoiceLineItem.id).all()
        ]
        return {"summary": summarize_reconciliation(rows), "data": rows}

    def get_unmatched(self, invoice_number: Optional[str] = None) -> List[InvoiceLineItem]:
        """Line items with no matching shipment, for manual review."""
        return self._scoped(
            self.db.query(InvoiceLineItem).filter(InvoiceLineItem.shipment_id.is_(None)),
            invoice_number,
        ).order_by(InvoiceLineItem.pickup_date, InvoiceLineItem.tracking_number).all()

    def ingest_invoice(self, rows: List[Dict[str, Any]]) -> Dict[str, Any]:
        """
        Store parsed invoice rows, record the upload and run matching.

        Account type and invoice header fields come from the first row.
        """
        if not rows:
            raise ValueError("Invoice contains no rows")

        first = rows[0]
        invoice_number = get_cell(first, "invoice_number", TEXT_COLUMNS["invoice_number"])
        invoice_number = str(invoice_number) if invoice_number is not None else None
        ups_account_type = get_account_type_from_invoice(invoice_number)
        invoice_date = parse_date(get_cell(first, "invoice_date", DATE_COLUMNS["invoice_date"]))
        invoice_total = parse_num(get_cell(first, "invoice_total", ("Invoice Total",)))

        log.info(f"Ingesting invoice {invoice_number} ({ups_account_type}) with {len(rows)} rows")

        line_items = [build_line_item(row, ups_account_type) for row in rows]
        line_item_ids = self.insert_line_items(line_items)
        inserted = len(line_item_ids)

        upload = self.create_upload_record(
            invoice_number=invoice_number,
            ups_account_type=ups_account_type,
            invoice_date=invoice_date,
            invoice_total=invoice_total,
            line_item_count=inserted,
        )

        # Without an invoice number only this upload's rows identify it
        match = self.match_to_shipments(invoice_number, None if invoice_number else line_item_ids)
        self.update_upload_record(upload.id, match["matched"], match["unmatched"])

        log.info(
            f"Invoice {invoice_number} processed: {inserted} line items, "
            f"{match['matched']} matched, {match['unmatched']} unmatched"
        )

        return {
            "success": True,
            "invoice_number": invoice_number,
            "ups_account_type": ups_account_type,
            "line_items": inserted,
            "matched": match["matched"],
            "unmatched": match["unmatched"],
            "upload_id": upload.id,
        }
