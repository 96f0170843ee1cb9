"""
Read-only shipment, order and reconciliation views
"""
from datetime import date, datetime, time
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import Optional

from shiprecon.models.base import get_db
from shiprecon.models.order import Order
from shiprecon.models.shipment import Shipment
from shiprecon.services.invoice_service import InvoiceService
from shiprecon.services.shipment_service import ShipmentService

router = APIRouter(prefix="/api", tags=["shipments"])


@router.get("/shipments")
async def list_shipments(
    delivery_status: Optional[str] = Query(None),
    carrier_code: Optional[str] = Query(None),
    ups_account: Optional[str] = Query(None, description="nda or ground"),
    order_id: Optional[int] = Query(None),
    start_date: Optional[date] = Query(None, description="Earliest ship date (inclusive)"),
    end_date: Optional[date] = Query(None, description="Latest ship date (inclusive)"),
    include_voided: bool = Query(False),
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
):
    """Most recently shipped first, with the linked order's number and customer"""
    query = db.query(Shipment)
    if delivery_status:
        query = query.filter(Shipment.delivery_status == delivery_status)
    if carrier_code:
        query = query.filter(Shipment.carrier_code == carrier_code)
    if ups_account:
        query = query.filter(Shipment.ups_account_type == ups_account)
    if order_id is not None:
        query = query.filter(Shipment.order_id == order_id)
    if start_date:
        query = query.filter(Shipment.ship_date >= datetime.combine(start_date, time.min))
    if end_date:
        query = query.filter(Shipment.ship_date <= datetime.combine(end_date, time.max))
    if not include_voided:
        query = query.filter(Shipment.is_voided.is_(False))

    total = query.count()
    shipments = query.order_by(Shipment.ship_date.desc(), Shipment.id.desc()).offset(offset).limit(limit).all()

    results = []
    for shipment in shipments:
        row = shipment.to_dict()
        order = shipment.order
        row["shopify_order_number"] = order.shopify_order_number if order else None
        row["customer_name"] = order.customer_name if order else None
        row["order_date"] = order.order_date.isoformat() if order and order.order_date else None
        results.append(row)

    return {"count": len(results), "total": total, "limit": limit, "offset": offset, "shipments": results}


@router.get("/reconciliation")
async def get_reconciliation(
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    invoice_number: Optional[str] = Query(None),
    db: Session = Depends(get_db),
):
    """Label cost versus billed cost per shipment, with totals"""
    return InvoiceService(db).get_reconciliation(
        start_date=start_date,
        end_date=end_date,
        invoice_number=invoice_number,
    )


@router.get("/orders")
async def list_orders(
    chewy: Optional[bool] = Query(None, description="Filter by Chewy flag"),
    limit: int = Query(100, ge=1, le=1000),
    db: Session = Depends(get_db),
):
    query = db.query(Order)
    if chewy is not None:
        query = query.filter(Order.is_chewy_order.is_(chewy))

    orders = query.order_by(Order.order_date.desc()).limit(limit).all()
    return {"count": len(orders), "orders": [o.to_dict() for o in orders]}


@router.get("/stats")
async def get_stats(db: Session = Depends(get_db)):
    return ShipmentService(db).get_stats()
