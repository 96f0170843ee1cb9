"""
UPS invoice upload and reconciliation endpoints
"""
from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session
from typing import Any, Dict, List, Optional

from shiprecon.models.base import get_db
from shiprecon.services.invoice_service import InvoiceService
from shiprecon.utils.logger import log

router = APIRouter(prefix="/invoices", tags=["invoices"])


class InvoiceUploadRequest(BaseModel):
    """Rows of an already-parsed UPS invoice export"""
    rows: List[Dict[str, Any]] = []


@router.post("/upload")
async def upload_invoice(payload: InvoiceUploadRequest, db: Session = Depends(get_db)):
    """Load invoice rows into line items and match them to shipments"""
    if not payload.rows:
        raise HTTPException(status_code=400, detail="Invoice contains no rows")

    try:
        return InvoiceService(db).ingest_invoice(payload.rows)
    except Exception as e:
        log.error(f"Failed to process invoice upload: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Failed to process invoice: {str(e)}")


@router.post("/{invoice_number}/match")
async def rematch_invoice(invoice_number: str, db: Session = Depends(get_db)):
    """Re-run tracking number matching for one invoice"""
    try:
        result = InvoiceService(db).match_to_shipments(invoice_number)
    except Exception as e:
        log.error(f"Failed to match invoice {invoice_number}: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e))
    return {"invoice_number": invoice_number, **result}


@router.get("/unmatched")
async def get_unmatched(
    invoice_number: Optional[str] = Query(None, description="Limit to one invoice"),
    db: Session = Depends(get_db),
):
    """Invoice line items that couldn't be matched to shipments"""
    items = InvoiceService(db).get_unmatched(invoice_number)
    return {"count": len(items), "items": [item.to_dict() for item in items]}
