"""
Delivery status poller

Re-checks UPS tracking for every undelivered shipment shipped within the
trailing window. Runs daily from the scheduler and on demand from the admin
endpoint or CLI.
"""
from datetime import datetime
from typing import Dict, Optional

from sqlalchemy.orm import Session

from shiprecon.config import get_settings
from shiprecon.models.shipment import DeliveryStatus
from shiprecon.services.shipment_service import ShipmentService
from shiprecon.utils.logger import log

settings = get_settings()

def compute_is_late(actual: Optional[datetime], promised: Optional[datetime]) -> Optional[bool]:
    """
    Late when delivered on a later calendar day than promised; None if either
    is unknown. UPS promises a day, not a time.
    """
    if actual is None or promised is None:
        return None
    return actual.date() > promised.date()


async def poll_all_undelivered(db: Session, ups, window_days: Optional[int] = None) -> Dict[str, int]:
    """
    Poll UPS for each candidate shipment and apply the result.

    Only "ok" results are applied; not_found, error, unknown and parse_error
    leave the stored row untouched until the next run. Exceptions for
    one shipment are counted and do not stop the sweep.
    """
    shipments_service = ShipmentService(db)
    window = window_days if window_days is not None else settings.tracking_poll_window_days
    shipments = shipments_service.get_undelivered_ups_shipments(window_days=window)
    log.info(f"Polling {len(shipments)} undelivered UPS shipments")

    updated = 0
    delivered = 0
    errors = 0

    for shipment in shipments:
        tracking_number = shipment.tracking_number
        try:
            tracking = await ups.get_tracking_details(tracking_number)

            if tracking.get("status") != "ok":
                log.debug(f"Skipping {tracking_number}: UPS status {tracking.get('status')}")
                continue

            promised = tracking.get("scheduled_delivery") or shipment.promised_delivery_date
            actual = tracking.get("actual_delivery") or shipment.actual_delivery_date
            is_late = compute_is_late(actual, promised)

            result = shipments_service.update_tracking(
                tracking_number,
                delivery_status=tracking.get("delivery_status"),
                actual_delivery_date=tracking.get("actual_delivery"),
                promised_delivery_date=promised,
                is_late=is_late,
            )

            if result is not None:
                updated += 1
                if tracking.get("delivery_status") == DeliveryStatus.DELIVERED.value:
                    delivered += 1
        except Exception as e:
            errors += 1
            db.rollback()
            log.error(f"Error polling shipment {tracking_number}: {e}")

    summary = {"polled": len(shipments), "updated": updated, "delivered": delivered, "errors": errors}
    log.info(f"Tracking poll complete: {summary}")
    return summary
