"""
ShipStation webhook endpoint

ShipStation expects a response within a few seconds, so the webhook is
acknowledged immediately and processed in a background task.
"""
from fastapi import APIRouter, BackgroundTasks
from pydantic import BaseModel
from typing import Optional

from shiprecon.dependencies import get_shipstation_connector, get_shopify_connector, get_ups_connector
from shiprecon.models.base import SessionLocal
from shiprecon.services.reconciliation_service import ReconciliationService
from shiprecon.services.shipment_normalizer import WebhookNotification
from shiprecon.utils.logger import webhook_log

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


class ShipStationWebhook(BaseModel):
    resource_url: Optional[str] = None
    resource_type: Optional[str] = None


async def process_shipstation_webhook(notification: WebhookNotification):
    """Background task: reconcile every shipment the webhook points at. Never raises."""
    db = SessionLocal()
    try:
        service = ReconciliationService(
            db,
            shipstation=get_shipstation_connector(),
            shopify=get_shopify_connector(),
            ups=get_ups_connector(),
        )
        # Everything logged while processing lands in the webhook log too
        with webhook_log.contextualize(channel="webhook"):
            await service.process_notification(notification)
    except Exception as e:
        webhook_log.error(f"Error processing {notification.resource_type} webhook {notification.resource_url}: {str(e)}")
    finally:
        db.close()


@router.post("/shipstation")
async def shipstation_webhook(payload: ShipStationWebhook, background_tasks: BackgroundTasks):
    """Receive a ShipStation SHIP_NOTIFY / LABEL_CREATED_V2 webhook"""
    webhook_log.info(f"Received ShipStation webhook {payload.resource_type}: {payload.resource_url}")

    notification = WebhookNotification(
        resource_type=payload.resource_type,
        resource_url=payload.resource_url,
    )
    background_tasks.add_task(process_shipstation_webhook, notification)

    return {"received": True}
