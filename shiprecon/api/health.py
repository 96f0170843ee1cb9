"""
Health check and status endpoints
"""
from fastapi import APIRouter
from datetime import datetime
from shiprecon.config import get_settings
from shiprecon import __version__
from shiprecon.dependencies import get_shipstation_connector, get_shopify_connector, get_ups_connector

settings = get_settings()

router = APIRouter()


@router.get("/health")
async def health_check():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "timestamp": datetime.utcnow().isoformat(),
        "version": __version__
    }


@router.get("/status")
async def get_status():
    """Get system status and upstream call counters"""
    return {
        "app_name": settings.app_name,
        "version": __version__,
        "environment": settings.environment,
        "connectors": [
            connector.get_status()
            for connector in (get_shipstation_connector(), get_shopify_connector(), get_ups_connector())
        ],
        "timestamp": datetime.utcnow().isoformat()
    }
