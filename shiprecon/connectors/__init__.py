"""External API connectors for the shipping reconciliation service"""

from shiprecon.connectors.base_connector import ApiError, ApiResponse, BaseConnector
from shiprecon.connectors.shipstation_connector import ShipStationConnector
from shiprecon.connectors.shopify_connector import ShopifyConnector
from shiprecon.connectors.ups_connector import TokenCache, UPSConnector

__all__ = [
    "ApiError",
    "ApiResponse",
    "BaseConnector",
    "ShipStationConnector",
    "ShopifyConnector",
    "TokenCache",
    "UPSConnector"
]
