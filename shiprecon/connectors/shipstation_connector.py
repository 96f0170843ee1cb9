"""
ShipStation fulfillment connector.

Two API surfaces describe the same shipments differently:
  - V1 (ssapi.shipstation.com): basic auth with key/secret. SHIP_NOTIFY
    webhooks point at V1 /shipments; orders carry the Shopify ID in
    externalOrderId.
  - V2 (api.shipstation.com): "API-Key" header. LABEL_CREATED_V2 webhooks
    point at a label list; labels reference a V2 shipment by shipment_id.
"""
from typing import Any, Dict, List, Optional
import aiohttp
from shiprecon.connectors.base_connector import BaseConnector
from shiprecon.config import get_settings
from shiprecon.utils.logger import log
from shiprecon.utils.rate_limiter import RateLimiter, shipstation_limiter

settings = get_settings()


class ShipStationConnector(BaseConnector):
    """Connector for ShipStation V1 and V2 APIs."""

    REQUEST_TIMEOUT = 30

    def __init__(
        self,
        api_key: Optional[str] = None,
        api_secret: Optional[str] = None,
        v2_api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        v2_base_url: Optional[str] = None,
        limiter: Optional[RateLimiter] = None,
    ):
        super().__init__("ShipStation")
        self.api_key = api_key if api_key is not None else settings.shipstation_api_key
        self.api_secret = api_secret if api_secret is not None else settings.shipstation_api_secret
        self.v2_api_key = v2_api_key if v2_api_key is not None else (settings.shipstation_v2_api_key or "")
        self.base_url = (base_url or settings.shipstation_base_url).rstrip("/")
        self.v2_base_url = (v2_base_url or settings.shipstation_v2_base_url).rstrip("/")
        self.limiter = limiter or shipstation_limiter

    @property
    def v1_auth(self) -> aiohttp.BasicAuth:
        return aiohttp.BasicAuth(self.api_key, self.api_secret)

    @property
    def v2_headers(self) -> Dict[str, str]:
        return {"API-Key": self.v2_api_key, "Content-Type": "application/json"}

    async def _v1_get(self, url: str, params: Optional[Dict[str, Any]] = None) -> Any:
        await self.limiter.wait()
        response = await self._request_json(
            "GET", url,
            headers={"Content-Type": "application/json"},
            params=params,
            auth=self.v1_auth,
        )
        self._raise_for_status(response, url)
        return response.data or {}

    async def _v2_get(self, url: str, params: Optional[Dict[str, Any]] = None) -> Any:
        await self.limiter.wait()
        response = await self._request_json("GET", url, headers=self.v2_headers, params=params)
        self._raise_for_status(response, url)
        return response.data or {}

    # ------------------------------------------------------------------
    # V1 (legacy)
    # ------------------------------------------------------------------

    async def fetch_shipments_from_webhook(self, resource_url: str) -> List[Dict]:
        """
        Fetch the shipments a SHIP_NOTIFY webhook points at.

        V1 returns { shipments: [...], total, page, pages }.
        """
        try:
            data = await self._v1_get(resource_url)
        except Exception as e:
            log.error(f"Failed to fetch shipments from webhook resource_url {resource_url}: {e}")
            raise
        return data.get("shipments") or []

    async def get_order(self, order_id) -> Dict:
        """Get a single V1 order by ShipStation orderId."""
        return await self._v1_get(f"{self.base_url}/orders/{order_id}")

    async def find_orders_by_number(self, order_number: str) -> List[Dict]:
        """Look up V1 orders by their order number."""
        data = await self._v1_get(f"{self.base_url}/orders", params={"orderNumber": order_number})
        return data.get("orders") or []

    # ------------------------------------------------------------------
    # V2 (current)
    # ------------------------------------------------------------------

    async def fetch_labels_from_webhook(self, resource_url: str) -> List[Dict]:
        """Fetch the labels a LABEL_CREATED_V2 webhook points at."""
        try:
            data = await self._v2_get(resource_url)
        except Exception as e:
            log.error(f"Failed to fetch labels from webhook resource_url {resource_url}: {e}")
            raise
        return data.get("labels") or []

    async def get_shipment(self, shipment_id: str) -> Dict:
        """Get a V2 shipment (order number, packages, destination)."""
        return await self._v2_get(f"{self.v2_base_url}/v2/shipments/{shipment_id}")
