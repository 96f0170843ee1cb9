"""
UPS tracking connector.

OAuth2 client-credentials token (cached in a TokenCache passed in by the
caller) plus the Track API details endpoint. The details response comes in
two shapes depending on API revision:

  {"trackResponse": {"shipment": [{"package": [{"activity": [...]}]}]}}
  {"TrackResponse": {"Shipment": {"Package": {"Activity": {...}}}}}
"""
from dataclasses import dataclass
from typing import Any, Dict, Optional
from datetime import datetime
import re
import time
import uuid
import aiohttp
from shiprecon.connectors.base_connector import ApiError, BaseConnector
from shiprecon.config import get_settings
from shiprecon.utils.logger import log
from shiprecon.utils.rate_limiter import RateLimiter, ups_limiter

settings = get_settings()

# Carrier error code for "no tracking information available yet"
NO_TRACKING_INFO_CODE = "151044"

TOKEN_REFRESH_MARGIN = 60  # seconds
DEFAULT_TOKEN_TTL = 3600  # seconds

# UPS activity status type -> delivery status
ACTIVITY_STATUS_MAP = {
    "D": "delivered",
    "I": "in_transit",
    "P": "in_transit",  # picked up
    "M": "pending",  # manifest only
    "X": "exception",
    "RS": "returned",
}


@dataclass
class TokenCache:
    """Bearer token shared across calls, refreshed before it expires."""
    access_token: Optional[str] = None
    expires_at: float = 0.0

    def is_valid(self, now: Optional[float] = None) -> bool:
        now = time.time() if now is None else now
        return bool(self.access_token) and now < self.expires_at

    def store(self, access_token: str, expires_in: Optional[float], now: Optional[float] = None):
        now = time.time() if now is None else now
        self.access_token = access_token
        self.expires_at = now + float(expires_in or DEFAULT_TOKEN_TTL) - TOKEN_REFRESH_MARGIN

    def clear(self):
        self.access_token = None
        self.expires_at = 0.0


def _empty_result(tracking_number: str, status: str) -> Dict[str, Any]:
    return {
        "tracking_number": tracking_number,
        "status": status,
        "delivery_status": "pending",
        "scheduled_delivery": None,
        "actual_delivery": None,
        "last_activity": None,
    }


def _first(value):
    """UPS returns either a list or a single object for repeated elements."""
    if isinstance(value, list):
        return value[0] if value else None
    return value


def _pick(obj: Dict, *keys):
    for key in keys:
        value = obj.get(key)
        if value not in (None, ""):
            return value
    return None


def parse_ups_date(date_str: Optional[str]) -> Optional[datetime]:
    """Parse UPS YYYYMMDD into a naive UTC midnight datetime."""
    if not date_str:
        return None
    clean = re.sub(r"[^0-9]", "", str(date_str))
    if len(clean) < 8:
        return None
    return datetime(int(clean[0:4]), int(clean[4:6]), int(clean[6:8]))


def parse_ups_datetime(date_str: Optional[str], time_str: Optional[str]) -> Optional[datetime]:
    """Parse UPS YYYYMMDD + HHMMSS into a naive UTC datetime."""
    day = parse_ups_date(date_str)
    if day is None:
        return None
    clean = re.sub(r"[^0-9]", "", str(time_str or ""))
    if len(clean) >= 6:
        return day.replace(hour=int(clean[0:2]), minute=int(clean[2:4]), second=int(clean[4:6]))
    return day


def _error_code(data: Any) -> Optional[str]:
    try:
        errors = data["response"]["errors"]
        return str(errors[0].get("code"))
    except (KeyError, IndexError, TypeError, AttributeError):
        return None


def parse_tracking_response(data: Any, tracking_number: str) -> Dict[str, Any]:
    """
    Normalize either UPS tracking response shape.

    status is 'ok' when a shipment section was found, 'unknown' when it was
    missing, and 'parse_error' when the structure could not be read.
    """
    result = _empty_result(tracking_number, "unknown")

    try:
        data = data or {}
        shipment = None
        if isinstance(data.get("trackResponse"), dict):
            shipment = _first(data["trackResponse"].get("shipment"))
        if shipment is None and isinstance(data.get("TrackResponse"), dict):
            shipment = _first(data["TrackResponse"].get("Shipment"))

        if not shipment:
            warnings = (data.get("trackResponse") or {}).get("warnings") or (data.get("response") or {}).get("errors")
            if warnings:
                log.info(f"UPS tracking warnings for {tracking_number}: {str(warnings)[:500]}")
            log.warning(f"No shipment data in UPS tracking response for {tracking_number}")
            return result

        scheduled = _first(_pick(shipment, "scheduledDeliveryDate", "ScheduledDeliveryDate"))
        if isinstance(scheduled, dict):
            scheduled = scheduled.get("date")
        result["scheduled_delivery"] = parse_ups_date(scheduled)

        package = _first(_pick(shipment, "package", "Package"))
        if package:
            delivery_date = _pick(package, "deliveryDate", "DeliveryDate")
            if delivery_date:
                delivery_date = _first(delivery_date)
                if isinstance(delivery_date, dict):
                    delivery_date = delivery_date.get("date")
                result["actual_delivery"] = parse_ups_date(delivery_date)

            if _pick(package, "deliveryIndicator", "DeliveryIndicator") == "Y":
                result["delivery_status"] = "delivered"

            activity = _first(_pick(package, "activity", "Activity"))
            if activity:
                status = activity.get("status") or activity.get("Status") or {}
                status_type = _pick(status, "type", "Type")
                activity_date = _pick(activity, "date", "Date")
                activity_time = _pick(activity, "time", "Time")

                result["last_activity"] = {
                    "type": status_type,
                    "description": _pick(status, "description", "Description"),
                    "date": activity_date,
                    "time": activity_time,
                }
                result["delivery_status"] = ACTIVITY_STATUS_MAP.get(status_type, "in_transit")

                if result["delivery_status"] == "delivered" and result["actual_delivery"] is None:
                    result["actual_delivery"] = parse_ups_datetime(activity_date, activity_time)

        result["status"] = "ok"
    except Exception as e:
        log.error(f"Error parsing UPS tracking response for {tracking_number}: {e}")
        result["status"] = "parse_error"

    return result


class UPSConnector(BaseConnector):
    """Connector for the UPS OAuth and Track APIs."""

    REQUEST_TIMEOUT = 15
    TOKEN_TIMEOUT = 10

    def __init__(
        self,
        token_cache: Optional[TokenCache] = None,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
        token_url: Optional[str] = None,
        tracking_url: Optional[str] = None,
        limiter: Optional[RateLimiter] = None,
    ):
        super().__init__("UPS")
        self.token_cache = token_cache if token_cache is not None else TokenCache()
        self.client_id = client_id if client_id is not None else settings.ups_client_id
        self.client_secret = client_secret if client_secret is not None else settings.ups_client_secret
        self.token_url = token_url or settings.ups_token_url
        self.tracking_url = (tracking_url or settings.ups_tracking_url).rstrip("/")
        self.limiter = limiter or ups_limiter

    async def get_access_token(self) -> str:
        """Return the cached bearer token, fetching a new one when stale."""
        if self.token_cache.is_valid():
            return self.token_cache.access_token

        response = await self._request_json(
            "POST",
            self.token_url,
            headers={"Content-Type": "application/x-www-form-urlencoded"},
            data={"grant_type": "client_credentials"},
            auth=aiohttp.BasicAuth(self.client_id, self.client_secret),
            timeout=self.TOKEN_TIMEOUT,
        )
        self._raise_for_status(response, self.token_url)

        body = response.data or {}
        token = body.get("access_token")
        if not token:
            raise ApiError(self.name, response.status, self.token_url, body)

        self.token_cache.store(token, body.get("expires_in"))
        log.debug("UPS OAuth token refreshed")
        return token

    async def get_tracking_details(self, tracking_number: str) -> Dict[str, Any]:
        """
        Fetch and parse tracking for one tracking number.

        404 or code 151044 -> status 'not_found'; any other HTTP error ->
        'error'. Connection errors and timeouts are raised.
        """
        await self.limiter.wait()

        try:
            token = await self.get_access_token()
        except ApiError as e:
            log.error(f"Failed to get UPS OAuth token: {e}")
            return _empty_result(tracking_number, "error")

        url = f"{self.tracking_url}/{tracking_number}"
        response = await self._request_json(
            "GET",
            url,
            headers={
                "Authorization": f"Bearer {token}",
                "transId": uuid.uuid4().hex,
                "transactionSrc": settings.ups_transaction_source,
                "Content-Type": "application/json",
            },
            params={"locale": "en_US", "returnSignature": "false"},
        )

        if response.status == 404 or _error_code(response.data) == NO_TRACKING_INFO_CODE:
            log.warning(f"UPS tracking: no tracking info available yet for {tracking_number}")
            return _empty_result(tracking_number, "not_found")

        if response.status >= 400:
            self.error_count += 1
            if response.status == 401:
                self.token_cache.clear()
            log.error(f"UPS tracking returned HTTP {response.status} for {tracking_number}")
            return _empty_result(tracking_number, "error")

        return parse_tracking_response(response.data, tracking_number)
