"""
ShipStation webhook normalization.

SHIP_NOTIFY (V1) webhooks point at a list of V1 shipments; LABEL_CREATED_V2
webhooks point at a list of V2 labels, each of which may reference a V2
shipment. Both are turned into CanonicalShipmentEvent so the reconciliation
engine never looks at raw payloads.

Linking a shipment to its Shopify order runs through ORDER_LINK_RESOLVERS in
order; the first candidate whose leading dash segment is a numeric ID of
more than five digits wins.
"""
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union
import re

from shiprecon.utils.helpers import parse_datetime
from shiprecon.utils.logger import log

LEGACY_EVENT_TAG = "SHIP_NOTIFY"
CURRENT_EVENT_TAG = "LABEL_CREATED_V2"

MIN_ORDER_ID_DIGITS = 6

_NUMERIC_RE = re.compile(r"^[0-9]+$")

# grams / kilograms are converted into the nearest imperial unit
_GRAMS_PER_OUNCE = 28.349523125
_POUNDS_PER_KILOGRAM = 2.20462262185


@dataclass
class WebhookNotification:
    resource_type: Optional[str]
    resource_url: Optional[str]


@dataclass(frozen=True)
class ShipTo:
    name: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    postal_code: Optional[str] = None
    residential: bool = False


@dataclass(frozen=True)
class Dimensions:
    length: Optional[float] = None
    width: Optional[float] = None
    height: Optional[float] = None


@dataclass
class LegacyShipmentEvent:
    """A V1 shipment record from a SHIP_NOTIFY resource."""
    shipment: Dict[str, Any]


@dataclass
class CurrentLabelEvent:
    """A V2 label plus its V2 shipment, when that could be fetched."""
    label: Dict[str, Any]
    shipment: Optional[Dict[str, Any]] = None


RawShipmentEvent = Union[LegacyShipmentEvent, CurrentLabelEvent]


@dataclass
class CanonicalShipmentEvent:
    source: str  # legacy / current
    tracking_number: Optional[str]
    shipment_id: Optional[str] = None
    label_id: Optional[str] = None
    carrier_code: Optional[str] = None
    service_code: Optional[str] = None
    ship_date: Optional[datetime] = None
    voided: bool = False
    cost: Optional[float] = None
    weight_value: Optional[float] = None
    weight_units: Optional[str] = None  # ounces / pounds
    dimensions: Optional[Dimensions] = None
    ship_to: ShipTo = field(default_factory=ShipTo)
    shipstation_order_id: Optional[str] = None
    order_number: Optional[str] = None
    order_key: Optional[str] = None
    external_shipment_id: Optional[str] = None
    shopify_order_id: Optional[int] = None

    @property
    def weight_lbs(self) -> Optional[float]:
        """Weight in pounds; None for missing or non-positive weights."""
        if self.weight_value is None or self.weight_value <= 0:
            return None
        if self.weight_units == "ounces":
            return self.weight_value / 16
        return self.weight_value


def _str_or_none(value) -> Optional[str]:
    if value is None or value == "":
        return None
    return str(value).strip() or None


def _float_or_none(value) -> Optional[float]:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _first(value):
    if isinstance(value, list):
        return value[0] if value else None
    return value


def normalize_weight(value, units) -> tuple:
    """Convert a weight into (value, 'ounces' | 'pounds')."""
    value = _float_or_none(value)
    unit = (units or "").lower()
    if value is None:
        return None, None
    if unit in ("ounce", "ounces", "oz"):
        return value, "ounces"
    if unit in ("gram", "grams", "g"):
        return value / _GRAMS_PER_OUNCE, "ounces"
    if unit in ("kilogram", "kilograms", "kg"):
        return value * _POUNDS_PER_KILOGRAM, "pounds"
    return value, "pounds"


def _dimensions(raw: Optional[Dict]) -> Optional[Dimensions]:
    if not raw:
        return None
    factor = 1 / 2.54 if (raw.get("unit") or raw.get("units") or "").lower().startswith("centimeter") else 1
    values = [_float_or_none(raw.get(k)) for k in ("length", "width", "height")]
    length, width, height = [v * factor if v is not None else None for v in values]
    if length is None and width is None and height is None:
        return None
    return Dimensions(length=length, width=width, height=height)


def normalize_legacy(event: LegacyShipmentEvent) -> CanonicalShipmentEvent:
    s = event.shipment
    weight = s.get("weight") or {}
    weight_value, weight_units = normalize_weight(weight.get("value"), weight.get("units"))
    ship_to = s.get("shipTo") or {}

    return CanonicalShipmentEvent(
        source="legacy",
        tracking_number=_str_or_none(s.get("trackingNumber")),
        shipment_id=_str_or_none(s.get("shipmentId")),
        label_id=_str_or_none(s.get("labelId")),
        carrier_code=s.get("carrierCode"),
        service_code=s.get("serviceCode"),
        ship_date=parse_datetime(s.get("shipDate")),
        voided=bool(s.get("voided")),
        cost=_float_or_none(s.get("shipmentCost")),
        weight_value=weight_value,
        weight_units=weight_units,
        dimensions=_dimensions(s.get("dimensions")),
        ship_to=ShipTo(
            name=ship_to.get("name"),
            city=ship_to.get("city"),
            state=ship_to.get("state"),
            postal_code=ship_to.get("postalCode"),
            residential=bool(ship_to.get("residential")),
        ),
        shipstation_order_id=_str_or_none(s.get("orderId")),
        order_number=_str_or_none(s.get("orderNumber")),
        order_key=_str_or_none(s.get("orderKey")),
    )


def normalize_current(event: CurrentLabelEvent) -> CanonicalShipmentEvent:
    """
    Build a canonical event from a V2 label.

    Without a V2 shipment only label fields are used and the order linkage
    fields stay empty.
    """
    label = event.label
    shipment = event.shipment or {}

    package = _first(shipment.get("packages")) or _first(label.get("packages")) or {}
    weight = package.get("weight") or shipment.get("total_weight") or {}
    weight_value, weight_units = normalize_weight(weight.get("value"), weight.get("unit"))
    ship_to = shipment.get("ship_to") or {}
    cost = label.get("shipment_cost") or {}

    return CanonicalShipmentEvent(
        source="current",
        tracking_number=_str_or_none(label.get("tracking_number")),
        shipment_id=_str_or_none(label.get("shipment_id")),
        label_id=_str_or_none(label.get("label_id")),
        carrier_code=label.get("carrier_code") or shipment.get("carrier_code"),
        service_code=label.get("service_code") or shipment.get("service_code"),
        ship_date=parse_datetime(label.get("ship_date") or shipment.get("ship_date")),
        voided=bool(label.get("voided")) or label.get("status") == "voided",
        cost=_float_or_none(cost.get("amount") if isinstance(cost, dict) else cost),
        weight_value=weight_value,
        weight_units=weight_units,
        dimensions=_dimensions(package.get("dimensions")),
        ship_to=ShipTo(
            name=ship_to.get("name"),
            city=ship_to.get("city_locality"),
            state=ship_to.get("state_province"),
            postal_code=ship_to.get("postal_code"),
            residential=ship_to.get("address_residential_indicator") == "yes",
        ),
        order_number=_str_or_none(shipment.get("shipment_number")),
        external_shipment_id=_str_or_none(shipment.get("external_shipment_id")),
    )


def normalize_event(event: RawShipmentEvent) -> CanonicalShipmentEvent:
    if isinstance(event, LegacyShipmentEvent):
        return normalize_legacy(event)
    if isinstance(event, CurrentLabelEvent):
        return normalize_current(event)
    raise TypeError(f"Unsupported shipment event type: {type(event).__name__}")


def accept_order_id_candidate(candidate) -> Optional[int]:
    """
    Extract a Shopify order ID from values like "6608984637748" or
    "6608984637748-7587786555700". Rejects short or non-numeric segments.
    """
    if candidate is None:
        return None
    segment = str(candidate).strip().split("-")[0]
    if not _NUMERIC_RE.match(segment) or len(segment) < MIN_ORDER_ID_DIGITS:
        return None
    return int(segment)


def _external_order_id(order: Optional[Dict]) -> Optional[str]:
    if not order:
        return None
    return order.get("externalOrderId") or (order.get("advancedOptions") or {}).get("customField1")


class ResolutionContext:
    """Per-event memo of the V1 order so each lookup happens at most once."""

    def __init__(self, shipstation):
        self.shipstation = shipstation
        self.legacy_order: Optional[Dict] = None
        self._looked_up_by_id = False
        self._looked_up_by_number = False

    async def order_by_id(self, order_id: str) -> Optional[Dict]:
        if not self._looked_up_by_id:
            self._looked_up_by_id = True
            order = await self.shipstation.get_order(order_id)
            if order:
                self.legacy_order = order
        return self.legacy_order

    async def order_by_number(self, order_number: str) -> Optional[Dict]:
        if not self._looked_up_by_number:
            self._looked_up_by_number = True
            orders = await self.shipstation.find_orders_by_number(order_number)
            exact = [o for o in orders if str(o.get("orderNumber")) == order_number]
            found = (exact or orders or [None])[0]
            if found and self.legacy_order is None:
                self.legacy_order = found
            return found
        return self.legacy_order


OrderLinkResolver = Callable[[CanonicalShipmentEvent, ResolutionContext], Awaitable[Optional[str]]]


async def from_legacy_order_id(event: CanonicalShipmentEvent, context: ResolutionContext) -> Optional[str]:
    if not event.shipstation_order_id:
        return None
    return _external_order_id(await context.order_by_id(event.shipstation_order_id))


async def from_legacy_order_number(event: CanonicalShipmentEvent, context: ResolutionContext) -> Optional[str]:
    if not event.order_number:
        return None
    return _external_order_id(await context.order_by_number(event.order_number))


async def from_external_shipment_id(event: CanonicalShipmentEvent, context: ResolutionContext) -> Optional[str]:
    return event.external_shipment_id


async def from_legacy_order_key(event: CanonicalShipmentEvent, context: ResolutionContext) -> Optional[str]:
    order = context.legacy_order
    if order is None and event.shipstation_order_id:
        order = await context.order_by_id(event.shipstation_order_id)
    if order is None and event.order_number:
        order = await context.order_by_number(event.order_number)
    return (order or {}).get("orderKey") or event.order_key


ORDER_LINK_RESOLVERS: List[OrderLinkResolver] = [
    from_legacy_order_id,
    from_legacy_order_number,
    from_external_shipment_id,
    from_legacy_order_key,
]


class ShipmentNormalizer:
    """Fetches webhook resources and turns them into canonical shipment events."""

    def __init__(self, shipstation, resolvers: Optional[List[OrderLinkResolver]] = None):
        self.shipstation = shipstation
        self.resolvers = list(resolvers) if resolvers is not None else list(ORDER_LINK_RESOLVERS)

    async def fetch_events(self, notification: WebhookNotification) -> List[RawShipmentEvent]:
        """Fetch the raw records a webhook points at. Unknown tags yield nothing."""
        if notification.resource_type not in (LEGACY_EVENT_TAG, CURRENT_EVENT_TAG):
            log.info(f"Ignoring ShipStation webhook of type {notification.resource_type}")
            return []
        if not notification.resource_url:
            log.error(f"{notification.resource_type} webhook missing resource_url")
            return []

        if notification.resource_type == LEGACY_EVENT_TAG:
            shipments = await self.shipstation.fetch_shipments_from_webhook(notification.resource_url)
            log.info(f"Fetched {len(shipments)} shipments from ShipStation")
            return [LegacyShipmentEvent(shipment=s) for s in shipments]

        labels = await self.shipstation.fetch_labels_from_webhook(notification.resource_url)
        log.info(f"Fetched {len(labels)} labels from ShipStation")
        events: List[RawShipmentEvent] = []
        for label in labels:
            events.append(CurrentLabelEvent(label=label, shipment=await self._fetch_v2_shipment(label)))
        return events

    async def _fetch_v2_shipment(self, label: Dict) -> Optional[Dict]:
        shipment_id = label.get("shipment_id")
        if not shipment_id:
            return None
        try:
            return await self.shipstation.get_shipment(shipment_id)
        except Exception as e:
            log.warning(f"Could not fetch V2 shipment {shipment_id} for label {label.get('label_id')}: {e}")
            return None

    async def resolve_order_link(self, event: CanonicalShipmentEvent) -> CanonicalShipmentEvent:
        """
        Run the resolver chain and return a copy of the event with
        shopify_order_id filled in (or None when nothing qualified).

        A failing resolver is logged and the chain moves on.
        """
        context = ResolutionContext(self.shipstation)
        shopify_order_id = None

        for resolver in self.resolvers:
            try:
                candidate = await resolver(event, context)
            except Exception as e:
                log.warning(f"Order link lookup {resolver.__name__} failed for {event.tracking_number}: {e}")
                continue
            if candidate is None:
                continue
            shopify_order_id = accept_order_id_candidate(candidate)
            if shopify_order_id is not None:
                log.debug(f"Resolved {event.tracking_number} to Shopify order {shopify_order_id} via {resolver.__name__}")
                break
            log.warning(f"Rejected order ID candidate {candidate!r} from {resolver.__name__} for {event.tracking_number}")

        order_number = event.order_number
        if not order_number and context.legacy_order:
            order_number = _str_or_none(context.legacy_order.get("orderNumber"))

        return replace(event, shopify_order_id=shopify_order_id, order_number=order_number)
