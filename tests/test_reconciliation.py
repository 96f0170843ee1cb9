"""
Webhook reconciliation end to end against in-memory connectors and SQLite.
"""
from datetime import datetime

import pytest

from shiprecon.models.order import Order
from shiprecon.models.shipment import Shipment
from shiprecon.services.reconciliation_service import ReconciliationService
from shiprecon.services.shipment_normalizer import (
    CURRENT_EVENT_TAG,
    LEGACY_EVENT_TAG,
    WebhookNotification,
)

from fakes import (
    SHOPIFY_ORDER_ID,
    FakeShipStation,
    FakeShopify,
    FakeUPS,
    legacy_order,
    legacy_shipment,
    run,
    shopify_order_data,
    tracking_result,
    v2_label,
    v2_shipment,
)

TN = "1ZR1833C0001234567"
SHIP_NOTIFY = WebhookNotification(LEGACY_EVENT_TAG, "https://ssapi.test/shipments?batchId=1")
LABEL_CREATED = WebhookNotification(CURRENT_EVENT_TAG, "https://api.test/v2/labels?batch_id=1")


def make_service(db, shipments=None, orders=None, shopify_orders=None, ups_results=None, **shipstation_kwargs):
    shipstation = FakeShipStation(
        shipments=shipments if shipments is not None else [legacy_shipment()],
        orders=orders if orders is not None else {"555": legacy_order()},
        **shipstation_kwargs,
    )
    shopify = shopify_orders if isinstance(shopify_orders, FakeShopify) else FakeShopify(
        orders=shopify_orders if shopify_orders is not None else {SHOPIFY_ORDER_ID: shopify_order_data()}
    )
    ups = FakeUPS(ups_results or {})
    return ReconciliationService(db, shipstation, shopify, ups)


# ============================================================================
# Creating and linking
# ============================================================================


class TestNewShipment:

    def test_creates_order_and_linked_shipment(self, db):
        service = make_service(db, ups_results={
            TN: tracking_result(TN, scheduled=datetime(2026, 2, 5)),
        })

        counts = run(service.process_notification(SHIP_NOTIFY))

        assert counts["received"] == 1
        assert counts["created"] == 1
        assert counts["failed"] == 0

        order = db.query(Order).one()
        assert order.shopify_order_id == SHOPIFY_ORDER_ID
        assert order.shopify_order_number == "#26276"
        assert order.shipstation_order_number == "26276"
        assert float(order.item_revenue) == pytest.approx(90.0)
        assert float(order.total_cogs) == pytest.approx(30.0)
        assert order.package_count == 1
        assert order.is_chewy_order is False

        shipment = db.query(Shipment).one()
        assert shipment.order_id == order.id
        assert shipment.tracking_number == TN
        assert shipment.ups_account_type == "nda"
        assert float(shipment.weight_entered) == pytest.approx(2.0)
        assert shipment.ship_to_city == "Austin"
        assert shipment.is_multi_package is False
        assert float(shipment.split_revenue) == pytest.approx(90.0)
        assert float(shipment.split_cogs) == pytest.approx(30.0)
        assert shipment.promised_delivery_date == datetime(2026, 2, 5)

    def test_current_label_webhook(self, db):
        service = make_service(
            db,
            shipments=[],
            orders={},
            labels=[v2_label()],
            v2_shipments={"se-901": v2_shipment()},
        )

        counts = run(service.process_notification(LABEL_CREATED))

        assert counts["created"] == 1
        shipment = db.query(Shipment).one()
        assert shipment.shipstation_label_id == "se-lbl-1"
        assert shipment.order.shopify_order_id == SHOPIFY_ORDER_ID

    def test_non_ups_shipment_is_not_tracked(self, db):
        usps = legacy_shipment(tracking_number="9400111899223100000001")
        usps["carrierCode"] = "stamps_com"
        service = make_service(db, shipments=[usps])

        counts = run(service.process_notification(SHIP_NOTIFY))

        assert counts["created"] == 1
        assert service.ups.calls == []
        shipment = db.query(Shipment).one()
        assert shipment.ups_account_type is None
        assert shipment.promised_delivery_date is None

    def test_tracking_failure_does_not_fail_shipment(self, db):
        service = make_service(db, ups_results={TN: RuntimeError("UPS down")})

        counts = run(service.process_notification(SHIP_NOTIFY))

        assert counts["created"] == 1
        assert counts["failed"] == 0
        assert db.query(Shipment).one().promised_delivery_date is None

    def test_missing_tracking_number_is_skipped(self, db):
        raw = legacy_shipment()
        raw["trackingNumber"] = None
        service = make_service(db, shipments=[raw])

        counts = run(service.process_notification(SHIP_NOTIFY))

        assert counts["skipped"] == 1
        assert db.query(Shipment).count() == 0


# ============================================================================
# Duplicates and reprocessing
# ============================================================================


class TestIdempotency:

    def test_redelivered_webhook_is_duplicate(self, db):
        service = make_service(db)

        run(service.process_notification(SHIP_NOTIFY))
        counts = run(service.process_notification(SHIP_NOTIFY))

        assert counts["duplicate"] == 1
        assert counts["created"] == 0
        assert db.query(Shipment).count() == 1
        assert db.query(Order).count() == 1
        assert service.shopify.calls == [SHOPIFY_ORDER_ID]

    def test_unlinked_shipment_is_reprocessed(self, db):
        service = make_service(db, shopify_orders={})

        first = run(service.process_notification(SHIP_NOTIFY))
        assert first["created"] == 1
        assert db.query(Shipment).one().order_id is None
        assert db.query(Order).count() == 0

        service.shopify.orders[SHOPIFY_ORDER_ID] = shopify_order_data()
        second = run(service.process_notification(SHIP_NOTIFY))

        assert second["updated"] == 1
        shipment = db.query(Shipment).one()
        assert shipment.order_id == db.query(Order).one().id
        assert float(shipment.split_revenue) == pytest.approx(90.0)


# ============================================================================
# Enrichment failures
# ============================================================================


class TestEnrichmentFallbacks:

    def test_shopify_error_creates_basic_order(self, db):
        service = make_service(db, shopify_orders=FakeShopify(failing=True))

        counts = run(service.process_notification(SHIP_NOTIFY))

        assert counts["created"] == 1
        order = db.query(Order).one()
        assert order.shopify_order_id == SHOPIFY_ORDER_ID
        assert order.shipstation_order_number == "26276"
        assert order.item_revenue is None
        assert order.total_cogs is None

        shipment = db.query(Shipment).one()
        assert shipment.order_id == order.id
        assert shipment.split_revenue is None
        assert shipment.split_cogs is None

    def test_no_resolvable_order_leaves_shipment_unlinked(self, db):
        service = make_service(db, orders={"555": legacy_order(external_order_id="12345", order_key="x")})
        service.shipstation.shipments[0]["orderKey"] = None

        counts = run(service.process_notification(SHIP_NOTIFY))

        assert counts["created"] == 1
        assert db.query(Shipment).one().order_id is None
        assert service.shopify.calls == []


# ============================================================================
# Chewy and voids
# ============================================================================


def test_chewy_order_records_order_but_no_shipment(db):
    raw = legacy_shipment(order_number="CH4471023")
    service = make_service(
        db,
        shipments=[raw],
        orders={"555": legacy_order(order_number="CH4471023")},
    )

    counts = run(service.process_notification(SHIP_NOTIFY))

    assert counts["external_marketplace"] == 1
    assert db.query(Shipment).count() == 0
    order = db.query(Order).one()
    assert order.is_chewy_order is True
    assert order.shipstation_order_number == "CH4471023"


def test_chewy_flag_is_raised_on_existing_order(db):
    db.add(Order(shopify_order_id=SHOPIFY_ORDER_ID, shipstation_order_number="CH4471023", is_chewy_order=False))
    db.commit()
    service = make_service(
        db,
        shipments=[legacy_shipment(order_number="CH4471023")],
        orders={"555": legacy_order(order_number="CH4471023")},
    )

    counts = run(service.process_notification(SHIP_NOTIFY))

    assert counts["external_marketplace"] == 1
    order = db.query(Order).one()
    db.refresh(order)
    assert order.is_chewy_order is True
    assert db.query(Shipment).count() == 0


class TestVoids:

    def test_void_marks_shipment_and_recounts(self, db):
        service = make_service(db)
        run(service.process_notification(SHIP_NOTIFY))

        service.shipstation.shipments = [legacy_shipment(voided=True)]
        counts = run(service.process_notification(SHIP_NOTIFY))

        assert counts["voided"] == 1
        shipment = db.query(Shipment).one()
        assert shipment.is_voided is True
        assert shipment.delivery_status == "voided"
        assert shipment.split_revenue is None
        assert db.query(Order).one().package_count == 0

    def test_void_of_unknown_label(self, db):
        service = make_service(db, shipments=[legacy_shipment(voided=True)])

        counts = run(service.process_notification(SHIP_NOTIFY))

        assert counts["voided"] == 1
        assert db.query(Shipment).count() == 0


# ============================================================================
# Batch behaviour
# ============================================================================


class TestBatch:

    def test_one_bad_shipment_does_not_stop_the_batch(self, db):
        broken = legacy_shipment(tracking_number="1ZR1833C0009999999", shipment_id=112)
        broken["weight"] = "heavy"
        service = make_service(db, shipments=[broken, legacy_shipment()])

        counts = run(service.process_notification(SHIP_NOTIFY))

        assert counts["received"] == 2
        assert counts["failed"] == 1
        assert counts["created"] == 1
        assert db.query(Shipment).one().tracking_number == TN

    def test_unknown_event_type_is_ignored(self, db):
        service = make_service(db)

        counts = run(service.process_notification(WebhookNotification("ITEM_SHIP_NOTIFY", "https://x")))

        assert counts["received"] == 0
        assert db.query(Shipment).count() == 0

    def test_fetch_failure_propagates(self, db):
        service = make_service(db, failing_webhook=True)

        with pytest.raises(RuntimeError):
            run(service.process_notification(SHIP_NOTIFY))
