"""
Schema bootstrap and model serialization.
"""
import os
from datetime import datetime

from sqlalchemy import inspect, text

from shiprecon.models.base import add_missing_columns, build_engine, init_db
from shiprecon.models.order import Order

from fakes import SHOPIFY_ORDER_ID, make_shipment


def test_init_db_adds_columns_to_existing_tables(engine):
    with engine.connect() as conn:
        conn.execute(text("CREATE TABLE orders (id INTEGER PRIMARY KEY, shopify_order_id BIGINT NOT NULL)"))
        conn.commit()

    init_db(engine)

    columns = {c["name"] for c in inspect(engine).get_columns("orders")}
    assert "package_count" in columns
    assert "total_cogs" in columns
    assert "tracking_number" in {c["name"] for c in inspect(engine).get_columns("shipments")}


def test_add_missing_columns_is_noop_on_current_schema(db, engine):
    assert add_missing_columns(engine) == []


def test_relative_sqlite_path_is_made_absolute(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    engine = build_engine("sqlite:///relative.db")
    try:
        assert os.path.realpath(engine.url.database) == os.path.realpath(tmp_path / "relative.db")
    finally:
        engine.dispose()


def test_shipment_to_dict(db):
    shipment = make_shipment(
        db, "1ZR1833C0001234567",
        ship_date=datetime(2026, 2, 1),
        label_cost=12.5,
        split_revenue=30.0,
        ups_account_type="nda",
    )

    data = shipment.to_dict()

    assert data["tracking_number"] == "1ZR1833C0001234567"
    assert data["ship_date"] == "2026-02-01T00:00:00"
    assert data["label_cost"] == 12.5
    assert data["split_revenue"] == 30.0
    assert data["split_cogs"] is None
    assert data["delivery_status"] == "pending"


def test_order_to_dict(db):
    order = Order(shopify_order_id=SHOPIFY_ORDER_ID, item_revenue=90, package_count=3)
    db.add(order)
    db.commit()

    data = order.to_dict()

    assert data["shopify_order_id"] == SHOPIFY_ORDER_ID
    assert data["item_revenue"] == 90.0
    assert data["total_cogs"] is None
    assert data["package_count"] == 3
