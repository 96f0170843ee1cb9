"""Create orders, shipments, invoice_line_items and invoice_uploads tables

Revision ID: a1c4e7f2b9d0
Revises:
Create Date: 2026-02-10
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect


# revision identifiers
revision: str = 'a1c4e7f2b9d0'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _has_table(table_name):
    bind = op.get_bind()
    insp = inspect(bind)
    return table_name in insp.get_table_names()


def upgrade() -> None:
    # ── orders ──
    if not _has_table('orders'):
        op.create_table(
            'orders',
            sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
            sa.Column('shopify_order_id', sa.BigInteger(), nullable=False, unique=True, index=True),
            sa.Column('shopify_order_number', sa.String(), nullable=True),
            sa.Column('shipstation_order_number', sa.String(), nullable=True, index=True),
            sa.Column('order_date', sa.DateTime(), nullable=True, index=True),
            sa.Column('customer_name', sa.String(), nullable=True),
            sa.Column('customer_email', sa.String(), nullable=True),
            sa.Column('items_json', sa.JSON(), nullable=True),
            sa.Column('item_revenue', sa.Numeric(10, 2), nullable=True),
            sa.Column('total_cogs', sa.Numeric(10, 2), nullable=True),
            sa.Column('shipping_paid_by_customer', sa.Numeric(10, 2), nullable=True),
            sa.Column('shipping_method_selected', sa.String(), nullable=True),
            sa.Column('order_total', sa.Numeric(10, 2), nullable=True),
            sa.Column('package_count', sa.Integer(), server_default='1'),
            sa.Column('is_chewy_order', sa.Boolean(), server_default=sa.false()),
            sa.Column('created_at', sa.DateTime(), server_default=sa.func.now()),
            sa.Column('updated_at', sa.DateTime(), server_default=sa.func.now()),
        )

    # ── shipments ──
    if not _has_table('shipments'):
        op.create_table(
            'shipments',
            sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
            sa.Column('order_id', sa.Integer(), sa.ForeignKey('orders.id'), nullable=True, index=True),
            sa.Column('shipstation_shipment_id', sa.String(), nullable=True),
            sa.Column('shipstation_label_id', sa.String(), nullable=True),
            sa.Column('tracking_number', sa.String(), nullable=False, unique=True, index=True),
            sa.Column('carrier_code', sa.String(), nullable=True, index=True),
            sa.Column('service_code', sa.String(), nullable=True),
            sa.Column('ups_account_type', sa.String(), nullable=True, index=True),
            sa.Column('ship_date', sa.DateTime(), nullable=True, index=True),
            sa.Column('promised_delivery_date', sa.DateTime(), nullable=True),
            sa.Column('actual_delivery_date', sa.DateTime(), nullable=True),
            sa.Column('delivery_status', sa.String(), nullable=False, server_default='pending', index=True),
            sa.Column('is_late', sa.Boolean(), nullable=True),
            sa.Column('is_voided', sa.Boolean(), nullable=False, server_default=sa.false()),
            # Package (inches / pounds)
            sa.Column('dimensions_length', sa.Numeric(8, 2), nullable=True),
            sa.Column('dimensions_width', sa.Numeric(8, 2), nullable=True),
            sa.Column('dimensions_height', sa.Numeric(8, 2), nullable=True),
            sa.Column('weight_entered', sa.Numeric(8, 3), nullable=True),
            sa.Column('label_cost', sa.Numeric(10, 2), nullable=True),
            # Destination
            sa.Column('ship_to_name', sa.String(), nullable=True),
            sa.Column('ship_to_city', sa.String(), nullable=True),
            sa.Column('ship_to_state', sa.String(), nullable=True),
            sa.Column('ship_to_zip', sa.String(), nullable=True),
            sa.Column('is_residential', sa.Boolean(), server_default=sa.false()),
            # Per-package splits
            sa.Column('is_multi_package', sa.Boolean(), server_default=sa.false()),
            sa.Column('split_revenue', sa.Numeric(12, 4), nullable=True),
            sa.Column('split_cogs', sa.Numeric(12, 4), nullable=True),
            sa.Column('split_shipping_paid', sa.Numeric(12, 4), nullable=True),
            sa.Column('created_at', sa.DateTime(), server_default=sa.func.now()),
            sa.Column('updated_at', sa.DateTime(), server_default=sa.func.now()),
        )

    # ── invoice_line_items ──
    if not _has_table('invoice_line_items'):
        op.create_table(
            'invoice_line_items',
            sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
            sa.Column('tracking_number', sa.String(), nullable=True, index=True),
            sa.Column('invoice_number', sa.String(), nullable=True, index=True),
            sa.Column('invoice_date', sa.Date(), nullable=True),
            sa.Column('ups_account_type', sa.String(), nullable=True),
            sa.Column('pickup_date', sa.Date(), nullable=True),
            sa.Column('service', sa.String(), nullable=True),
            sa.Column('zone', sa.String(), nullable=True),
            sa.Column('receiver_zip', sa.String(), nullable=True),
            sa.Column('customer_weight', sa.Numeric(8, 2), nullable=True),
            sa.Column('billed_weight', sa.Numeric(8, 2), nullable=True),
            sa.Column('entered_dimensions', sa.String(), nullable=True),
            sa.Column('audited_dimensions', sa.String(), nullable=True),
            # Charges
            sa.Column('published_charge', sa.Numeric(10, 2), nullable=True),
            sa.Column('incentive_credit', sa.Numeric(10, 2), nullable=True),
            sa.Column('original_billed_total', sa.Numeric(10, 2), nullable=True),
            sa.Column('fuel_surcharge', sa.Numeric(10, 2), nullable=True),
            sa.Column('residential_surcharge', sa.Numeric(10, 2), nullable=True),
            sa.Column('large_package_surcharge', sa.Numeric(10, 2), nullable=True),
            sa.Column('das_extended', sa.Numeric(10, 2), nullable=True),
            sa.Column('additional_handling', sa.Numeric(10, 2), nullable=True),
            sa.Column('adjustment_amount', sa.Numeric(10, 2), nullable=True),
            sa.Column('final_billed_total', sa.Numeric(10, 2), nullable=True),
            sa.Column('receiver_name', sa.String(), nullable=True),
            sa.Column('receiver_company', sa.String(), nullable=True),
            sa.Column('receiver_city', sa.String(), nullable=True),
            sa.Column('receiver_state', sa.String(), nullable=True),
            sa.Column('shipment_id', sa.Integer(), sa.ForeignKey('shipments.id'), nullable=True, index=True),
            sa.Column('created_at', sa.DateTime(), server_default=sa.func.now()),
        )

    # ── invoice_uploads ──
    if not _has_table('invoice_uploads'):
        op.create_table(
            'invoice_uploads',
            sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
            sa.Column('invoice_number', sa.String(), nullable=True, index=True),
            sa.Column('ups_account_type', sa.String(), nullable=True),
            sa.Column('invoice_date', sa.Date(), nullable=True),
            sa.Column('invoice_total', sa.Numeric(12, 2), nullable=True),
            sa.Column('line_item_count', sa.Integer(), server_default='0'),
            sa.Column('matched_count', sa.Integer(), nullable=True),
            sa.Column('unmatched_count', sa.Integer(), nullable=True),
            sa.Column('reconciled', sa.Boolean(), server_default=sa.false()),
            sa.Column('uploaded_at', sa.DateTime(), server_default=sa.func.now()),
        )


def downgrade() -> None:
    for table_name in ('invoice_uploads', 'invoice_line_items', 'shipments', 'orders'):
        if _has_table(table_name):
            op.drop_table(table_name)
