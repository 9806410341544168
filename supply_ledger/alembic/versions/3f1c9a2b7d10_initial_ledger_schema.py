"""initial ledger schema

Revision ID: 3f1c9a2b7d10
Revises:
Create Date: 2026-10-19
"""

from __future__ import annotations

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "3f1c9a2b7d10"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

# SQLAlchemy persiste le NOM des membres d'enum
warehouse_type = sa.Enum("domestic", "overseas", name="warehouse_type")
contract_status = sa.Enum(
    "pending_shipment", "partial_shipment", "shipped", "settled", "cancelled", name="contract_status"
)
delivery_order_status = sa.Enum("pending", "partial", "received", "cancelled", name="delivery_order_status")
inbound_status = sa.Enum("pending", "partial", "received", name="inbound_status")
outbound_status = sa.Enum("pending", "partial", "shipped", name="outbound_status")
shipping_method = sa.Enum("sea", "air", "express", name="shipping_method")
movement_type = sa.Enum(
    "receipt", "receipt_reversal", "issue", "issue_reversal", "adjustment", name="movement_type"
)


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    ]


def upgrade() -> None:
    # ---------- MASTER DATA ----------
    op.create_table(
        "warehouses",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("code", sa.String(64), nullable=False, unique=True),
        sa.Column("type", warehouse_type, nullable=False),
        sa.Column("address", sa.String(255)),
        sa.Column("active", sa.Boolean(), nullable=False),
    )
    op.create_table(
        "products",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("active", sa.Boolean(), nullable=False),
    )
    op.create_table(
        "product_variants",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("product_id", sa.BigInteger(), sa.ForeignKey("products.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("sku", sa.String(64), nullable=False, unique=True),
        sa.Column("color", sa.String(64)),
        sa.Column("size", sa.String(64)),
    )

    # ---------- PROCUREMENT ----------
    op.create_table(
        "purchase_contracts",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("contract_number", sa.String(64), nullable=False, unique=True),
        sa.Column("supplier_name", sa.String(255)),
        sa.Column("status", contract_status, nullable=False),
        sa.Column("total_qty", sa.Integer(), nullable=False),
        sa.Column("picked_qty", sa.Integer(), nullable=False),
        sa.Column("finished_qty", sa.Integer(), nullable=False),
        *_timestamps(),
        sa.CheckConstraint("total_qty >= 0", name="ck_contract_total_nonneg"),
        sa.CheckConstraint("picked_qty >= 0", name="ck_contract_picked_nonneg"),
        sa.CheckConstraint("finished_qty >= 0", name="ck_contract_finished_nonneg"),
    )
    op.create_table(
        "purchase_contract_items",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column(
            "contract_id",
            sa.BigInteger(),
            sa.ForeignKey("purchase_contracts.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("variant_id", sa.BigInteger(), sa.ForeignKey("product_variants.id", ondelete="SET NULL")),
        sa.Column("sku", sa.String(64), nullable=False),
        sa.Column("qty", sa.Integer(), nullable=False),
        sa.Column("picked_qty", sa.Integer(), nullable=False),
        sa.Column("finished_qty", sa.Integer(), nullable=False),
        sa.Column("sort_order", sa.Integer(), nullable=False),
        *_timestamps(),
        sa.CheckConstraint("qty >= 0", name="ck_contract_item_qty_nonneg"),
        sa.CheckConstraint("picked_qty >= 0 AND picked_qty <= qty", name="ck_contract_item_picked_range"),
        sa.CheckConstraint("finished_qty >= 0 AND finished_qty <= qty", name="ck_contract_item_finished_range"),
    )
    op.create_index("ix_purchase_contract_items_contract_id", "purchase_contract_items", ["contract_id"])

    op.create_table(
        "delivery_orders",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("delivery_number", sa.String(64), nullable=False, unique=True),
        sa.Column(
            "contract_id",
            sa.BigInteger(),
            sa.ForeignKey("purchase_contracts.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column(
            "contract_item_id",
            sa.BigInteger(),
            sa.ForeignKey("purchase_contract_items.id", ondelete="SET NULL"),
        ),
        sa.Column("variant_id", sa.BigInteger(), sa.ForeignKey("product_variants.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("sku", sa.String(64), nullable=False),
        sa.Column("qty", sa.Integer(), nullable=False),
        sa.Column("received_qty", sa.Integer(), nullable=False),
        sa.Column("status", delivery_order_status, nullable=False),
        sa.Column("shipped_date", sa.DateTime(timezone=True)),
        *_timestamps(),
        sa.CheckConstraint("qty >= 0", name="ck_delivery_qty_nonneg"),
        sa.CheckConstraint("received_qty >= 0 AND received_qty <= qty", name="ck_delivery_received_range"),
    )
    op.create_index("ix_delivery_orders_contract_id", "delivery_orders", ["contract_id"])

    # ---------- INBOUND ----------
    op.create_table(
        "pending_inbounds",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("inbound_number", sa.String(64), nullable=False, unique=True),
        sa.Column(
            "delivery_order_id",
            sa.BigInteger(),
            sa.ForeignKey("delivery_orders.id", ondelete="CASCADE"),
            unique=True,
        ),
        sa.Column("variant_id", sa.BigInteger(), sa.ForeignKey("product_variants.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("sku", sa.String(64), nullable=False),
        sa.Column("qty", sa.Integer(), nullable=False),
        sa.Column("received_qty", sa.Integer(), nullable=False),
        sa.Column("status", inbound_status, nullable=False),
        *_timestamps(),
        sa.CheckConstraint("qty >= 0", name="ck_pending_inbound_qty_nonneg"),
        sa.CheckConstraint("received_qty >= 0 AND received_qty <= qty", name="ck_pending_inbound_received_range"),
    )
    op.create_table(
        "inbound_batches",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column(
            "pending_inbound_id",
            sa.BigInteger(),
            sa.ForeignKey("pending_inbounds.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("batch_number", sa.String(64), nullable=False, unique=True),
        sa.Column("warehouse_id", sa.BigInteger(), sa.ForeignKey("warehouses.id", ondelete="RESTRICT")),
        sa.Column("warehouse_name", sa.String(200)),
        sa.Column("qty", sa.Integer(), nullable=False),
        sa.Column("received_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("stock_applied", sa.Boolean(), nullable=False),
        sa.Column("notes", sa.Text()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("qty >= 0", name="ck_inbound_batch_qty_nonneg"),
    )
    op.create_index("ix_inbound_batches_pending_inbound_id", "inbound_batches", ["pending_inbound_id"])

    # ---------- OUTBOUND ----------
    op.create_table(
        "outbound_orders",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("outbound_number", sa.String(64), nullable=False, unique=True),
        sa.Column("variant_id", sa.BigInteger(), sa.ForeignKey("product_variants.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("sku", sa.String(64), nullable=False),
        sa.Column("qty", sa.Integer(), nullable=False),
        sa.Column("shipped_qty", sa.Integer(), nullable=False),
        sa.Column("warehouse_id", sa.BigInteger(), sa.ForeignKey("warehouses.id", ondelete="RESTRICT")),
        sa.Column("warehouse_name", sa.String(200)),
        sa.Column("destination", sa.String(255)),
        sa.Column("status", outbound_status, nullable=False),
        sa.Column("reason", sa.String(255)),
        sa.Column(
            "pending_inbound_id",
            sa.BigInteger(),
            sa.ForeignKey("pending_inbounds.id", ondelete="SET NULL"),
            unique=True,
        ),
        *_timestamps(),
        sa.CheckConstraint("qty >= 0", name="ck_outbound_qty_nonneg"),
        sa.CheckConstraint("shipped_qty >= 0 AND shipped_qty <= qty", name="ck_outbound_shipped_range"),
    )
    op.create_table(
        "outbound_batches",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column(
            "outbound_order_id",
            sa.BigInteger(),
            sa.ForeignKey("outbound_orders.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("batch_number", sa.String(64), nullable=False, unique=True),
        sa.Column("warehouse_id", sa.BigInteger(), sa.ForeignKey("warehouses.id", ondelete="RESTRICT")),
        sa.Column("warehouse_name", sa.String(200)),
        sa.Column("qty", sa.Integer(), nullable=False),
        sa.Column("shipped_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("destination", sa.String(255)),
        sa.Column("tracking_number", sa.String(128)),
        sa.Column("shipping_method", shipping_method),
        sa.Column("stock_applied", sa.Boolean(), nullable=False),
        sa.Column("notes", sa.Text()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("qty > 0", name="ck_outbound_batch_qty_pos"),
    )
    op.create_index("ix_outbound_batches_outbound_order_id", "outbound_batches", ["outbound_order_id"])
    op.create_index("ix_outbound_batches_tracking_number", "outbound_batches", ["tracking_number"])

    # ---------- INVENTORY ----------
    op.create_table(
        "stocks",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("variant_id", sa.BigInteger(), sa.ForeignKey("product_variants.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("warehouse_id", sa.BigInteger(), sa.ForeignKey("warehouses.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("qty_on_hand", sa.Integer(), nullable=False),
        sa.Column("qty_reserved", sa.Integer(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("variant_id", "warehouse_id", name="uq_stock_variant_warehouse"),
        sa.CheckConstraint("qty_on_hand >= 0", name="ck_stock_on_hand_nonneg"),
        sa.CheckConstraint("qty_reserved >= 0", name="ck_stock_reserved_nonneg"),
        sa.CheckConstraint("qty_reserved <= qty_on_hand", name="ck_stock_reserved_le_on_hand"),
    )
    op.create_table(
        "stock_movements",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("variant_id", sa.BigInteger(), sa.ForeignKey("product_variants.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("warehouse_id", sa.BigInteger(), sa.ForeignKey("warehouses.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("movement_type", movement_type, nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("qty_before", sa.Integer(), nullable=False),
        sa.Column("qty_after", sa.Integer(), nullable=False),
        sa.Column("reason", sa.String(255)),
        sa.Column("related_type", sa.String(64)),
        sa.Column("related_id", sa.Integer()),
        sa.Column("related_number", sa.String(64)),
        sa.Column("happened_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("quantity > 0", name="ck_stock_movement_qty_pos"),
    )
    op.create_index("ix_stock_movements_variant_id", "stock_movements", ["variant_id"])
    op.create_index("ix_stock_movements_variant_time", "stock_movements", ["variant_id", "happened_at"])
    op.create_index("ix_stock_movements_related", "stock_movements", ["related_type", "related_id"])


def downgrade() -> None:
    op.drop_table("stock_movements")
    op.drop_table("stocks")
    op.drop_table("outbound_batches")
    op.drop_table("outbound_orders")
    op.drop_table("inbound_batches")
    op.drop_table("pending_inbounds")
    op.drop_table("delivery_orders")
    op.drop_table("purchase_contract_items")
    op.drop_table("purchase_contracts")
    op.drop_table("product_variants")
    op.drop_table("products")
    op.drop_table("warehouses")

    bind = op.get_bind()
    for enum_type in (
        movement_type,
        shipping_method,
        outbound_status,
        inbound_status,
        delivery_order_status,
        contract_status,
        warehouse_type,
    ):
        enum_type.drop(bind, checkfirst=True)
