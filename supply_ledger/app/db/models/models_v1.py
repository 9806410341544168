from __future__ import annotations

from datetime import datetime

from sqlalchemy import (
    String,
    Integer,
    DateTime,
    Boolean,
    ForeignKey,
    Text,
    Enum,
    UniqueConstraint,
    Index,
    CheckConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from supply_ledger.app.db.base import Base, BigIntPK
from supply_ledger.app.db.models.core_types import (
    FulfillmentStatus,
    WarehouseType,
    ContractStatus,
    DeliveryOrderStatus,
    InboundStatus,
    OutboundStatus,
    ShippingMethod,
    MovementType,
)
from supply_ledger.app.db.models.mixins import FulfillableMixin, TimestampMixin


# ---------- MASTER DATA ----------
class Warehouse(Base):
    __tablename__ = "warehouses"
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    code: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    type: Mapped[WarehouseType] = mapped_column(
        Enum(WarehouseType, name="warehouse_type"),
        default=WarehouseType.domestic,
        nullable=False,
    )
    address: Mapped[str | None] = mapped_column(String(255))
    active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)


class Product(Base):
    """SPU (style)."""

    __tablename__ = "products"
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    variants: Mapped[list["ProductVariant"]] = relationship(back_populates="product")


class ProductVariant(Base):
    """SKU : combinaison couleur / taille vendable."""

    __tablename__ = "product_variants"
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    product_id: Mapped[int] = mapped_column(ForeignKey("products.id", ondelete="RESTRICT"), nullable=False)
    sku: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    color: Mapped[str | None] = mapped_column(String(64))
    size: Mapped[str | None] = mapped_column(String(64))

    product: Mapped[Product] = relationship(back_populates="variants")


# ---------- PROCUREMENT ----------
class PurchaseContract(FulfillableMixin, TimestampMixin, Base):
    __tablename__ = "purchase_contracts"
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    contract_number: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    supplier_name: Mapped[str | None] = mapped_column(String(255))
    status: Mapped[ContractStatus] = mapped_column(
        Enum(ContractStatus, name="contract_status"),
        default=ContractStatus.pending_shipment,
        nullable=False,
    )
    # agrégats dénormalisés, recalculés depuis les lignes
    total_qty: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    picked_qty: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    finished_qty: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    items: Mapped[list["PurchaseContractItem"]] = relationship(
        back_populates="contract",
        cascade="all, delete-orphan",
        order_by="PurchaseContractItem.sort_order",
    )

    ordered_field = "total_qty"
    fulfilled_field = "picked_qty"
    status_ladder = {
        FulfillmentStatus.pending: ContractStatus.pending_shipment,
        FulfillmentStatus.partial: ContractStatus.partial_shipment,
        FulfillmentStatus.fulfilled: ContractStatus.shipped,
    }
    terminal_statuses = frozenset({ContractStatus.settled, ContractStatus.cancelled})

    __table_args__ = (
        CheckConstraint("total_qty >= 0", name="ck_contract_total_nonneg"),
        CheckConstraint("picked_qty >= 0", name="ck_contract_picked_nonneg"),
        CheckConstraint("finished_qty >= 0", name="ck_contract_finished_nonneg"),
    )


class PurchaseContractItem(TimestampMixin, Base):
    __tablename__ = "purchase_contract_items"
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    contract_id: Mapped[int] = mapped_column(
        ForeignKey("purchase_contracts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    variant_id: Mapped[int | None] = mapped_column(ForeignKey("product_variants.id", ondelete="SET NULL"))
    sku: Mapped[str] = mapped_column(String(64), nullable=False)
    qty: Mapped[int] = mapped_column(Integer, nullable=False)
    picked_qty: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    finished_qty: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    sort_order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    contract: Mapped[PurchaseContract] = relationship(back_populates="items")

    __table_args__ = (
        CheckConstraint("qty >= 0", name="ck_contract_item_qty_nonneg"),
        CheckConstraint("picked_qty >= 0 AND picked_qty <= qty", name="ck_contract_item_picked_range"),
        CheckConstraint("finished_qty >= 0 AND finished_qty <= qty", name="ck_contract_item_finished_range"),
    )


class DeliveryOrder(FulfillableMixin, TimestampMixin, Base):
    """Bon de livraison (拿货单) : une ligne de contrat, qté reçue miroir de son PendingInbound."""

    __tablename__ = "delivery_orders"
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    delivery_number: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    contract_id: Mapped[int] = mapped_column(
        ForeignKey("purchase_contracts.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    contract_item_id: Mapped[int | None] = mapped_column(
        ForeignKey("purchase_contract_items.id", ondelete="SET NULL")
    )
    variant_id: Mapped[int] = mapped_column(ForeignKey("product_variants.id", ondelete="RESTRICT"), nullable=False)
    sku: Mapped[str] = mapped_column(String(64), nullable=False)
    qty: Mapped[int] = mapped_column(Integer, nullable=False)
    received_qty: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    status: Mapped[DeliveryOrderStatus] = mapped_column(
        Enum(DeliveryOrderStatus, name="delivery_order_status"),
        default=DeliveryOrderStatus.pending,
        nullable=False,
    )
    shipped_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    contract: Mapped[PurchaseContract] = relationship()
    pending_inbound: Mapped["PendingInbound | None"] = relationship(back_populates="delivery_order", uselist=False)

    fulfilled_field = "received_qty"
    status_ladder = {
        FulfillmentStatus.pending: DeliveryOrderStatus.pending,
        FulfillmentStatus.partial: DeliveryOrderStatus.partial,
        FulfillmentStatus.fulfilled: DeliveryOrderStatus.received,
    }
    terminal_statuses = frozenset({DeliveryOrderStatus.cancelled})

    __table_args__ = (
        CheckConstraint("qty >= 0", name="ck_delivery_qty_nonneg"),
        CheckConstraint("received_qty >= 0 AND received_qty <= qty", name="ck_delivery_received_range"),
    )


# ---------- INBOUND ----------
class PendingInbound(FulfillableMixin, TimestampMixin, Base):
    __tablename__ = "pending_inbounds"
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    inbound_number: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    delivery_order_id: Mapped[int | None] = mapped_column(
        ForeignKey("delivery_orders.id", ondelete="CASCADE"),
        unique=True,
    )
    variant_id: Mapped[int] = mapped_column(ForeignKey("product_variants.id", ondelete="RESTRICT"), nullable=False)
    sku: Mapped[str] = mapped_column(String(64), nullable=False)
    qty: Mapped[int] = mapped_column(Integer, nullable=False)
    received_qty: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    status: Mapped[InboundStatus] = mapped_column(
        Enum(InboundStatus, name="inbound_status"),
        default=InboundStatus.pending,
        nullable=False,
    )

    delivery_order: Mapped[DeliveryOrder | None] = relationship(back_populates="pending_inbound")
    batches: Mapped[list["InboundBatch"]] = relationship(
        back_populates="pending_inbound",
        cascade="all, delete-orphan",
    )

    fulfilled_field = "received_qty"
    status_ladder = {
        FulfillmentStatus.pending: InboundStatus.pending,
        FulfillmentStatus.partial: InboundStatus.partial,
        FulfillmentStatus.fulfilled: InboundStatus.received,
    }

    __table_args__ = (
        CheckConstraint("qty >= 0", name="ck_pending_inbound_qty_nonneg"),
        CheckConstraint("received_qty >= 0 AND received_qty <= qty", name="ck_pending_inbound_received_range"),
    )

    def set_fulfilled(self, qty: int) -> None:
        super().set_fulfilled(qty)
        # le bon de livraison suit la réception
        do = self.delivery_order
        if do is not None and not do.is_terminal:
            do.set_fulfilled(min(qty, do.qty))


class InboundBatch(Base):
    __tablename__ = "inbound_batches"
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    pending_inbound_id: Mapped[int] = mapped_column(
        ForeignKey("pending_inbounds.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    batch_number: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    warehouse_id: Mapped[int | None] = mapped_column(ForeignKey("warehouses.id", ondelete="RESTRICT"))
    # snapshot à l'écriture, jamais re-joint pour l'affichage
    warehouse_name: Mapped[str | None] = mapped_column(String(200))
    qty: Mapped[int] = mapped_column(Integer, nullable=False)
    received_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    stock_applied: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    notes: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    pending_inbound: Mapped[PendingInbound] = relationship(back_populates="batches")

    __table_args__ = (CheckConstraint("qty >= 0", name="ck_inbound_batch_qty_nonneg"),)


# ---------- OUTBOUND ----------
class OutboundOrder(FulfillableMixin, TimestampMixin, Base):
    __tablename__ = "outbound_orders"
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    outbound_number: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    variant_id: Mapped[int] = mapped_column(ForeignKey("product_variants.id", ondelete="RESTRICT"), nullable=False)
    sku: Mapped[str] = mapped_column(String(64), nullable=False)
    qty: Mapped[int] = mapped_column(Integer, nullable=False)
    shipped_qty: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    warehouse_id: Mapped[int | None] = mapped_column(ForeignKey("warehouses.id", ondelete="RESTRICT"))
    warehouse_name: Mapped[str | None] = mapped_column(String(200))
    destination: Mapped[str | None] = mapped_column(String(255))
    status: Mapped[OutboundStatus] = mapped_column(
        Enum(OutboundStatus, name="outbound_status"),
        default=OutboundStatus.pending,
        nullable=False,
    )
    reason: Mapped[str | None] = mapped_column(String(255))
    # back-reference : au plus un bon de sortie auto-créé par entrée
    pending_inbound_id: Mapped[int | None] = mapped_column(
        ForeignKey("pending_inbounds.id", ondelete="SET NULL"),
        unique=True,
    )

    batches: Mapped[list["OutboundBatch"]] = relationship(
        back_populates="outbound_order",
        cascade="all, delete-orphan",
    )

    fulfilled_field = "shipped_qty"
    status_ladder = {
        FulfillmentStatus.pending: OutboundStatus.pending,
        FulfillmentStatus.partial: OutboundStatus.partial,
        FulfillmentStatus.fulfilled: OutboundStatus.shipped,
    }

    __table_args__ = (
        CheckConstraint("qty >= 0", name="ck_outbound_qty_nonneg"),
        CheckConstraint("shipped_qty >= 0 AND shipped_qty <= qty", name="ck_outbound_shipped_range"),
    )


class OutboundBatch(Base):
    __tablename__ = "outbound_batches"
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    outbound_order_id: Mapped[int] = mapped_column(
        ForeignKey("outbound_orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    batch_number: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    warehouse_id: Mapped[int | None] = mapped_column(ForeignKey("warehouses.id", ondelete="RESTRICT"))
    warehouse_name: Mapped[str | None] = mapped_column(String(200))
    qty: Mapped[int] = mapped_column(Integer, nullable=False)
    shipped_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    destination: Mapped[str | None] = mapped_column(String(255))
    tracking_number: Mapped[str | None] = mapped_column(String(128), index=True)
    shipping_method: Mapped[ShippingMethod | None] = mapped_column(Enum(ShippingMethod, name="shipping_method"))
    stock_applied: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    # arrivée confirmée : la qté est entrée en stock à l'entrepôt de destination
    arrival_confirmed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    arrival_warehouse_id: Mapped[int | None] = mapped_column(ForeignKey("warehouses.id", ondelete="RESTRICT"))
    arrival_warehouse_name: Mapped[str | None] = mapped_column(String(200))
    notes: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    outbound_order: Mapped[OutboundOrder] = relationship(back_populates="batches")

    __table_args__ = (CheckConstraint("qty > 0", name="ck_outbound_batch_qty_pos"),)


# ---------- INVENTORY ----------
class Stock(Base):
    __tablename__ = "stocks"
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    variant_id: Mapped[int] = mapped_column(ForeignKey("product_variants.id", ondelete="RESTRICT"), nullable=False)
    warehouse_id: Mapped[int] = mapped_column(ForeignKey("warehouses.id", ondelete="RESTRICT"), nullable=False)

    qty_on_hand: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    qty_reserved: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        nullable=False,
    )

    __table_args__ = (
        UniqueConstraint("variant_id", "warehouse_id", name="uq_stock_variant_warehouse"),
        CheckConstraint("qty_on_hand >= 0", name="ck_stock_on_hand_nonneg"),
        CheckConstraint("qty_reserved >= 0", name="ck_stock_reserved_nonneg"),
        CheckConstraint("qty_reserved <= qty_on_hand", name="ck_stock_reserved_le_on_hand"),
    )

    @property
    def qty_available(self) -> int:
        return self.qty_on_hand - self.qty_reserved


class StockMovement(Base):
    __tablename__ = "stock_movements"
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)

    variant_id: Mapped[int] = mapped_column(
        ForeignKey("product_variants.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    warehouse_id: Mapped[int] = mapped_column(ForeignKey("warehouses.id", ondelete="RESTRICT"), nullable=False)

    movement_type: Mapped[MovementType] = mapped_column(Enum(MovementType, name="movement_type"), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    qty_before: Mapped[int] = mapped_column(Integer, nullable=False)
    qty_after: Mapped[int] = mapped_column(Integer, nullable=False)
    reason: Mapped[str | None] = mapped_column(String(255))

    related_type: Mapped[str | None] = mapped_column(String(64))
    related_id: Mapped[int | None] = mapped_column(Integer)
    related_number: Mapped[str | None] = mapped_column(String(64))

    happened_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_stock_movement_qty_pos"),
        Index("ix_stock_movements_variant_time", "variant_id", "happened_at"),
        Index("ix_stock_movements_related", "related_type", "related_id"),
    )
