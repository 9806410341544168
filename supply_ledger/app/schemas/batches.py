from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel

from supply_ledger.app.db.models.core_types import ShippingMethod


class BatchCreate(BaseModel):
    # qty non contraint ici : la validation métier lève InvalidQuantity
    qty: int
    warehouse_id: int | None = None
    batch_date: datetime | None = None
    destination: str | None = None
    tracking_number: str | None = None
    shipping_method: ShippingMethod | None = None
    notes: str | None = None


class InboundBatchRead(BaseModel):
    id: int
    pending_inbound_id: int
    batch_number: str
    warehouse_id: int | None
    warehouse_name: str | None  # snapshot
    qty: int
    received_date: datetime
    stock_applied: bool
    notes: str | None

    class Config:
        from_attributes = True


class OutboundBatchRead(BaseModel):
    id: int
    outbound_order_id: int
    batch_number: str
    warehouse_id: int | None
    warehouse_name: str | None  # snapshot
    qty: int
    shipped_date: datetime
    destination: str | None
    tracking_number: str | None
    shipping_method: ShippingMethod | None
    stock_applied: bool
    arrival_confirmed_at: datetime | None = None
    arrival_warehouse_id: int | None = None
    arrival_warehouse_name: str | None = None  # snapshot
    notes: str | None

    class Config:
        from_attributes = True
