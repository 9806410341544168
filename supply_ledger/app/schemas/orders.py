from __future__ import annotations

from pydantic import BaseModel

from supply_ledger.app.db.models.core_types import (
    DeliveryOrderStatus,
    InboundStatus,
    OutboundStatus,
)


class DeliveryOrderRead(BaseModel):
    id: int
    delivery_number: str
    contract_id: int
    contract_item_id: int | None
    sku: str
    qty: int
    received_qty: int
    status: DeliveryOrderStatus

    class Config:
        from_attributes = True


class PendingInboundRead(BaseModel):
    id: int
    inbound_number: str
    delivery_order_id: int | None
    variant_id: int
    sku: str
    qty: int
    received_qty: int
    status: InboundStatus

    class Config:
        from_attributes = True


class OutboundOrderRead(BaseModel):
    id: int
    outbound_number: str
    variant_id: int
    sku: str
    qty: int
    shipped_qty: int
    warehouse_id: int | None
    warehouse_name: str | None
    destination: str | None
    status: OutboundStatus
    reason: str | None
    pending_inbound_id: int | None

    class Config:
        from_attributes = True
