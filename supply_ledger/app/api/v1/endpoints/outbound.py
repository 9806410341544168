from __future__ import annotations

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel
from sqlalchemy.orm import Session

from supply_ledger.app.api.deps import get_db
from supply_ledger.app.schemas.batches import BatchCreate, OutboundBatchRead
from supply_ledger.app.schemas.orders import OutboundOrderRead
from supply_ledger.app.schemas.stock import StockRead
from supply_ledger.services.batches import BatchKind, record_batch, reverse_batch
from supply_ledger.services.shipping import (
    confirm_batch_arrival,
    ship_from_inbound_batch,
    ship_outbound_batch,
)

router = APIRouter()


# ---------- Schemas ----------
class OutboundBatchCreate(BatchCreate):
    # ship=True : le stock de l'entrepôt est décrémenté
    ship: bool = False


class ArrivalConfirm(BaseModel):
    to_warehouse_id: int


class ShipFromInbound(BaseModel):
    qty: int
    warehouse_id: int | None = None
    destination: str | None = None


# ---------- Endpoints ----------
@router.post("/outbound-orders/{order_id}/batches", status_code=status.HTTP_201_CREATED)
def create_outbound_batch(order_id: int, payload: OutboundBatchCreate, db: Session = Depends(get_db)):
    if payload.ship:
        batch, order = ship_outbound_batch(db, order_id, payload)
    else:
        batch, order = record_batch(db, BatchKind.outbound, order_id, payload)
    return {
        "batch": OutboundBatchRead.model_validate(batch),
        "outbound_order": OutboundOrderRead.model_validate(order),
    }


@router.delete("/outbound-batches/{batch_id}")
def delete_outbound_batch(batch_id: int, db: Session = Depends(get_db)):
    order = reverse_batch(db, BatchKind.outbound, batch_id)
    return {"outbound_order": OutboundOrderRead.model_validate(order)}


@router.post("/outbound-batches/{batch_id}/confirm-arrival")
def confirm_arrival(batch_id: int, payload: ArrivalConfirm, db: Session = Depends(get_db)):
    batch, stock = confirm_batch_arrival(db, batch_id, payload.to_warehouse_id)
    return {
        "batch": OutboundBatchRead.model_validate(batch),
        "stock": StockRead.model_validate(stock),
    }


@router.post("/inbound-batches/{batch_id}/ship", status_code=status.HTTP_201_CREATED)
def ship_inbound_batch(batch_id: int, payload: ShipFromInbound, db: Session = Depends(get_db)):
    batch, order = ship_from_inbound_batch(
        db,
        batch_id,
        payload.qty,
        warehouse_id=payload.warehouse_id,
        destination=payload.destination,
    )
    return {
        "batch": OutboundBatchRead.model_validate(batch),
        "outbound_order": OutboundOrderRead.model_validate(order),
    }
