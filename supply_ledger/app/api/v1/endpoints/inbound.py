from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from supply_ledger.app.api.deps import get_db
from supply_ledger.app.schemas.batches import InboundBatchRead
from supply_ledger.app.schemas.orders import OutboundOrderRead, PendingInboundRead
from supply_ledger.app.schemas.stock import StockRead
from supply_ledger.services.receiving import (
    create_outbound_from_inbound_batch,
    receive_delivery_into_warehouse,
    reverse_inbound_batch,
)

router = APIRouter()


# ---------- Schemas ----------
class ReceiveCreate(BaseModel):
    received_qty: int
    warehouse_id: int | None = None


# ---------- Endpoints ----------
@router.post("/pending-inbound/{pending_inbound_id}/receive")
def receive_pending_inbound(pending_inbound_id: int, payload: ReceiveCreate, db: Session = Depends(get_db)):
    outcome = receive_delivery_into_warehouse(db, pending_inbound_id, payload.warehouse_id, payload.received_qty)
    return {
        "batch": InboundBatchRead.model_validate(outcome.batch),
        "pending_inbound": PendingInboundRead.model_validate(outcome.pending_inbound),
        "stock": StockRead.model_validate(outcome.stock),
        "outbound_order": (
            OutboundOrderRead.model_validate(outcome.outbound_order) if outcome.outbound_order else None
        ),
        "outbound_created": outcome.outbound_created,
    }


@router.delete("/inbound-batches/{batch_id}")
def delete_inbound_batch(batch_id: int, db: Session = Depends(get_db)):
    pending = reverse_inbound_batch(db, batch_id)
    return {"pending_inbound": PendingInboundRead.model_validate(pending)}


@router.post("/inbound-batches/{batch_id}/create-outbound")
def create_outbound(batch_id: int, db: Session = Depends(get_db)):
    order, created = create_outbound_from_inbound_batch(db, batch_id)
    return {"outbound_order": OutboundOrderRead.model_validate(order), "created": created}
