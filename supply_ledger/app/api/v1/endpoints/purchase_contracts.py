from __future__ import annotations

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from supply_ledger.app.api.deps import get_db
from supply_ledger.app.schemas.contracts import (
    ContractSummary,
    DeliveryOrderCreate,
    FinishedUpdate,
    PickedUpdate,
)
from supply_ledger.app.schemas.orders import DeliveryOrderRead, PendingInboundRead
from supply_ledger.services.contracts import (
    apply_line_deltas,
    complete_production,
    open_delivery_order,
)

router = APIRouter(prefix="/purchase-contracts")


@router.post("/{contract_id}/update-picked", response_model=ContractSummary)
def update_picked(contract_id: int, payload: PickedUpdate, db: Session = Depends(get_db)):
    return apply_line_deltas(db, contract_id, payload.items, "picked")


@router.post("/{contract_id}/update-finished", response_model=ContractSummary)
def update_finished(contract_id: int, payload: FinishedUpdate, db: Session = Depends(get_db)):
    deltas = [{"item_id": row.item_id, "qty": row.finished_qty} for row in payload.items]
    return apply_line_deltas(db, contract_id, deltas, "finished")


@router.post("/{contract_id}/complete-production", response_model=ContractSummary)
def submit_production_complete(contract_id: int, db: Session = Depends(get_db)):
    return complete_production(db, contract_id)


@router.post("/{contract_id}/delivery-orders", status_code=status.HTTP_201_CREATED)
def create_delivery_order(contract_id: int, payload: DeliveryOrderCreate, db: Session = Depends(get_db)):
    do = open_delivery_order(db, contract_id, payload.item_id, payload.qty)
    return {
        "delivery_order": DeliveryOrderRead.model_validate(do),
        "pending_inbound": PendingInboundRead.model_validate(do.pending_inbound),
    }
