from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

from supply_ledger.app.db.models.core_types import ContractStatus


class LineDelta(BaseModel):
    item_id: int
    qty: int


class FinishedLine(BaseModel):
    item_id: int
    finished_qty: int


class PickedUpdate(BaseModel):
    items: list[LineDelta] = Field(default_factory=list)


class FinishedUpdate(BaseModel):
    items: list[FinishedLine] = Field(default_factory=list)


class DeliveryOrderCreate(BaseModel):
    item_id: int
    qty: int


class ContractItemRead(BaseModel):
    id: int
    sku: str
    qty: int
    picked_qty: int
    finished_qty: int
    sort_order: int

    class Config:
        from_attributes = True


class ContractSummary(BaseModel):
    id: int
    contract_number: str
    status: ContractStatus
    status_label: str | None = None
    total_qty: int
    picked_qty: int
    finished_qty: int
    items: list[ContractItemRead]

    class Config:
        from_attributes = True


LineField = Literal["picked", "finished"]
