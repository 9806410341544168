"""
Rapprochement des contrats d'achat.

Règle métier :
    contract.total_qty    = SUM(item.qty)
    contract.picked_qty   = SUM(item.picked_qty)
    contract.finished_qty = SUM(item.finished_qty)
    contract.status       = ladder(total_qty, picked_qty)   (SETTLED / CANCELLED conservés)

Un lot de deltas est tout-ou-rien : une seule ligne en débordement et
rien n'est écrit.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from supply_ledger.app.core.config import settings
from supply_ledger.app.db.models.models_v1 import (
    PurchaseContract,
    PurchaseContractItem,
    DeliveryOrder,
    PendingInbound,
)
from supply_ledger.app.db.models.core_types import CONTRACT_STATUS_LABELS
from supply_ledger.app.db.session import atomic
from supply_ledger.app.schemas.contracts import ContractSummary, LineField
from supply_ledger.services.errors import (
    InvalidQuantity,
    LineOverflow,
    NotFound,
    OrderClosed,
    OutOfRange,
)
from supply_ledger.services.ledger import require_quantity
from supply_ledger.services.numbering import next_document_number

logger = logging.getLogger(__name__)


# ---------- Helpers ----------
def _lock_contract(db: Session, contract_id: int) -> PurchaseContract:
    contract = (
        db.execute(
            select(PurchaseContract)
            .where(PurchaseContract.id == contract_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        .scalar_one_or_none()
    )
    if contract is None:
        raise NotFound("purchase_contract", contract_id)
    return contract


def _lock_items(db: Session, contract_id: int) -> dict[int, PurchaseContractItem]:
    rows = (
        db.execute(
            select(PurchaseContractItem)
            .where(PurchaseContractItem.contract_id == contract_id)
            .order_by(PurchaseContractItem.id.asc())
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        .scalars()
        .all()
    )
    return {int(it.id): it for it in rows}


def _pairs(deltas: Iterable[Any], value_key: str = "qty") -> list[tuple[Any, Any]]:
    out = []
    for d in deltas:
        if isinstance(d, Mapping):
            out.append((d.get("item_id"), d.get(value_key)))
        else:
            out.append((d.item_id, getattr(d, value_key)))
    return out


def _require_item(items: dict[int, PurchaseContractItem], item_id: Any) -> PurchaseContractItem:
    item = items.get(item_id) if isinstance(item_id, int) else None
    if item is None:
        raise NotFound("purchase_contract_item", item_id)
    return item


def _apply_picked(contract: PurchaseContract, items: dict[int, PurchaseContractItem], pairs) -> None:
    # validation complète avant toute écriture
    requested: dict[int, int] = {}
    for item_id, qty in pairs:
        qty = require_quantity(qty)
        item = _require_item(items, item_id)
        if qty == 0:
            continue
        requested[item.id] = requested.get(item.id, 0) + qty

    if not requested:
        raise InvalidQuantity(0, "本次拿货数量需大于 0")

    for item_id, qty in requested.items():
        item = items[item_id]
        remaining = item.qty - item.picked_qty
        if qty > remaining:
            logger.warning(
                "contract %s line %s (%s): picked %s exceeds remaining %s",
                contract.id,
                item.id,
                item.sku,
                qty,
                remaining,
            )
            raise LineOverflow(item.id, item.sku, qty, remaining)

    for item_id, qty in requested.items():
        items[item_id].picked_qty += qty


def _apply_finished(contract: PurchaseContract, items: dict[int, PurchaseContractItem], pairs) -> None:
    targets: list[tuple[PurchaseContractItem, int]] = []
    for item_id, value in pairs:
        if isinstance(value, bool) or not isinstance(value, int):
            raise InvalidQuantity(value, "finished_qty must be an integer")
        item = _require_item(items, item_id)
        if value < 0 or value > item.qty:
            logger.warning(
                "contract %s line %s (%s): finished %s outside 0..%s",
                contract.id,
                item.id,
                item.sku,
                value,
                item.qty,
            )
            raise OutOfRange("finished_qty", value, item.qty, item_id=item.id, sku=item.sku)
        targets.append((item, value))

    for item, value in targets:
        item.finished_qty = value


def _reaggregate(contract: PurchaseContract, items: Iterable[PurchaseContractItem]) -> None:
    items = list(items)
    contract.total_qty = sum(it.qty for it in items)
    contract.picked_qty = sum(it.picked_qty for it in items)
    contract.finished_qty = sum(it.finished_qty for it in items)
    contract.refresh_status()


def _summary(contract: PurchaseContract) -> ContractSummary:
    summary = ContractSummary.model_validate(contract)
    summary.status_label = CONTRACT_STATUS_LABELS[summary.status]
    return summary


# ---------- Operations ----------
def apply_line_deltas(
    db: Session,
    contract_id: int,
    deltas: Iterable[Any],
    field: LineField,
) -> ContractSummary:
    """
    "picked"   : picked_qty += qty par ligne (qty == 0 ignorée, négative refusée)
    "finished" : finished_qty = valeur, dans 0..qty
    """
    if field not in ("picked", "finished"):
        raise ValueError(f"unknown line field: {field!r}")

    with atomic(db):
        contract = _lock_contract(db, contract_id)
        items = _lock_items(db, contract_id)

        if field == "picked":
            _apply_picked(contract, items, _pairs(deltas))
        else:
            _apply_finished(contract, items, _pairs(deltas))

        _reaggregate(contract, items.values())
        db.flush()

    logger.info(
        "contract %s %s updated: picked=%s finished=%s total=%s status=%s",
        contract_id,
        field,
        contract.picked_qty,
        contract.finished_qty,
        contract.total_qty,
        contract.status.value,
    )
    return _summary(contract)


def complete_production(db: Session, contract_id: int) -> ContractSummary:
    """提交生产完成 : finished_qty = qty sur toutes les lignes."""
    with atomic(db):
        contract = _lock_contract(db, contract_id)
        items = _lock_items(db, contract_id)
        for item in items.values():
            item.finished_qty = item.qty
        _reaggregate(contract, items.values())
        db.flush()

    logger.info("contract %s production completed (%s lines)", contract_id, len(items))
    return _summary(contract)


def open_delivery_order(db: Session, contract_id: int, item_id: int, qty: int) -> DeliveryOrder:
    """
    Prélève `qty` sur une ligne (mêmes règles que "picked") puis crée le
    bon de livraison et son entrée en attente, dans une seule transaction.
    """
    qty = require_quantity(qty, allow_zero=False)

    with atomic(db):
        contract = _lock_contract(db, contract_id)
        if contract.is_terminal:
            logger.warning("contract %s is %s, delivery refused", contract_id, contract.status.value)
            raise OrderClosed("purchase_contract", contract_id, contract.status.value)

        items = _lock_items(db, contract_id)
        item = _require_item(items, item_id)
        if item.variant_id is None:
            raise NotFound("product_variant", item.sku)

        _apply_picked(contract, items, [(item.id, qty)])
        _reaggregate(contract, items.values())

        do = DeliveryOrder(
            delivery_number=next_document_number(
                db, DeliveryOrder.delivery_number, settings.DELIVERY_NUMBER_PREFIX
            ),
            contract_id=contract.id,
            contract_item_id=item.id,
            variant_id=item.variant_id,
            sku=item.sku,
            qty=qty,
            received_qty=0,
        )
        db.add(do)
        db.flush()

        pending = PendingInbound(
            inbound_number=next_document_number(
                db, PendingInbound.inbound_number, settings.INBOUND_NUMBER_PREFIX
            ),
            delivery_order_id=do.id,
            variant_id=item.variant_id,
            sku=item.sku,
            qty=qty,
            received_qty=0,
        )
        db.add(pending)
        db.flush()

    logger.info(
        "delivery order %s opened on contract %s line %s qty=%s",
        do.delivery_number,
        contract_id,
        item_id,
        qty,
    )
    return do
