"""
Niveaux de stock par (variante, entrepôt).

Toute lecture-modification-écriture passe par une ligne verrouillée
(FOR UPDATE). Chaque mutation écrit un StockMovement d'audit.

Hors adjust_stock, ces fonctions ne committent pas : elles s'exécutent dans la transaction
de l'opération appelante (réception, expédition, annulation de lot).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.orm import Session

from supply_ledger.app.db.models.models_v1 import Stock, StockMovement
from supply_ledger.app.db.models.core_types import MovementType
from supply_ledger.app.db.session import atomic
from supply_ledger.services.errors import InsufficientStock
from supply_ledger.services.ledger import require_quantity

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MovementRef:
    """Document à l'origine d'un mouvement de stock."""

    related_type: str | None = None
    related_id: int | None = None
    related_number: str | None = None
    reason: str | None = None


def get_or_create_stock(db: Session, variant_id: int, warehouse_id: int) -> Stock:
    st = (
        db.execute(
            select(Stock)
            .where(Stock.variant_id == variant_id)
            .where(Stock.warehouse_id == warehouse_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        .scalar_one_or_none()
    )
    if st:
        return st

    st = Stock(
        variant_id=variant_id,
        warehouse_id=warehouse_id,
        qty_on_hand=0,
        qty_reserved=0,
    )
    db.add(st)
    db.flush()
    return st


def _record_movement(
    db: Session,
    st: Stock,
    movement_type: MovementType,
    quantity: int,
    qty_before: int,
    ref: MovementRef | None,
) -> StockMovement:
    ref = ref or MovementRef()
    mv = StockMovement(
        variant_id=st.variant_id,
        warehouse_id=st.warehouse_id,
        movement_type=movement_type,
        quantity=quantity,
        qty_before=qty_before,
        qty_after=st.qty_on_hand,
        related_type=ref.related_type,
        related_id=ref.related_id,
        related_number=ref.related_number,
        reason=ref.reason,
        happened_at=datetime.now(timezone.utc),
    )
    db.add(mv)
    return mv


def increase_stock(
    db: Session,
    variant_id: int,
    warehouse_id: int,
    qty: int,
    *,
    movement_type: MovementType = MovementType.receipt,
    ref: MovementRef | None = None,
) -> Stock:
    require_quantity(qty, allow_zero=False)

    st = get_or_create_stock(db, variant_id, warehouse_id)
    before = st.qty_on_hand
    st.qty_on_hand = before + qty
    _record_movement(db, st, movement_type, qty, before, ref)
    db.flush()
    return st


def decrease_stock(
    db: Session,
    variant_id: int,
    warehouse_id: int,
    qty: int,
    *,
    movement_type: MovementType = MovementType.issue,
    ref: MovementRef | None = None,
) -> Stock:
    require_quantity(qty, allow_zero=False)

    st = get_or_create_stock(db, variant_id, warehouse_id)
    available = st.qty_on_hand - st.qty_reserved
    if available < qty:
        logger.warning(
            "insufficient stock variant=%s warehouse=%s available=%s requested=%s",
            variant_id,
            warehouse_id,
            available,
            qty,
        )
        raise InsufficientStock(variant_id, warehouse_id, available, qty)

    before = st.qty_on_hand
    st.qty_on_hand = before - qty
    _record_movement(db, st, movement_type, qty, before, ref)
    db.flush()
    return st


def adjust_stock(
    db: Session,
    variant_id: int,
    warehouse_id: int,
    qty_on_hand: int,
    *,
    reason: str | None = None,
) -> Stock:
    """
    Correction d'inventaire : fixe qty_on_hand à une valeur absolue.
    Le réservé ne peut jamais dépasser le physique.
    """
    require_quantity(qty_on_hand)

    with atomic(db):
        st = get_or_create_stock(db, variant_id, warehouse_id)
        if qty_on_hand < st.qty_reserved:
            raise InsufficientStock(variant_id, warehouse_id, qty_on_hand, st.qty_reserved)

        before = st.qty_on_hand
        if qty_on_hand != before:
            st.qty_on_hand = qty_on_hand
            _record_movement(
                db,
                st,
                MovementType.adjustment,
                abs(qty_on_hand - before),
                before,
                MovementRef(related_type="stock", related_id=st.id, reason=reason),
            )

    logger.info(
        "stock adjusted variant=%s warehouse=%s %s -> %s",
        variant_id,
        warehouse_id,
        before,
        qty_on_hand,
    )
    return st
