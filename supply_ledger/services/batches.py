"""
Enregistrement et annulation de lots (batches) sur les ordres agrégés.

Un lot est un événement de réalisation immuable rattaché à un seul ordre :
- BatchKind.inbound  : PendingInbound -> InboundBatch
- BatchKind.outbound : OutboundOrder  -> OutboundBatch

Règle métier :
    order.fulfilled == somme des lots survivants
    0 <= order.fulfilled <= order.ordered
    order.status == ladder(order.ordered, order.fulfilled)

Propriétés :
- verrouillage SQL (FOR UPDATE) de l'ordre avant lecture-modification
- lot + compteur + statut (+ stock) dans UNE transaction
- l'annulation défait exactement l'effet stock de l'enregistrement
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import select, func
from sqlalchemy.orm import Session

from supply_ledger.app.core.config import settings
from supply_ledger.app.db.models.models_v1 import (
    DeliveryOrder,
    PendingInbound,
    InboundBatch,
    OutboundOrder,
    OutboundBatch,
)
from supply_ledger.app.db.models.core_types import MovementType
from supply_ledger.app.db.session import atomic
from supply_ledger.app.schemas.batches import BatchCreate
from supply_ledger.services.errors import (
    ExceedsOrderedQuantity,
    NotFound,
    OrderClosed,
    OutOfRange,
)
from supply_ledger.services.ledger import apply_delta, clamp_decrement, require_quantity
from supply_ledger.services.numbering import next_document_number
from supply_ledger.services.stock import MovementRef, decrease_stock, increase_stock
from supply_ledger.services.warehouses import warehouse_name

logger = logging.getLogger(__name__)


class BatchKind(str, enum.Enum):
    inbound = "inbound"
    outbound = "outbound"


@dataclass(frozen=True)
class _Binding:
    order_model: type
    batch_model: type
    order_fk: str
    date_field: str
    number_prefix: str
    entity: str
    # effet stock à l'enregistrement ; l'annulation applique l'inverse
    stock_direction: int


BINDINGS: dict[BatchKind, _Binding] = {
    BatchKind.inbound: _Binding(
        order_model=PendingInbound,
        batch_model=InboundBatch,
        order_fk="pending_inbound_id",
        date_field="received_date",
        number_prefix="INBOUND_BATCH_PREFIX",
        entity="pending_inbound",
        stock_direction=+1,
    ),
    BatchKind.outbound: _Binding(
        order_model=OutboundOrder,
        batch_model=OutboundBatch,
        order_fk="outbound_order_id",
        date_field="shipped_date",
        number_prefix="OUTBOUND_BATCH_PREFIX",
        entity="outbound_order",
        stock_direction=-1,
    ),
}


# ---------- Helpers ----------
def lock_order(db: Session, kind: BatchKind, order_id: int):
    binding = BINDINGS[kind]
    model = binding.order_model
    order = (
        db.execute(
            select(model)
            .where(model.id == order_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        .scalar_one_or_none()
    )
    if order is None:
        raise NotFound(binding.entity, order_id)
    return order


def lock_delivery_order(db: Session, delivery_order_id: int | None) -> DeliveryOrder | None:
    if delivery_order_id is None:
        return None
    return (
        db.execute(
            select(DeliveryOrder)
            .where(DeliveryOrder.id == delivery_order_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        .scalar_one_or_none()
    )


def _lock_mirror(db: Session, kind: BatchKind, order) -> DeliveryOrder | None:
    # une entrée en attente recopie sa qté reçue sur son bon de livraison
    if kind is BatchKind.inbound:
        return lock_delivery_order(db, order.delivery_order_id)
    return None


def lock_batch(db: Session, kind: BatchKind, batch_id: int):
    model = BINDINGS[kind].batch_model
    batch = (
        db.execute(
            select(model)
            .where(model.id == batch_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        .scalar_one_or_none()
    )
    if batch is None:
        raise NotFound(f"{kind.value}_batch", batch_id)
    return batch


def _batch_fields(kind: BatchKind, payload: BatchCreate) -> dict[str, Any]:
    fields: dict[str, Any] = {"notes": payload.notes}
    if kind is BatchKind.outbound:
        fields.update(
            destination=payload.destination,
            tracking_number=payload.tracking_number,
            shipping_method=payload.shipping_method,
        )
    return fields


def _movement_type(kind: BatchKind, reversal: bool) -> MovementType:
    if kind is BatchKind.inbound:
        return MovementType.receipt_reversal if reversal else MovementType.receipt
    return MovementType.issue_reversal if reversal else MovementType.issue


def add_batch(
    db: Session,
    kind: BatchKind,
    order,
    payload: BatchCreate,
    *,
    allow_zero: bool = False,
    apply_stock: bool = False,
):
    """
    Ajoute un lot sur un ordre DÉJÀ verrouillé, sans commit.
    Partagé par record_batch, la réception et l'expédition.
    """
    binding = BINDINGS[kind]
    qty = require_quantity(payload.qty, allow_zero=allow_zero)

    if order.is_terminal:
        raise OrderClosed(binding.entity, order.id, order.status.value)

    mirror = _lock_mirror(db, kind, order)
    if mirror is not None and mirror.is_terminal:
        logger.warning("delivery order %s is %s, batch refused", mirror.id, mirror.status.value)
        raise OrderClosed("delivery_order", mirror.id, mirror.status.value)

    try:
        new_fulfilled = apply_delta(
            order.fulfilled_qty,
            qty,
            order.ordered_qty,
            field=binding.order_model.fulfilled_field,
        )
    except OutOfRange:
        logger.warning(
            "%s %s: batch qty %s exceeds remaining %s",
            binding.entity,
            order.id,
            qty,
            order.remaining_qty,
        )
        raise ExceedsOrderedQuantity(qty, order.remaining_qty) from None

    # l'entrepôt du bon de sortie sert de défaut
    warehouse_id = payload.warehouse_id
    if warehouse_id is None:
        warehouse_id = getattr(order, "warehouse_id", None)

    model = binding.batch_model
    batch = model(
        **{binding.order_fk: order.id},
        **{binding.date_field: payload.batch_date or datetime.now(timezone.utc)},
        batch_number=next_document_number(
            db, model.batch_number, getattr(settings, binding.number_prefix)
        ),
        warehouse_id=warehouse_id,
        warehouse_name=warehouse_name(db, warehouse_id),
        qty=qty,
        stock_applied=False,
        **_batch_fields(kind, payload),
    )
    db.add(batch)
    db.flush()

    if apply_stock and qty > 0:
        if warehouse_id is None:
            raise NotFound("warehouse")
        ref = MovementRef(
            related_type=model.__tablename__,
            related_id=batch.id,
            related_number=batch.batch_number,
        )
        if binding.stock_direction > 0:
            increase_stock(db, order.variant_id, warehouse_id, qty, movement_type=_movement_type(kind, False), ref=ref)
        else:
            decrease_stock(db, order.variant_id, warehouse_id, qty, movement_type=_movement_type(kind, False), ref=ref)
        batch.stock_applied = True

    order.set_fulfilled(new_fulfilled)
    db.flush()
    return batch


# ---------- Operations ----------
def record_batch(db: Session, kind: BatchKind, order_id: int, payload: BatchCreate):
    """
    Enregistre un lot sans effet stock (stock_applied=False).
    Retourne (batch, order).
    """
    with atomic(db):
        order = lock_order(db, kind, order_id)
        batch = add_batch(db, kind, order, payload)

    logger.info(
        "%s batch %s recorded on order %s qty=%s (%s/%s)",
        kind.value,
        batch.batch_number,
        order_id,
        batch.qty,
        order.fulfilled_qty,
        order.ordered_qty,
    )
    return batch, order


def remove_batch(db: Session, kind: BatchKind, batch_id: int):
    """Annulation sans commit : stock d'abord, puis lot, compteur et statut."""
    binding = BINDINGS[kind]
    batch = lock_batch(db, kind, batch_id)
    order = lock_order(db, kind, getattr(batch, binding.order_fk))
    _lock_mirror(db, kind, order)

    # la marchandise arrivée est déjà comptée à l'entrepôt de destination
    if getattr(batch, "arrival_confirmed_at", None) is not None:
        raise OrderClosed(f"{kind.value}_batch", batch.id, "ARRIVED")

    if batch.stock_applied and batch.qty > 0:
        ref = MovementRef(
            related_type=binding.batch_model.__tablename__,
            related_id=batch.id,
            related_number=batch.batch_number,
            reason="batch reversal",
        )
        # InsufficientStock ici : rien n'a encore été modifié
        if binding.stock_direction > 0:
            decrease_stock(db, order.variant_id, batch.warehouse_id, batch.qty, movement_type=_movement_type(kind, True), ref=ref)
        else:
            increase_stock(db, order.variant_id, batch.warehouse_id, batch.qty, movement_type=_movement_type(kind, True), ref=ref)

    qty = batch.qty
    db.delete(batch)
    order.set_fulfilled(clamp_decrement(order.fulfilled_qty, qty))
    db.flush()
    return order


def reverse_batch(db: Session, kind: BatchKind, batch_id: int):
    """Supprime un lot et rétablit compteur, statut et stock. Retourne l'ordre."""
    with atomic(db):
        order = remove_batch(db, kind, batch_id)

    logger.info(
        "%s batch %s reversed, order %s now %s/%s",
        kind.value,
        batch_id,
        order.id,
        order.fulfilled_qty,
        order.ordered_qty,
    )
    return order


def rebuild_fulfilled_qty(db: Session, kind: BatchKind, order_id: int):
    """
    Rebuild du compteur réalisé à partir des lots survivants.

    Propriétés :
    - déterministe
    - idempotent
    - transaction-safe
    """
    binding = BINDINGS[kind]
    model = binding.batch_model

    with atomic(db):
        order = lock_order(db, kind, order_id)
        total = db.execute(
            select(func.coalesce(func.sum(model.qty), 0)).where(
                getattr(model, binding.order_fk) == order_id
            )
        ).scalar_one()
        order.set_fulfilled(min(int(total), order.ordered_qty))

    logger.info("%s %s fulfilled rebuilt to %s", binding.entity, order_id, order.fulfilled_qty)
    return order
