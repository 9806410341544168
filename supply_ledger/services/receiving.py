"""
Chaîne bon de livraison -> entrée en attente -> stock -> bon de sortie.

Règle métier :
    pending.received_qty + received_qty <= pending.qty
    delivery_order.received_qty suit pending.received_qty
    pending.status == 已入库  =>  exactement UN bon de sortie lié

Propriétés :
- lot d'entrée, stock, compteurs et bon de sortie dans UNE transaction
- création du bon de sortie idempotente (back-reference pending_inbound_id)
- annulation symétrique via reverse_inbound_batch
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.orm import Session

from supply_ledger.app.core.config import settings
from supply_ledger.app.db.models.models_v1 import (
    InboundBatch,
    OutboundOrder,
    PendingInbound,
    Stock,
    Warehouse,
)
from supply_ledger.app.db.models.core_types import InboundStatus, OutboundStatus
from supply_ledger.app.db.session import atomic
from supply_ledger.app.schemas.batches import BatchCreate
from supply_ledger.services.batches import (
    BatchKind,
    add_batch,
    lock_delivery_order,
    lock_order,
    reverse_batch,
)
from supply_ledger.services.errors import NotFound
from supply_ledger.services.ledger import require_quantity
from supply_ledger.services.numbering import next_document_number
from supply_ledger.services.stock import get_or_create_stock
from supply_ledger.services.warehouses import default_receiving_warehouse, get_warehouse

logger = logging.getLogger(__name__)

AUTO_OUTBOUND_REASON = "入库完成后自动创建"


@dataclass
class ReceiptOutcome:
    batch: InboundBatch
    pending_inbound: PendingInbound
    stock: Stock
    outbound_order: OutboundOrder | None
    outbound_created: bool


# ---------- Helpers ----------
def _resolve_warehouse(db: Session, warehouse_id: int | None) -> Warehouse:
    if warehouse_id is None:
        return default_receiving_warehouse(db)
    return get_warehouse(db, warehouse_id)


def _spawn_outbound(
    db: Session,
    pending: PendingInbound,
    warehouse_id: int | None,
    warehouse_name: str | None,
) -> tuple[OutboundOrder, bool]:
    existing = (
        db.execute(select(OutboundOrder).where(OutboundOrder.pending_inbound_id == pending.id))
        .scalar_one_or_none()
    )
    if existing:
        return existing, False

    ob = OutboundOrder(
        outbound_number=next_document_number(
            db, OutboundOrder.outbound_number, settings.OUTBOUND_NUMBER_PREFIX
        ),
        variant_id=pending.variant_id,
        sku=pending.sku,
        qty=pending.qty,
        shipped_qty=0,
        warehouse_id=warehouse_id,
        warehouse_name=warehouse_name,
        destination=None,
        status=OutboundStatus.pending,
        reason=AUTO_OUTBOUND_REASON,
        pending_inbound_id=pending.id,
    )
    db.add(ob)
    db.flush()
    return ob, True


# ---------- Operations ----------
def receive_delivery_into_warehouse(
    db: Session,
    pending_inbound_id: int,
    warehouse_id: int | None,
    received_qty: int,
) -> ReceiptOutcome:
    """
    Réception (éventuellement partielle) d'une entrée en attente.

    warehouse_id=None : entrepôt de réception par défaut.
    received_qty=0 est accepté : lot vide, aucun mouvement de stock.
    """
    with atomic(db):
        pending = lock_order(db, BatchKind.inbound, pending_inbound_id)
        qty = require_quantity(received_qty)

        # bon de livraison CANCELLED : OrderClosed levée par add_batch
        do = lock_delivery_order(db, pending.delivery_order_id)
        wh = _resolve_warehouse(db, warehouse_id)
        notes = f"拿货单 {do.delivery_number} 入库" if do is not None else None

        batch = add_batch(
            db,
            BatchKind.inbound,
            pending,
            BatchCreate(qty=qty, warehouse_id=wh.id, notes=notes),
            allow_zero=True,
            apply_stock=True,
        )
        stock = get_or_create_stock(db, pending.variant_id, wh.id)

        outbound, created = None, False
        if pending.status == InboundStatus.received:
            outbound, created = _spawn_outbound(db, pending, wh.id, wh.name)

    logger.info(
        "pending inbound %s received %s into %s (%s/%s, %s)",
        pending_inbound_id,
        qty,
        wh.code,
        pending.received_qty,
        pending.qty,
        pending.status.value,
    )
    if created:
        logger.info("outbound order %s spawned for pending inbound %s", outbound.outbound_number, pending_inbound_id)

    return ReceiptOutcome(
        batch=batch,
        pending_inbound=pending,
        stock=stock,
        outbound_order=outbound,
        outbound_created=created,
    )


def reverse_inbound_batch(db: Session, batch_id: int) -> PendingInbound:
    """Annule un lot d'entrée : stock, compteurs et statuts reviennent en arrière."""
    return reverse_batch(db, BatchKind.inbound, batch_id)


def spawn_outbound_order(
    db: Session,
    pending_inbound_id: int,
    warehouse_id: int | None = None,
) -> tuple[OutboundOrder, bool]:
    """Retourne (bon de sortie, créé ?) ; jamais deux bons pour une même entrée."""
    with atomic(db):
        pending = lock_order(db, BatchKind.inbound, pending_inbound_id)
        wh = _resolve_warehouse(db, warehouse_id)
        ob, created = _spawn_outbound(db, pending, wh.id, wh.name)

    if created:
        logger.info("outbound order %s spawned for pending inbound %s", ob.outbound_number, pending_inbound_id)
    return ob, created


def create_outbound_from_inbound_batch(db: Session, inbound_batch_id: int) -> tuple[OutboundOrder, bool]:
    """Bon de sortie de l'entrée du lot, à l'entrepôt du lot."""
    with atomic(db):
        batch = db.get(InboundBatch, inbound_batch_id)
        if batch is None:
            raise NotFound("inbound_batch", inbound_batch_id)
        pending = lock_order(db, BatchKind.inbound, batch.pending_inbound_id)
        ob, created = _spawn_outbound(db, pending, batch.warehouse_id, batch.warehouse_name)

    if created:
        logger.info("outbound order %s created from inbound batch %s", ob.outbound_number, inbound_batch_id)
    return ob, created
