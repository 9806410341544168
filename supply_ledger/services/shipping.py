"""
Expédition des bons de sortie et arrivée à l'entrepôt de destination.

Règle métier :
    expédition : stock(entrepôt du lot) -= lot.qty
    arrivée    : stock(entrepôt de destination) += lot.qty, une seule fois
    lot arrivé : plus annulable (la qté est déjà comptée à destination)
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy.orm import Session

from supply_ledger.app.core.config import settings
from supply_ledger.app.db.models.models_v1 import InboundBatch, OutboundBatch, OutboundOrder, Stock
from supply_ledger.app.db.models.core_types import MovementType, OutboundStatus
from supply_ledger.app.db.session import atomic
from supply_ledger.app.schemas.batches import BatchCreate
from supply_ledger.services.batches import BatchKind, add_batch, lock_batch, lock_order
from supply_ledger.services.errors import ExceedsOrderedQuantity, InvalidTransfer, NotFound
from supply_ledger.services.ledger import require_quantity
from supply_ledger.services.numbering import next_document_number
from supply_ledger.services.stock import MovementRef, increase_stock
from supply_ledger.services.warehouses import default_receiving_warehouse, get_warehouse

logger = logging.getLogger(__name__)

FROM_INBOUND_REASON = "从入库批次生成"


def ship_outbound_batch(
    db: Session,
    outbound_order_id: int,
    payload: BatchCreate,
) -> tuple[OutboundBatch, OutboundOrder]:
    """
    Expédition d'un lot : comme record_batch(outbound) mais le stock de
    l'entrepôt du lot est décrémenté (InsufficientStock si manquant).
    reverse_batch remet le stock en place.
    """
    with atomic(db):
        order = lock_order(db, BatchKind.outbound, outbound_order_id)
        batch = add_batch(db, BatchKind.outbound, order, payload, apply_stock=True)

    logger.info(
        "outbound batch %s shipped on order %s qty=%s from %s (%s/%s)",
        batch.batch_number,
        outbound_order_id,
        batch.qty,
        batch.warehouse_name,
        order.shipped_qty,
        order.qty,
    )
    return batch, order


def ship_from_inbound_batch(
    db: Session,
    inbound_batch_id: int,
    qty: int,
    *,
    warehouse_id: int | None = None,
    destination: str | None = None,
) -> tuple[OutboundBatch, OutboundOrder]:
    """
    Bon de sortie + lot expédié en une fois, à partir d'un lot d'entrée.

    warehouse_id=None : entrepôt du lot d'entrée, sinon entrepôt de réception
    par défaut. qty ne peut dépasser la qté du lot d'entrée.
    """
    qty = require_quantity(qty, allow_zero=False)

    with atomic(db):
        source = db.get(InboundBatch, inbound_batch_id)
        if source is None:
            raise NotFound("inbound_batch", inbound_batch_id)
        if qty > source.qty:
            raise ExceedsOrderedQuantity(qty, source.qty)

        if warehouse_id is not None:
            wh = get_warehouse(db, warehouse_id)
        elif source.warehouse_id is not None:
            wh = get_warehouse(db, source.warehouse_id)
        else:
            wh = default_receiving_warehouse(db)

        pending = source.pending_inbound
        order = OutboundOrder(
            outbound_number=next_document_number(
                db, OutboundOrder.outbound_number, settings.OUTBOUND_NUMBER_PREFIX
            ),
            variant_id=pending.variant_id,
            sku=pending.sku,
            qty=qty,
            shipped_qty=0,
            warehouse_id=wh.id,
            warehouse_name=wh.name,
            destination=destination,
            status=OutboundStatus.pending,
            reason=FROM_INBOUND_REASON,
        )
        db.add(order)
        db.flush()

        batch = add_batch(
            db,
            BatchKind.outbound,
            order,
            BatchCreate(
                qty=qty,
                warehouse_id=wh.id,
                destination=destination,
                notes=f"从入库批次 {source.batch_number} 生成出库",
            ),
            apply_stock=True,
        )

    logger.info(
        "outbound order %s shipped from inbound batch %s qty=%s",
        order.outbound_number,
        inbound_batch_id,
        qty,
    )
    return batch, order


def confirm_batch_arrival(
    db: Session,
    batch_id: int,
    to_warehouse_id: int,
) -> tuple[OutboundBatch, Stock]:
    """
    确认到达 : la qté du lot entre en stock à l'entrepôt de destination
    (mouvement TRANSFER_IN). Une seule confirmation par lot.
    """
    with atomic(db):
        batch = lock_batch(db, BatchKind.outbound, batch_id)
        if batch.arrival_confirmed_at is not None:
            raise InvalidTransfer(batch.id, "该批次已确认到达，请勿重复操作")

        to_wh = get_warehouse(db, to_warehouse_id)
        if batch.warehouse_id == to_wh.id:
            logger.warning("outbound batch %s: destination equals source warehouse %s", batch.id, to_wh.id)
            raise InvalidTransfer(batch.id, "目的地仓库不能与出库仓库相同", warehouse_id=to_wh.id)

        order = batch.outbound_order
        stock = increase_stock(
            db,
            order.variant_id,
            to_wh.id,
            batch.qty,
            movement_type=MovementType.transfer_in,
            ref=MovementRef(
                related_type=OutboundBatch.__tablename__,
                related_id=batch.id,
                related_number=batch.batch_number,
                reason=f"出库批次 {batch.batch_number} 确认到达，调拨至 {to_wh.name}",
            ),
        )
        batch.arrival_confirmed_at = datetime.now(timezone.utc)
        batch.arrival_warehouse_id = to_wh.id
        batch.arrival_warehouse_name = to_wh.name
        db.flush()

    logger.info(
        "outbound batch %s arrived at %s qty=%s",
        batch.batch_number,
        to_wh.code,
        batch.qty,
    )
    return batch, stock
