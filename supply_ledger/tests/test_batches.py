import random

import pytest
from sqlalchemy import func, select

from supply_ledger.app.db.models.core_types import DeliveryOrderStatus, InboundStatus, OutboundStatus
from supply_ledger.app.db.models.models_v1 import OutboundBatch, Stock
from supply_ledger.app.schemas.batches import BatchCreate
from supply_ledger.services.batches import (
    BatchKind,
    rebuild_fulfilled_qty,
    record_batch,
    reverse_batch,
)
from supply_ledger.services.errors import (
    ExceedsOrderedQuantity,
    InvalidQuantity,
    NotFound,
    OrderClosed,
)


def test_record_batches_until_shipped(db_session, make_outbound_order, warehouse):
    order = make_outbound_order(qty=100)

    batch, order = record_batch(db_session, BatchKind.outbound, order.id, BatchCreate(qty=40))
    assert order.shipped_qty == 40
    assert order.status is OutboundStatus.partial
    # entrepôt du bon de sortie par défaut, nom figé
    assert batch.warehouse_id == warehouse.id
    assert batch.warehouse_name == warehouse.name
    assert batch.stock_applied is False
    assert batch.batch_number.startswith("OBB-")

    _, order = record_batch(db_session, BatchKind.outbound, order.id, BatchCreate(qty=60))
    assert order.shipped_qty == 100
    assert order.status is OutboundStatus.shipped

    # aucun effet stock
    assert db_session.execute(select(func.count()).select_from(Stock)).scalar_one() == 0


def test_record_batch_exceeding_remaining_is_rejected(db_session, make_outbound_order):
    order = make_outbound_order(qty=100)
    record_batch(db_session, BatchKind.outbound, order.id, BatchCreate(qty=90))

    with pytest.raises(ExceedsOrderedQuantity) as exc:
        record_batch(db_session, BatchKind.outbound, order.id, BatchCreate(qty=20))
    assert exc.value.remaining == 10

    db_session.refresh(order)
    assert order.shipped_qty == 90
    count = db_session.execute(select(func.count()).select_from(OutboundBatch)).scalar_one()
    assert count == 1


@pytest.mark.parametrize("qty", [0, -5])
def test_record_batch_requires_positive_qty(db_session, make_outbound_order, qty):
    order = make_outbound_order(qty=10)
    with pytest.raises(InvalidQuantity):
        record_batch(db_session, BatchKind.outbound, order.id, BatchCreate(qty=qty))


def test_record_batch_unknown_order(db_session):
    with pytest.raises(NotFound):
        record_batch(db_session, BatchKind.outbound, 999, BatchCreate(qty=1))


def test_warehouse_name_is_a_snapshot(db_session, make_outbound_order, warehouse):
    order = make_outbound_order(qty=10)
    batch, _ = record_batch(db_session, BatchKind.outbound, order.id, BatchCreate(qty=5))

    warehouse.name = "Renamed"
    db_session.commit()

    db_session.refresh(batch)
    assert batch.warehouse_name == "国内主仓"


def test_reverse_batch_steps_status_back(db_session, make_outbound_order):
    order = make_outbound_order(qty=100)
    first, _ = record_batch(db_session, BatchKind.outbound, order.id, BatchCreate(qty=40))
    second, _ = record_batch(db_session, BatchKind.outbound, order.id, BatchCreate(qty=60))
    first_id, second_id = first.id, second.id

    order = reverse_batch(db_session, BatchKind.outbound, second_id)
    assert order.shipped_qty == 40
    assert order.status is OutboundStatus.partial

    order = reverse_batch(db_session, BatchKind.outbound, first_id)
    assert order.shipped_qty == 0
    assert order.status is OutboundStatus.pending


def test_reverse_batch_twice_is_not_found_and_changes_nothing(db_session, make_outbound_order):
    order = make_outbound_order(qty=100)
    batch, _ = record_batch(db_session, BatchKind.outbound, order.id, BatchCreate(qty=30))
    record_batch(db_session, BatchKind.outbound, order.id, BatchCreate(qty=20))
    batch_id = batch.id

    reverse_batch(db_session, BatchKind.outbound, batch_id)
    with pytest.raises(NotFound):
        reverse_batch(db_session, BatchKind.outbound, batch_id)

    db_session.refresh(order)
    assert order.shipped_qty == 20


def test_rebuild_fulfilled_qty_from_surviving_batches(db_session, make_pending_inbound, warehouse):
    pending = make_pending_inbound(qty=50)
    record_batch(db_session, BatchKind.inbound, pending.id, BatchCreate(qty=20, warehouse_id=warehouse.id))
    record_batch(db_session, BatchKind.inbound, pending.id, BatchCreate(qty=5, warehouse_id=warehouse.id))

    # dérive volontaire du compteur
    pending.received_qty = 7
    db_session.commit()

    pending = rebuild_fulfilled_qty(db_session, BatchKind.inbound, pending.id)
    assert pending.received_qty == 25
    assert pending.status is InboundStatus.partial

    # idempotent
    pending = rebuild_fulfilled_qty(db_session, BatchKind.inbound, pending.id)
    assert pending.received_qty == 25


def test_fulfilled_matches_batches_under_random_operations(db_session, make_outbound_order):
    rng = random.Random(20261019)
    order = make_outbound_order(qty=120)
    order_id = order.id
    live: list[int] = []

    for _ in range(60):
        if live and rng.random() < 0.4:
            batch_id = live.pop(rng.randrange(len(live)))
            reverse_batch(db_session, BatchKind.outbound, batch_id)
        else:
            qty = rng.randint(1, 40)
            try:
                batch, _ = record_batch(db_session, BatchKind.outbound, order_id, BatchCreate(qty=qty))
            except ExceedsOrderedQuantity:
                continue
            live.append(batch.id)

        order = db_session.get(type(order), order_id)
        total = db_session.execute(
            select(func.coalesce(func.sum(OutboundBatch.qty), 0)).where(
                OutboundBatch.outbound_order_id == order_id
            )
        ).scalar_one()
        assert order.shipped_qty == total
        assert 0 <= order.shipped_qty <= order.qty
        if order.shipped_qty == 0:
            assert order.status is OutboundStatus.pending
        elif order.shipped_qty < order.qty:
            assert order.status is OutboundStatus.partial
        else:
            assert order.status is OutboundStatus.shipped


def test_record_then_reverse_restores_partial_state(db_session, make_outbound_order):
    order = make_outbound_order(qty=100)
    record_batch(db_session, BatchKind.outbound, order.id, BatchCreate(qty=40))
    db_session.refresh(order)
    before = (order.shipped_qty, order.status)
    assert before == (40, OutboundStatus.partial)

    batch, _ = record_batch(db_session, BatchKind.outbound, order.id, BatchCreate(qty=30))
    order = reverse_batch(db_session, BatchKind.outbound, batch.id)

    assert (order.shipped_qty, order.status) == before


def test_reverse_after_manual_correction_clamps_at_zero(db_session, make_outbound_order):
    """
    GIVEN un lot de 30 puis un compteur corrigé à la main à 10
    THEN l'annulation ramène shipped_qty à 0 sans erreur
    """
    order = make_outbound_order(qty=100)
    batch, _ = record_batch(db_session, BatchKind.outbound, order.id, BatchCreate(qty=30))
    batch_id = batch.id

    order.shipped_qty = 10
    db_session.commit()

    order = reverse_batch(db_session, BatchKind.outbound, batch_id)
    assert order.shipped_qty == 0
    assert order.status is OutboundStatus.pending
    assert db_session.get(OutboundBatch, batch_id) is None


def test_inbound_batch_refused_on_cancelled_delivery_order(db_session, make_pending_inbound, warehouse):
    pending = make_pending_inbound(qty=10)
    pending.delivery_order.status = DeliveryOrderStatus.cancelled
    db_session.commit()

    with pytest.raises(OrderClosed) as exc:
        record_batch(db_session, BatchKind.inbound, pending.id, BatchCreate(qty=5, warehouse_id=warehouse.id))
    assert exc.value.entity == "delivery_order"

    db_session.refresh(pending)
    assert pending.received_qty == 0
    assert pending.status is InboundStatus.pending
    assert pending.delivery_order.status is DeliveryOrderStatus.cancelled


def test_reverse_inbound_batch_steps_delivery_order_back(db_session, make_pending_inbound, warehouse):
    pending = make_pending_inbound(qty=10)
    batch, _ = record_batch(db_session, BatchKind.inbound, pending.id, BatchCreate(qty=10, warehouse_id=warehouse.id))
    db_session.refresh(pending)
    assert pending.delivery_order.status is DeliveryOrderStatus.received

    pending = reverse_batch(db_session, BatchKind.inbound, batch.id)

    do = pending.delivery_order
    assert (do.received_qty, do.status) == (0, DeliveryOrderStatus.pending)
    assert pending.status is InboundStatus.pending
