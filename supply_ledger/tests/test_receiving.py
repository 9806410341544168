import pytest
from sqlalchemy import func, select

from supply_ledger.app.db.models.core_types import (
    DeliveryOrderStatus,
    InboundStatus,
    MovementType,
    OutboundStatus,
)
from supply_ledger.app.db.models.models_v1 import (
    InboundBatch,
    OutboundOrder,
    Stock,
    StockMovement,
)
from supply_ledger.services.errors import (
    ExceedsOrderedQuantity,
    InsufficientStock,
    InvalidQuantity,
    NotFound,
    OrderClosed,
)
from supply_ledger.services.receiving import (
    AUTO_OUTBOUND_REASON,
    create_outbound_from_inbound_batch,
    receive_delivery_into_warehouse,
    reverse_inbound_batch,
    spawn_outbound_order,
)
from supply_ledger.services.stock import decrease_stock
from supply_ledger.app.db.session import atomic


def _outbound_count(db_session):
    return db_session.execute(select(func.count()).select_from(OutboundOrder)).scalar_one()


def test_partial_then_full_receipt(db_session, make_pending_inbound, warehouse):
    """
    GIVEN une entrée en attente de 100
    WHEN  réception 60 puis 40
    THEN  stock 100, statut 已入库, un bon de sortie auto-créé
    """
    pending = make_pending_inbound(qty=100)

    first = receive_delivery_into_warehouse(db_session, pending.id, warehouse.id, 60)
    assert first.pending_inbound.received_qty == 60
    assert first.pending_inbound.status is InboundStatus.partial
    assert first.pending_inbound.delivery_order.received_qty == 60
    assert first.pending_inbound.delivery_order.status is DeliveryOrderStatus.partial
    assert first.stock.qty_on_hand == 60
    assert first.batch.stock_applied is True
    assert first.batch.warehouse_name == warehouse.name
    assert first.outbound_order is None
    assert first.outbound_created is False

    second = receive_delivery_into_warehouse(db_session, pending.id, warehouse.id, 40)
    assert second.pending_inbound.received_qty == 100
    assert second.pending_inbound.status is InboundStatus.received
    assert second.pending_inbound.delivery_order.status is DeliveryOrderStatus.received
    assert second.stock.qty_on_hand == 100

    ob = second.outbound_order
    assert second.outbound_created is True
    assert ob.qty == 100
    assert ob.status is OutboundStatus.pending
    assert ob.destination is None
    assert ob.reason == AUTO_OUTBOUND_REASON
    assert ob.pending_inbound_id == pending.id
    assert ob.warehouse_id == warehouse.id

    movements = db_session.execute(select(StockMovement).order_by(StockMovement.id)).scalars().all()
    assert [(m.movement_type, m.quantity, m.qty_before, m.qty_after) for m in movements] == [
        (MovementType.receipt, 60, 0, 60),
        (MovementType.receipt, 40, 60, 100),
    ]


def test_outbound_spawned_once(db_session, make_pending_inbound, warehouse):
    pending = make_pending_inbound(qty=100)

    outcome = receive_delivery_into_warehouse(db_session, pending.id, warehouse.id, 100)
    assert outcome.outbound_created is True
    first_id = outcome.outbound_order.id

    # réception à 0 sur une entrée déjà complète : pas de second bon
    again = receive_delivery_into_warehouse(db_session, pending.id, warehouse.id, 0)
    assert again.outbound_created is False
    assert again.outbound_order.id == first_id

    ob, created = spawn_outbound_order(db_session, pending.id, warehouse.id)
    assert created is False
    assert ob.id == first_id
    assert _outbound_count(db_session) == 1


def test_zero_receipt_moves_nothing(db_session, make_pending_inbound, warehouse):
    pending = make_pending_inbound(qty=10)
    outcome = receive_delivery_into_warehouse(db_session, pending.id, warehouse.id, 0)

    assert outcome.batch.qty == 0
    assert outcome.batch.stock_applied is False
    assert outcome.stock.qty_on_hand == 0
    assert outcome.pending_inbound.status is InboundStatus.pending
    assert db_session.execute(select(StockMovement)).first() is None


def test_receipt_above_remaining_is_rejected(db_session, make_pending_inbound, warehouse):
    pending = make_pending_inbound(qty=100)
    receive_delivery_into_warehouse(db_session, pending.id, warehouse.id, 60)

    with pytest.raises(ExceedsOrderedQuantity) as exc:
        receive_delivery_into_warehouse(db_session, pending.id, warehouse.id, 41)
    assert exc.value.remaining == 40

    stock = db_session.execute(select(Stock)).scalar_one()
    assert stock.qty_on_hand == 60
    assert db_session.execute(select(func.count()).select_from(InboundBatch)).scalar_one() == 1


@pytest.mark.parametrize("qty", [-1, 2.5, "10"])
def test_receipt_qty_must_be_non_negative_int(db_session, make_pending_inbound, warehouse, qty):
    pending = make_pending_inbound(qty=10)
    with pytest.raises(InvalidQuantity):
        receive_delivery_into_warehouse(db_session, pending.id, warehouse.id, qty)


def test_receipt_unknown_pending_or_warehouse(db_session, make_pending_inbound, warehouse):
    with pytest.raises(NotFound):
        receive_delivery_into_warehouse(db_session, 999, warehouse.id, 1)

    pending = make_pending_inbound(qty=10)
    with pytest.raises(NotFound):
        receive_delivery_into_warehouse(db_session, pending.id, 999, 1)


def test_receipt_on_cancelled_delivery_order(db_session, make_pending_inbound, warehouse):
    pending = make_pending_inbound(qty=10)
    pending.delivery_order.status = DeliveryOrderStatus.cancelled
    db_session.commit()

    with pytest.raises(OrderClosed):
        receive_delivery_into_warehouse(db_session, pending.id, warehouse.id, 5)


def test_receipt_defaults_to_configured_warehouse(db_session, make_pending_inbound, overseas_warehouse, warehouse):
    pending = make_pending_inbound(qty=10)
    outcome = receive_delivery_into_warehouse(db_session, pending.id, None, 4)

    assert outcome.batch.warehouse_id == warehouse.id
    assert outcome.stock.warehouse_id == warehouse.id


def test_reverse_inbound_batch_rolls_everything_back(db_session, make_pending_inbound, warehouse):
    pending = make_pending_inbound(qty=100)
    first = receive_delivery_into_warehouse(db_session, pending.id, warehouse.id, 60)
    receive_delivery_into_warehouse(db_session, pending.id, warehouse.id, 40)

    pending = reverse_inbound_batch(db_session, first.batch.id)

    assert pending.received_qty == 40
    assert pending.status is InboundStatus.partial
    assert pending.delivery_order.received_qty == 40
    assert pending.delivery_order.status is DeliveryOrderStatus.partial
    stock = db_session.execute(select(Stock)).scalar_one()
    assert stock.qty_on_hand == 40

    last = db_session.execute(select(StockMovement).order_by(StockMovement.id.desc())).scalars().first()
    assert last.movement_type is MovementType.receipt_reversal
    assert last.quantity == 60


def test_reverse_inbound_batch_insufficient_stock(db_session, make_pending_inbound, warehouse):
    pending = make_pending_inbound(qty=100)
    outcome = receive_delivery_into_warehouse(db_session, pending.id, warehouse.id, 60)
    batch_id = outcome.batch.id

    # 30 unités déjà sorties du stock
    with atomic(db_session):
        decrease_stock(db_session, pending.variant_id, warehouse.id, 30)

    with pytest.raises(InsufficientStock) as exc:
        reverse_inbound_batch(db_session, batch_id)
    assert exc.value.available == 30
    assert exc.value.requested == 60

    # rien n'a bougé
    assert db_session.get(InboundBatch, batch_id) is not None
    db_session.refresh(pending)
    assert pending.received_qty == 60
    stock = db_session.execute(select(Stock)).scalar_one()
    assert stock.qty_on_hand == 30


def test_create_outbound_from_inbound_batch(db_session, make_pending_inbound, overseas_warehouse):
    pending = make_pending_inbound(qty=20)
    outcome = receive_delivery_into_warehouse(db_session, pending.id, overseas_warehouse.id, 5)
    assert outcome.outbound_order is None

    ob, created = create_outbound_from_inbound_batch(db_session, outcome.batch.id)
    assert created is True
    assert ob.qty == 20
    assert ob.warehouse_id == overseas_warehouse.id
    assert ob.warehouse_name == overseas_warehouse.name

    again, created = create_outbound_from_inbound_batch(db_session, outcome.batch.id)
    assert created is False
    assert again.id == ob.id

    with pytest.raises(NotFound):
        create_outbound_from_inbound_batch(db_session, 999)
