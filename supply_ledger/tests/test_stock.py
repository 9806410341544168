import pytest
from sqlalchemy import func, select

from supply_ledger.app.db.models.core_types import MovementType
from supply_ledger.app.db.models.models_v1 import Stock, StockMovement
from supply_ledger.app.db.session import atomic
from supply_ledger.services.errors import InsufficientStock, InvalidQuantity
from supply_ledger.services.stock import (
    MovementRef,
    adjust_stock,
    decrease_stock,
    get_or_create_stock,
    increase_stock,
)


def test_get_or_create_stock_is_unique_per_pair(db_session, variant, warehouse, overseas_warehouse):
    with atomic(db_session):
        a = get_or_create_stock(db_session, variant.id, warehouse.id)
        b = get_or_create_stock(db_session, variant.id, warehouse.id)
        c = get_or_create_stock(db_session, variant.id, overseas_warehouse.id)

    assert a.id == b.id
    assert a.id != c.id
    assert db_session.execute(select(func.count()).select_from(Stock)).scalar_one() == 2


def test_increase_and_decrease_write_movements(db_session, variant, warehouse):
    ref = MovementRef(related_type="inbound_batches", related_id=7, related_number="IB-1")
    with atomic(db_session):
        increase_stock(db_session, variant.id, warehouse.id, 10, ref=ref)
        st = decrease_stock(db_session, variant.id, warehouse.id, 4)

    assert st.qty_on_hand == 6
    movements = db_session.execute(select(StockMovement).order_by(StockMovement.id)).scalars().all()
    assert [m.movement_type for m in movements] == [MovementType.receipt, MovementType.issue]
    assert movements[0].related_number == "IB-1"
    assert (movements[1].qty_before, movements[1].qty_after) == (10, 6)


def test_decrease_respects_reserved(db_session, variant, warehouse):
    with atomic(db_session):
        st = increase_stock(db_session, variant.id, warehouse.id, 10)
        st.qty_reserved = 8

    with pytest.raises(InsufficientStock) as exc:
        with atomic(db_session):
            decrease_stock(db_session, variant.id, warehouse.id, 3)
    assert exc.value.available == 2


def test_increase_requires_positive(db_session, variant, warehouse):
    with pytest.raises(InvalidQuantity):
        increase_stock(db_session, variant.id, warehouse.id, 0)


def test_adjust_stock_sets_absolute_value(db_session, variant, warehouse):
    with atomic(db_session):
        increase_stock(db_session, variant.id, warehouse.id, 10)

    st = adjust_stock(db_session, variant.id, warehouse.id, 7, reason="cycle count")
    assert st.qty_on_hand == 7

    mv = db_session.execute(
        select(StockMovement).where(StockMovement.movement_type == MovementType.adjustment)
    ).scalar_one()
    assert (mv.quantity, mv.qty_before, mv.qty_after, mv.reason) == (3, 10, 7, "cycle count")


def test_adjust_stock_below_reserved_is_rejected(db_session, variant, warehouse):
    with atomic(db_session):
        st = increase_stock(db_session, variant.id, warehouse.id, 10)
        st.qty_reserved = 5

    with pytest.raises(InsufficientStock):
        adjust_stock(db_session, variant.id, warehouse.id, 4)
