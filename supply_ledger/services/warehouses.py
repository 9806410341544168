from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from supply_ledger.app.core.config import settings
from supply_ledger.app.db.models.models_v1 import Warehouse
from supply_ledger.app.db.models.core_types import WarehouseType
from supply_ledger.services.errors import NotFound


def get_warehouse(db: Session, warehouse_id: int) -> Warehouse:
    wh = db.get(Warehouse, warehouse_id)
    if wh is None:
        raise NotFound("warehouse", warehouse_id)
    return wh


def warehouse_name(db: Session, warehouse_id: int | None) -> str | None:
    """Nom à figer sur un lot / un bon au moment de l'écriture."""
    if warehouse_id is None:
        return None
    return get_warehouse(db, warehouse_id).name


def default_receiving_warehouse(db: Session) -> Warehouse:
    """
    Entrepôt de réception quand l'appelant n'en désigne pas.
    Priorité explicite au code configuré, sinon premier DOMESTIC actif,
    sinon premier entrepôt actif.
    """
    wh = (
        db.execute(
            select(Warehouse)
            .where(Warehouse.code == settings.DEFAULT_WAREHOUSE_CODE)
            .where(Warehouse.active.is_(True))
        )
        .scalars()
        .first()
    )
    if wh:
        return wh

    wh = (
        db.execute(
            select(Warehouse)
            .where(Warehouse.type == WarehouseType.domestic)
            .where(Warehouse.active.is_(True))
            .order_by(Warehouse.id.asc())
        )
        .scalars()
        .first()
    )
    if wh:
        return wh

    wh = (
        db.execute(
            select(Warehouse)
            .where(Warehouse.active.is_(True))
            .order_by(Warehouse.id.asc())
        )
        .scalars()
        .first()
    )
    if not wh:
        raise NotFound("warehouse", settings.DEFAULT_WAREHOUSE_CODE)

    return wh
