from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from supply_ledger.app.core.config import settings
from supply_ledger.app.db.session import SessionLocal
from supply_ledger.app.db.models.models_v1 import Warehouse
from supply_ledger.app.db.models.core_types import WarehouseType

logger = logging.getLogger(__name__)

OVERSEAS_WAREHOUSE_CODE = "US-WEST"


def _ensure_warehouse(db: Session, code: str, name: str, type_: WarehouseType) -> Warehouse:
    wh = db.scalar(select(Warehouse).where(Warehouse.code == code))
    if not wh:
        wh = Warehouse(code=code, name=name, type=type_, active=True)
        db.add(wh)
        db.commit()
    return wh


def run_seed(db: Session | None = None):
    owns_session = db is None
    if owns_session:
        db = SessionLocal()
    try:
        # 1) Entrepôt de réception par défaut (domestique)
        _ensure_warehouse(db, settings.DEFAULT_WAREHOUSE_CODE, "国内主仓", WarehouseType.domestic)

        # 2) Un entrepôt outre-mer pour les bons de sortie
        _ensure_warehouse(db, OVERSEAS_WAREHOUSE_CODE, "美西仓", WarehouseType.overseas)

        logger.info("SEED OK: warehouses=%s,%s", settings.DEFAULT_WAREHOUSE_CODE, OVERSEAS_WAREHOUSE_CODE)
    finally:
        if owns_session:
            db.close()


if __name__ == "__main__":
    logging.basicConfig(level=settings.LOG_LEVEL)
    run_seed()
