import itertools
import os

# doit précéder tout import de supply_ledger (engine créé à l'import)
os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from supply_ledger.app.db.base import Base
from supply_ledger.app.db.models.models_v1 import (
    DeliveryOrder,
    OutboundOrder,
    PendingInbound,
    Product,
    ProductVariant,
    PurchaseContract,
    PurchaseContractItem,
    Warehouse,
)
from supply_ledger.app.db.models.core_types import WarehouseType


@pytest.fixture(scope="function")
def db_session() -> Session:
    """
    Session DB isolée par test.

    Base SQLite en mémoire neuve à chaque test : les services committent
    eux-mêmes, donc pas de transaction englobante à rollback.
    """
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    session = sessionmaker(bind=engine, autoflush=False, autocommit=False)()

    try:
        yield session
    finally:
        session.close()
        engine.dispose()


@pytest.fixture
def warehouse(db_session) -> Warehouse:
    wh = Warehouse(name="国内主仓", code="CN-MAIN", type=WarehouseType.domestic, active=True)
    db_session.add(wh)
    db_session.commit()
    return wh


@pytest.fixture
def overseas_warehouse(db_session) -> Warehouse:
    wh = Warehouse(name="美西仓", code="US-WEST", type=WarehouseType.overseas, active=True)
    db_session.add(wh)
    db_session.commit()
    return wh


@pytest.fixture
def variant(db_session) -> ProductVariant:
    product = Product(name="Linen shirt", active=True)
    db_session.add(product)
    db_session.flush()
    v = ProductVariant(product_id=product.id, sku="SHIRT-WHT-M", color="white", size="M")
    db_session.add(v)
    db_session.commit()
    return v


@pytest.fixture
def make_contract(db_session, variant):
    """Contrat + lignes ; `lines` = liste de qty commandées."""

    def _make(lines=(50, 30), number="PC-0001"):
        contract = PurchaseContract(contract_number=number, supplier_name="Factory A")
        db_session.add(contract)
        db_session.flush()
        for idx, qty in enumerate(lines):
            db_session.add(
                PurchaseContractItem(
                    contract_id=contract.id,
                    variant_id=variant.id,
                    sku=f"{variant.sku}-{idx}",
                    qty=qty,
                    sort_order=idx,
                )
            )
        contract.total_qty = sum(lines)
        db_session.commit()
        return contract

    return _make


@pytest.fixture
def make_pending_inbound(db_session, variant, make_contract):
    """Entrée en attente liée à un bon de livraison (sans passer par les services)."""

    seq = itertools.count(1)

    def _make(qty=100):
        contract = make_contract(lines=(qty,), number=f"PC-PI-{next(seq)}")
        item = contract.items[0]
        do = DeliveryOrder(
            delivery_number=f"DO-TEST-{contract.id}",
            contract_id=contract.id,
            contract_item_id=item.id,
            variant_id=variant.id,
            sku=item.sku,
            qty=qty,
        )
        db_session.add(do)
        db_session.flush()
        pending = PendingInbound(
            inbound_number=f"IN-TEST-{contract.id}",
            delivery_order_id=do.id,
            variant_id=variant.id,
            sku=item.sku,
            qty=qty,
        )
        db_session.add(pending)
        db_session.commit()
        return pending

    return _make


@pytest.fixture
def make_outbound_order(db_session, variant, warehouse):
    seq = itertools.count(1)

    def _make(qty=100):
        order = OutboundOrder(
            outbound_number=f"OB-TEST-{next(seq):04d}",
            variant_id=variant.id,
            sku=variant.sku,
            qty=qty,
            warehouse_id=warehouse.id,
            warehouse_name=warehouse.name,
        )
        db_session.add(order)
        db_session.commit()
        return order

    return _make
