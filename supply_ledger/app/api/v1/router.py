from fastapi import APIRouter

from supply_ledger.app.api.v1.endpoints.health import router as health_router
from supply_ledger.app.api.v1.endpoints.purchase_contracts import router as purchase_contracts_router
from supply_ledger.app.api.v1.endpoints.inbound import router as inbound_router
from supply_ledger.app.api.v1.endpoints.outbound import router as outbound_router

router = APIRouter()
router.include_router(health_router, tags=["health"])
router.include_router(purchase_contracts_router, tags=["purchase_contracts"])
router.include_router(inbound_router, tags=["inbound"])
router.include_router(outbound_router, tags=["outbound"])
