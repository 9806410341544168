import logging

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from supply_ledger.app.api.v1.router import router as v1_router
from supply_ledger.app.core.config import settings
from supply_ledger.services.errors import InvalidQuantity, InvalidRequest, LedgerError

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# champs de quantité des corps de requête : rejet = InvalidQuantity
QUANTITY_FIELDS = frozenset({"qty", "received_qty", "finished_qty"})

app = FastAPI(title="Supply Ledger", version="0.1.0")
app.include_router(v1_router, prefix="/v1")


def _error_response(exc: LedgerError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=jsonable_encoder(exc.to_dict()))


@app.exception_handler(LedgerError)
async def ledger_error_handler(request: Request, exc: LedgerError):
    return _error_response(exc)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    for err in errors:
        loc = err.get("loc") or ()
        if loc and loc[-1] in QUANTITY_FIELDS:
            logger.warning("%s %s: invalid %s=%r", request.method, request.url.path, loc[-1], err.get("input"))
            return _error_response(InvalidQuantity(err.get("input"), err.get("msg", "quantity must be an integer")))

    logger.warning("%s %s: invalid request body", request.method, request.url.path)
    return _error_response(
        InvalidRequest([{"loc": list(e.get("loc") or ()), "msg": e.get("msg"), "type": e.get("type")} for e in errors])
    )
