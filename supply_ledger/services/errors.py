"""
Erreurs métier des services de rapprochement.

Toutes ces erreurs sont attendues et remontées à l'appelant : elles sont
levées AVANT le commit de la transaction englobante, donc aucune écriture
partielle n'est visible. La couche HTTP mappe directement ``status_code``
et ``code`` dans la réponse.
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class LedgerErrorCode(Enum):
    OUT_OF_RANGE = "out_of_range"
    EXCEEDS_ORDERED_QUANTITY = "exceeds_ordered_quantity"
    LINE_OVERFLOW = "line_overflow"
    INSUFFICIENT_STOCK = "insufficient_stock"
    NOT_FOUND = "not_found"
    INVALID_QUANTITY = "invalid_quantity"
    ORDER_CLOSED = "order_closed"
    INVALID_REQUEST = "invalid_request"
    INVALID_TRANSFER = "invalid_transfer"


class LedgerError(Exception):
    code: LedgerErrorCode
    status_code: int = 400

    def __init__(self, message: str, **extra: Any):
        self.message = message
        self.extra = extra
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.code.value, "detail": self.message, **self.extra}


class OutOfRange(LedgerError):
    """Un compteur sortirait de l'intervalle [0, maximum]."""

    code = LedgerErrorCode.OUT_OF_RANGE

    def __init__(self, field: str, value: int, maximum: int, **extra: Any):
        self.field = field
        self.value = value
        self.maximum = maximum
        super().__init__(
            f"{field} must stay between 0 and {maximum} (got {value})",
            field=field,
            value=value,
            maximum=maximum,
            **extra,
        )


class ExceedsOrderedQuantity(LedgerError):
    code = LedgerErrorCode.EXCEEDS_ORDERED_QUANTITY

    def __init__(self, requested: int, remaining: int):
        self.requested = requested
        self.remaining = remaining
        super().__init__(
            f"本次数量 {requested} 超过剩余数量 {remaining}",
            requested=requested,
            remaining=remaining,
        )


class LineOverflow(LedgerError):
    """Une ligne déborde : tout le lot de deltas est rejeté."""

    code = LedgerErrorCode.LINE_OVERFLOW

    def __init__(self, item_id: int, sku: str, requested: int, remaining: int):
        self.item_id = item_id
        self.sku = sku
        self.requested = requested
        self.remaining = remaining
        super().__init__(
            f"变体 {sku} 本次拿货 {requested} 超过剩余数量 {remaining}",
            item_id=item_id,
            sku=sku,
            requested=requested,
            remaining=remaining,
        )


class InsufficientStock(LedgerError):
    code = LedgerErrorCode.INSUFFICIENT_STOCK

    def __init__(self, variant_id: int, warehouse_id: int, available: int, requested: int):
        self.variant_id = variant_id
        self.warehouse_id = warehouse_id
        self.available = available
        self.requested = requested
        super().__init__(
            f"库存不足：当前可用 {available}，需求 {requested}",
            variant_id=variant_id,
            warehouse_id=warehouse_id,
            available=available,
            requested=requested,
        )


class NotFound(LedgerError):
    code = LedgerErrorCode.NOT_FOUND
    status_code = 404

    def __init__(self, entity: str, ident: Any = None):
        self.entity = entity
        self.ident = ident
        message = f"{entity} not found" if ident is None else f"{entity} {ident} not found"
        super().__init__(message, entity=entity, ident=ident)


class InvalidQuantity(LedgerError):
    code = LedgerErrorCode.INVALID_QUANTITY

    def __init__(self, value: Any, reason: str = "quantity must be a non-negative integer"):
        self.value = value
        super().__init__(reason, value=value)


class OrderClosed(LedgerError):
    """Ordre dans un statut terminal : plus aucune variation de quantité."""

    code = LedgerErrorCode.ORDER_CLOSED
    status_code = 409

    def __init__(self, entity: str, ident: Any, status: str):
        self.entity = entity
        self.ident = ident
        self.status = status
        super().__init__(
            f"{entity} {ident} is {status}",
            entity=entity,
            ident=ident,
            status=status,
        )


class InvalidRequest(LedgerError):
    """Corps de requête rejeté par la validation du schéma (hors quantités)."""

    code = LedgerErrorCode.INVALID_REQUEST

    def __init__(self, errors: list[dict[str, Any]]):
        self.errors = errors
        super().__init__("invalid request body", errors=errors)


class InvalidTransfer(LedgerError):
    """Confirmation d'arrivée impossible (déjà confirmée, même entrepôt...)."""

    code = LedgerErrorCode.INVALID_TRANSFER

    def __init__(self, batch_id: int, reason: str, **extra: Any):
        self.batch_id = batch_id
        super().__init__(reason, batch_id=batch_id, **extra)
