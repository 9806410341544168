"""
Primitives du ledger de quantités.

Fonctions pures partagées par tous les ordres agrégés (contrat, bon de
livraison, entrée en attente, bon de sortie). Aucune session, aucun effet
de bord.

Règle métier :
    fulfilled == 0                       -> PENDING
    fulfilled >= ordered et ordered > 0  -> FULFILLED
    sinon                                -> PARTIAL

Un ordre vide (ordered == 0) reste PENDING : jamais d'auto-complétion.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from supply_ledger.app.db.models.core_types import FulfillmentStatus
from supply_ledger.services.errors import InvalidQuantity, OutOfRange


def require_quantity(value: Any, *, allow_zero: bool = True) -> int:
    # bool hérite de int : True n'est pas une quantité
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidQuantity(value, "quantity must be an integer")
    if value < 0 or (value == 0 and not allow_zero):
        bound = ">= 0" if allow_zero else "> 0"
        raise InvalidQuantity(value, f"quantity must be {bound}")
    return value


def derive_status(
    total_ordered: int,
    total_fulfilled: int,
    terminal_state: Enum | None = None,
) -> Enum:
    if terminal_state is not None:
        return terminal_state

    require_quantity(total_ordered)
    require_quantity(total_fulfilled)

    if total_fulfilled == 0 or total_ordered == 0:
        return FulfillmentStatus.pending
    if total_fulfilled >= total_ordered:
        return FulfillmentStatus.fulfilled
    return FulfillmentStatus.partial


def apply_delta(current: int, delta: int, maximum: int, *, field: str = "quantity") -> int:
    new_value = current + delta
    if new_value < 0 or new_value > maximum:
        raise OutOfRange(field, new_value, maximum)
    return new_value


def clamp_decrement(current: int, qty: int) -> int:
    return max(0, current - qty)
