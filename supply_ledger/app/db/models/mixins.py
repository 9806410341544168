"""
Mixins communs aux modèles.
"""
from __future__ import annotations

from datetime import datetime
from types import MappingProxyType

from sqlalchemy import DateTime
from sqlalchemy.orm import Mapped, mapped_column

from supply_ledger.services.ledger import derive_status


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        nullable=False,
    )


class FulfillableMixin:
    """
    Ledger "commandé / réalisé / statut" partagé par les quatre ordres agrégés
    (PurchaseContract, DeliveryOrder, PendingInbound, OutboundOrder).

    Chaque modèle déclare :
    - ordered_field / fulfilled_field : colonnes portant les deux compteurs
    - status_ladder : FulfillmentStatus -> statut propre à l'entité
    - terminal_statuses : statuts jamais écrasés par le recalcul
    """

    ordered_field = "qty"
    fulfilled_field = "fulfilled_qty"
    status_ladder = MappingProxyType({})
    terminal_statuses = frozenset()

    @property
    def ordered_qty(self) -> int:
        return int(getattr(self, self.ordered_field) or 0)

    @property
    def fulfilled_qty(self) -> int:
        return int(getattr(self, self.fulfilled_field) or 0)

    @property
    def remaining_qty(self) -> int:
        return max(0, self.ordered_qty - self.fulfilled_qty)

    @property
    def is_terminal(self) -> bool:
        return self.status in self.terminal_statuses

    def refresh_status(self):
        if self.is_terminal:
            return self.status
        self.status = self.status_ladder[derive_status(self.ordered_qty, self.fulfilled_qty)]
        return self.status

    def set_fulfilled(self, qty: int) -> None:
        setattr(self, self.fulfilled_field, qty)
        self.refresh_status()
