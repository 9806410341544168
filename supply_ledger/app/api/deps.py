from __future__ import annotations

from collections.abc import Iterator

from sqlalchemy.orm import Session

from supply_ledger.app.db.session import SessionLocal


def get_db() -> Iterator[Session]:
    """
    Une session par requête.

    Les services committent eux-mêmes via atomic() ; une transaction encore
    ouverte en fin de requête (lecture seule, erreur) est annulée.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        if db.in_transaction():
            db.rollback()
        db.close()
