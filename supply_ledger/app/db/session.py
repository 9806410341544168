from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from supply_ledger.app.core.config import settings

engine = create_engine(settings.DATABASE_URL, pool_pre_ping=True, echo=settings.DB_ECHO)
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)


@contextmanager
def atomic(db: Session) -> Iterator[Session]:
    """
    Unité de travail : commit si le bloc sort normalement,
    rollback sur toute exception (erreurs métier comprises) puis re-raise.
    """
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
