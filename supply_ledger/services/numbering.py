from __future__ import annotations

import secrets
import string
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.orm import Session

_ALPHABET = string.ascii_uppercase + string.digits
_MAX_ATTEMPTS = 5


def _candidate(prefix: str, length: int) -> str:
    day = datetime.now(timezone.utc).strftime("%Y%m%d")
    suffix = "".join(secrets.choice(_ALPHABET) for _ in range(length))
    return f"{prefix}-{day}-{suffix}"


def next_document_number(db: Session, column, prefix: str) -> str:
    """
    Numéro lisible PREFIX-YYYYMMDD-XXXX, unique sur `column`.
    Après quelques collisions on allonge le suffixe.
    """
    for _ in range(_MAX_ATTEMPTS):
        number = _candidate(prefix, 4)
        if db.execute(select(column).where(column == number)).first() is None:
            return number
    return _candidate(prefix, 8)
