from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Callable

Clock = Callable[[], datetime]
NonceSource = Callable[[], str]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def uuid_nonce() -> str:
    # 32 lowercase hex chars, i.e. a UUID without the dashes
    return uuid.uuid4().hex


def as_utc(value: datetime) -> datetime:
    """Aware UTC copy of ``value``; naive datetimes are taken to be UTC already."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
