"""Small value helpers shared by the domain model."""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum
from typing import Final
from uuid import UUID, uuid4


class Unset(Enum):
    """Marker for "leave unchanged", distinct from an explicit ``None``."""

    UNSET = "unset"

    def __repr__(self) -> str:
        return "UNSET"


UNSET: Final = Unset.UNSET

type Maybe[T] = T | Unset


def new_id() -> UUID:
    return uuid4()


def utcnow() -> datetime:
    return datetime.now(tz=UTC)


def normalize_code(value: str | None) -> str | None:
    """Strip a scanned/imported identifying code; blank becomes ``None``."""

    if value is None:
        return None
    stripped = value.strip()
    return stripped or None
