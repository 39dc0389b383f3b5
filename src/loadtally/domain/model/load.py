"""Load metadata: a named sub-grouping (truckload, pallet) within a category."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, ClassVar

from loadtally.domain.errors import InvalidTransition, ValidationError

from .entity import TenantScoped
from .enums import Category, EntityType, LoadStatus
from .primitives import normalize_code

if TYPE_CHECKING:
    from datetime import datetime


def validate_load_name(name: str | None) -> str:
    normalized = normalize_code(name)
    if normalized is None:
        raise ValidationError("Load name must not be blank")
    return normalized


@dataclass(eq=False, kw_only=True)
class Load(TenantScoped):
    ENTITY_TYPE: ClassVar[EntityType] = EntityType.LOAD

    category: Category
    name: str
    status: LoadStatus = LoadStatus.ACTIVE
    friendly_name: str | None = None
    notes: str | None = None
    created_by: str | None = None

    def rename(self, new_name: str, *, at: datetime | None = None) -> None:
        self.name = validate_load_name(new_name)
        self.touch(at)

    def advance(self, status: LoadStatus, *, at: datetime | None = None) -> bool:
        """Move the status forward; returns ``False`` if it is already ``status``.

        Status never regresses, so ``delivered`` is terminal.
        """

        if status is self.status:
            return False
        if status.rank < self.status.rank:
            raise InvalidTransition(f"Load {self.name!r}", self.status, status)
        self.status = status
        self.touch(at)
        return True
