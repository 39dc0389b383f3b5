"""Inventory records: one physical unit (or qty of units) in a category/load."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, ClassVar

from .entity import TenantScoped
from .enums import Category, EntityType, MatchField
from .primitives import utcnow

if TYPE_CHECKING:
    from datetime import datetime
    from uuid import UUID


@dataclass(eq=False, kw_only=True)
class InventoryRecord(TenantScoped):
    ENTITY_TYPE: ClassVar[EntityType] = EntityType.INVENTORY_RECORD

    category: Category
    bucket: str | None = None

    serial: str | None = None
    cso: str | None = None
    model: str | None = None
    qty: int = 1
    product_type: str | None = None

    scanned: bool = False
    scanned_at: datetime | None = None
    scanned_by: str | None = None

    notes: str | None = None
    product_id: UUID | None = None

    # Last values reported by the ERP snapshot
    erp_status: str | None = None
    erp_quantity: int | None = None

    def code_for(self, field: MatchField) -> str | None:
        match field:
            case MatchField.SERIAL:
                return self.serial
            case MatchField.CSO:
                return self.cso
            case MatchField.MODEL:
                return self.model

    def in_scope(self, category: Category, bucket: str | None) -> bool:
        """Whether this record belongs to a session scope (``bucket=None`` = whole category)."""

        if self.category is not category:
            return False
        return bucket is None or self.bucket == bucket

    def mark_scanned(self, *, actor: str | None, at: datetime | None = None) -> bool:
        """Flag as scanned; returns ``False`` when it already was (no-op)."""

        if self.scanned:
            return False
        moment = at or utcnow()
        self.scanned = True
        self.scanned_at = moment
        self.scanned_by = actor
        self.touch(moment)
        return True
