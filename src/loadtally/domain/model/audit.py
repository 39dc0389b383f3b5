"""History records: category/bucket conversions and reconciliation changes.

Both are append-only. Repositories expose ``add`` and queries, never update
or delete.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, ClassVar

from .entity import Entity
from .enums import Category, ChangeType, EntityType
from .primitives import utcnow

if TYPE_CHECKING:
    from datetime import datetime
    from uuid import UUID


@dataclass(eq=False, kw_only=True)
class ConversionEntry(Entity):
    """One item moving between categories and/or buckets."""

    ENTITY_TYPE: ClassVar[EntityType] = EntityType.CONVERSION_ENTRY

    tenant_scope: str
    item_id: UUID
    from_category: Category
    to_category: Category
    from_bucket: str | None = None
    to_bucket: str | None = None
    converted_by: str | None = None
    notes: str | None = None
    created_at: datetime = field(default_factory=utcnow)


type FieldDelta = dict[str, dict[str, object]]


@dataclass(eq=False, kw_only=True)
class ChangeEntry(Entity):
    """What one reconciliation run did to one snapshot row."""

    ENTITY_TYPE: ClassVar[EntityType] = EntityType.CHANGE_ENTRY

    tenant_scope: str
    category: Category
    run_id: UUID
    change_type: ChangeType
    item_id: UUID | None = None
    serial: str | None = None
    cso: str | None = None
    delta: FieldDelta = field(default_factory=dict[str, dict[str, object]])
    created_at: datetime = field(default_factory=utcnow)
