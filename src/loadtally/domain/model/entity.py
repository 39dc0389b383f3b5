"""Base building block: internal identity and timestamps."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, ClassVar
from uuid import UUID

from .primitives import new_id, utcnow

if TYPE_CHECKING:
    from datetime import datetime

    from .enums import EntityType


@dataclass(eq=False, kw_only=True)
class Entity:
    """Internal identity exists immediately in the domain."""

    id: UUID = field(default_factory=new_id)

    # class-level discriminator; subclasses must override
    ENTITY_TYPE: ClassVar[EntityType]

    @property
    def entity_type(self) -> EntityType:
        return self.ENTITY_TYPE


@dataclass(eq=False, kw_only=True)
class TenantScoped(Entity):
    tenant_scope: str
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    def touch(self, at: datetime | None = None) -> None:
        self.updated_at = at or utcnow()
