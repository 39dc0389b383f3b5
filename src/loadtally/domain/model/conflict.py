"""Open conflicts: an external row matching several internal records."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, ClassVar

from loadtally.domain.errors import InvalidTransition

from .entity import TenantScoped
from .enums import Category, ConflictStatus, EntityType, MatchField
from .primitives import utcnow

if TYPE_CHECKING:
    from datetime import datetime
    from uuid import UUID


@dataclass(eq=False, kw_only=True)
class Conflict(TenantScoped):
    ENTITY_TYPE: ClassVar[EntityType] = EntityType.CONFLICT

    category: Category
    match_field: MatchField
    match_value: str
    candidate_ids: tuple[UUID, ...]
    incoming: dict[str, object] = field(default_factory=dict[str, object])
    status: ConflictStatus = ConflictStatus.OPEN
    resolved_at: datetime | None = None
    resolved_by: str | None = None
    resolution_note: str | None = None

    @property
    def detected_at(self) -> datetime:
        return self.created_at

    @property
    def is_open(self) -> bool:
        return self.status is ConflictStatus.OPEN

    def refresh(
        self,
        candidate_ids: tuple[UUID, ...],
        incoming: dict[str, object],
        *,
        at: datetime | None = None,
    ) -> bool:
        """Point an open conflict at the latest candidates/row; ``True`` if anything changed."""

        if set(candidate_ids) == set(self.candidate_ids) and incoming == self.incoming:
            return False
        self.candidate_ids = candidate_ids
        self.incoming = dict(incoming)
        self.touch(at)
        return True

    def resolve(self, *, actor: str | None, note: str | None = None) -> None:
        if not self.is_open:
            raise InvalidTransition("Conflict", self.status, ConflictStatus.RESOLVED)
        moment = utcnow()
        self.status = ConflictStatus.RESOLVED
        self.resolved_at = moment
        self.resolved_by = actor
        self.resolution_note = note
        self.touch(moment)
