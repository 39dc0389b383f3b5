"""Scanning sessions: a bounded unit of scanning work over a category/load scope.

A session only references inventory record ids. Its item set is always
computed live from ``category`` and ``bucket``; nothing about the scope's
membership is stored on the session.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, ClassVar

from loadtally.domain.errors import InvalidTransition

from .entity import TenantScoped
from .enums import Category, EntityType, SessionSource, SessionStatus
from .primitives import utcnow

if TYPE_CHECKING:
    from datetime import datetime
    from uuid import UUID


_ALLOWED_TRANSITIONS: dict[SessionStatus, frozenset[SessionStatus]] = {
    SessionStatus.DRAFT: frozenset({SessionStatus.ACTIVE, SessionStatus.CLOSED}),
    SessionStatus.ACTIVE: frozenset({SessionStatus.CLOSED}),
    SessionStatus.CLOSED: frozenset(),
}


@dataclass(eq=False, kw_only=True)
class ScanningSession(TenantScoped):
    ENTITY_TYPE: ClassVar[EntityType] = EntityType.SCANNING_SESSION

    name: str
    category: Category
    bucket: str | None = None
    status: SessionStatus = SessionStatus.ACTIVE
    source: SessionSource = SessionSource.MANUAL

    # Reassigned (never mutated in place) so the ORM sees the change
    scanned_item_ids: frozenset[UUID] = field(default_factory=frozenset["UUID"])

    created_by: str | None = None
    updated_by: str | None = None
    closed_by: str | None = None
    closed_at: datetime | None = None

    @property
    def scanned_count(self) -> int:
        return len(self.scanned_item_ids)

    @property
    def is_closed(self) -> bool:
        return self.status is SessionStatus.CLOSED

    def transition(
        self,
        status: SessionStatus,
        *,
        actor: str | None,
        at: datetime | None = None,
    ) -> bool:
        """Apply a forward-only status change; returns ``False`` for a same-state no-op.

        ``closed`` is terminal: every request, including ``closed`` again, fails.
        """

        if self.is_closed:
            raise InvalidTransition(f"Session {self.name!r}", self.status, status)
        if status is self.status:
            return False
        if status not in _ALLOWED_TRANSITIONS[self.status]:
            raise InvalidTransition(f"Session {self.name!r}", self.status, status)

        moment = at or utcnow()
        self.status = status
        self.updated_by = actor
        if status is SessionStatus.CLOSED:
            self.closed_at = moment
            self.closed_by = actor
        self.touch(moment)
        return True

    def record_scan(self, item_id: UUID, *, actor: str | None, at: datetime | None = None) -> bool:
        """Add ``item_id`` to the scanned set; returns ``False`` when it was already there."""

        if self.status is not SessionStatus.ACTIVE:
            raise InvalidTransition(f"Session {self.name!r}", self.status, "scanning")
        if item_id in self.scanned_item_ids:
            return False
        self.scanned_item_ids = self.scanned_item_ids | {item_id}
        self.updated_by = actor
        self.touch(at)
        return True
