"""Result envelopes for bulk operations and read-side summaries."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence
    from uuid import UUID

    from loadtally.domain.errors import LoadTallyError
    from loadtally.domain.model import (
        Category,
        InventoryRecord,
        MatchField,
        ScanningSession,
        ScanResultKind,
        SessionStatus,
    )


@dataclass(slots=True)
class BulkResult:
    """Partial-failure envelope: what went through and what did not, per id."""

    succeeded: list[UUID] = field(default_factory=list["UUID"])
    failed: list[tuple[UUID, LoadTallyError]] = field(
        default_factory=list[tuple["UUID", "LoadTallyError"]]
    )

    @property
    def partial(self) -> bool:
        return bool(self.failed) and bool(self.succeeded)

    @property
    def failed_ids(self) -> list[UUID]:
        return [item_id for item_id, _ in self.failed]


@dataclass(slots=True)
class ConversionResult(BulkResult):
    ledger_written: bool = True


@dataclass(frozen=True, slots=True)
class ScanResult:
    kind: ScanResultKind
    items: Sequence[InventoryRecord] = ()
    matched_field: MatchField | None = None

    @property
    def item(self) -> InventoryRecord | None:
        """The single match, when ``kind`` is unique."""

        return self.items[0] if len(self.items) == 1 else None


@dataclass(frozen=True, slots=True)
class SessionSummary:
    session_id: UUID
    name: str
    category: Category
    bucket: str | None
    status: SessionStatus
    scanned_count: int
    total_items: int

    @property
    def remaining(self) -> int:
        return max(self.total_items - self.scanned_count, 0)

    @classmethod
    def of(cls, session: ScanningSession, *, total_items: int) -> SessionSummary:
        return cls(
            session_id=session.id,
            name=session.name,
            category=session.category,
            bucket=session.bucket,
            status=session.status,
            scanned_count=session.scanned_count,
            total_items=total_items,
        )
