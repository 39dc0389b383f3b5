"""Shared reconciliation contracts: snapshot rows, row resolutions and run results."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, replace
from enum import StrEnum
from typing import TYPE_CHECKING, Literal

from loadtally.domain.model import normalize_code

if TYPE_CHECKING:
    from uuid import UUID

    from loadtally.domain.errors import AmbiguousMatch, LoadTallyError
    from loadtally.domain.model import Category, ChangeEntry, InventoryRecord, MatchField


@dataclass(frozen=True, slots=True, kw_only=True)
class SnapshotRow:
    """One ERP row. It carries identifying codes and ERP status, never a local id.

    ``None`` means the ERP did not report a value, so the stored value is kept.
    """

    serial: str | None = None
    cso: str | None = None
    model: str | None = None
    bucket: str | None = None
    qty: int | None = None
    product_type: str | None = None
    erp_status: str | None = None
    erp_quantity: int | None = None

    def normalized(self) -> SnapshotRow:
        return replace(
            self,
            serial=normalize_code(self.serial),
            cso=normalize_code(self.cso),
            model=normalize_code(self.model),
            bucket=normalize_code(self.bucket),
            product_type=normalize_code(self.product_type),
            erp_status=normalize_code(self.erp_status),
        )

    def as_payload(self) -> dict[str, object]:
        return {key: value for key, value in asdict(self).items() if value is not None}


class ResolutionStatus(StrEnum):
    NEW = "new"
    MATCHED = "matched"
    AMBIGUOUS = "ambiguous"


@dataclass(slots=True, kw_only=True)
class NewRow:
    """No internal record carries the row's serial or cso."""

    status: Literal[ResolutionStatus.NEW] = ResolutionStatus.NEW


@dataclass(slots=True, kw_only=True)
class MatchedRow:
    record: InventoryRecord
    matched_field: MatchField
    status: Literal[ResolutionStatus.MATCHED] = ResolutionStatus.MATCHED


@dataclass(slots=True, kw_only=True)
class AmbiguousRow:
    candidates: tuple[InventoryRecord, ...]
    matched_field: MatchField
    value: str
    status: Literal[ResolutionStatus.AMBIGUOUS] = ResolutionStatus.AMBIGUOUS

    @property
    def candidate_ids(self) -> tuple[UUID, ...]:
        return tuple(record.id for record in self.candidates)


type RowResolution = NewRow | MatchedRow | AmbiguousRow


@dataclass(frozen=True, slots=True)
class FailedRow:
    index: int
    row: SnapshotRow
    error: LoadTallyError


@dataclass(slots=True, kw_only=True)
class ReconciliationResult:
    run_id: UUID
    category: Category
    inserted: list[UUID] = field(default_factory=list["UUID"])
    updated: list[UUID] = field(default_factory=list["UUID"])
    unchanged: int = 0
    conflicts: list[UUID] = field(default_factory=list["UUID"])
    ambiguous: list[AmbiguousMatch] = field(default_factory=list["AmbiguousMatch"])
    failed: list[FailedRow] = field(default_factory=list[FailedRow])
    changes: list[ChangeEntry] = field(default_factory=list["ChangeEntry"])
    new_scopes: list[tuple[Category, str]] = field(default_factory=list[tuple["Category", str]])
    spawned_sessions: list[UUID] = field(default_factory=list["UUID"])
    sessions_error: Exception | None = None

    @property
    def processed(self) -> int:
        return len(self.inserted) + len(self.updated) + self.unchanged + len(self.conflicts)
