"""Key snapshot rows against the internal records of one category."""

from __future__ import annotations

from typing import TYPE_CHECKING

from loadtally.domain.errors import ValidationError
from loadtally.domain.model import MatchField

from .contracts import AmbiguousRow, MatchedRow, NewRow, RowResolution

if TYPE_CHECKING:
    from loadtally.domain.model import Category, InventoryRecord
    from loadtally.domain.ports import InventoryRepository

    from .contracts import SnapshotRow


def resolve_row(
    row: SnapshotRow,
    *,
    items: InventoryRepository,
    tenant_scope: str,
    category: Category,
) -> RowResolution:
    """Match by serial, then by cso.

    Several cso candidates are always ambiguous. A single cso candidate whose
    serial is set and differs from the row's serial is a different physical
    unit, so the row is new.
    """

    if row.serial is None and row.cso is None:
        raise ValidationError("Snapshot row has neither serial nor cso")

    if row.serial is not None:
        by_serial = items.find_by_code(tenant_scope, category, MatchField.SERIAL, row.serial)
        if by_serial:
            return _pick(by_serial, MatchField.SERIAL, row.serial)

    if row.cso is not None:
        by_cso = items.find_by_code(tenant_scope, category, MatchField.CSO, row.cso)
        if len(by_cso) == 1 and _serial_conflicts(by_cso[0], row):
            return NewRow()
        if by_cso:
            return _pick(by_cso, MatchField.CSO, row.cso)

    return NewRow()


def _serial_conflicts(record: InventoryRecord, row: SnapshotRow) -> bool:
    return row.serial is not None and record.serial is not None and record.serial != row.serial


def _pick(candidates: list[InventoryRecord], field: MatchField, value: str) -> RowResolution:
    if len(candidates) == 1:
        return MatchedRow(record=candidates[0], matched_field=field)
    return AmbiguousRow(candidates=tuple(candidates), matched_field=field, value=value)
