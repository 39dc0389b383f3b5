"""Field-level diff between a stored record and a snapshot row."""

from __future__ import annotations

from typing import TYPE_CHECKING, Final

from loadtally.domain.model import MatchField

if TYPE_CHECKING:
    from loadtally.domain.model import FieldDelta, InventoryRecord

    from .contracts import SnapshotRow

TRACKED_FIELDS: Final[tuple[str, ...]] = (
    "model",
    "cso",
    "bucket",
    "qty",
    "erp_status",
    "erp_quantity",
)


def tracked_fields(matched_field: MatchField) -> tuple[str, ...]:
    if matched_field is MatchField.CSO:
        return ("serial", *TRACKED_FIELDS)
    return TRACKED_FIELDS


def diff_record(
    record: InventoryRecord,
    row: SnapshotRow,
    matched_field: MatchField,
) -> FieldDelta:
    delta: FieldDelta = {}
    for name in tracked_fields(matched_field):
        incoming = getattr(row, name)
        if incoming is None:
            continue
        current = getattr(record, name)
        if current != incoming:
            delta[name] = {"old": current, "new": incoming}
    return delta


def apply_delta(record: InventoryRecord, delta: FieldDelta) -> None:
    if not delta:
        return
    for name, change in delta.items():
        setattr(record, name, change["new"])
    record.touch()
