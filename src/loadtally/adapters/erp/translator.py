"""Translate exported ERP rows into reconciliation snapshot rows."""

from __future__ import annotations

from typing import TYPE_CHECKING

from loadtally.domain.reconciliation import SnapshotRow

from .schema import ErpInventoryRow

if TYPE_CHECKING:
    from collections.abc import Mapping


def _ensure_row(payload: ErpInventoryRow | Mapping[str, object]) -> ErpInventoryRow:
    if isinstance(payload, ErpInventoryRow):
        return payload
    return ErpInventoryRow.model_validate(payload)


def parse_snapshot_row(payload: ErpInventoryRow | Mapping[str, object]) -> SnapshotRow:
    row = _ensure_row(payload)
    return SnapshotRow(
        serial=row.serial,
        cso=row.cso,
        model=row.model,
        bucket=row.load_number,
        qty=row.qty,
        product_type=row.product_type,
        erp_status=row.availability_status,
        erp_quantity=row.inv_qty,
    )
