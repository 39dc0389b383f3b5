"""Public interface for the ERP snapshot adapter."""

from __future__ import annotations

from .fetcher import FileSnapshotFetcher
from .schema import ErpInventoryRow
from .translator import parse_snapshot_row

__all__ = [
    "ErpInventoryRow",
    "FileSnapshotFetcher",
    "parse_snapshot_row",
]
