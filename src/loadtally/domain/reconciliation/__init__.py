"""Reconciliation of ERP snapshots against the internal inventory store."""

from __future__ import annotations

from .contracts import (
    AmbiguousRow,
    FailedRow,
    MatchedRow,
    NewRow,
    ReconciliationResult,
    ResolutionStatus,
    RowResolution,
    SnapshotRow,
)
from .diff import TRACKED_FIELDS, apply_delta, diff_record
from .engine import DEFAULT_LOCK_TTL_SECONDS, ReconciliationEngine, SessionSpawner
from .resolve import resolve_row

__all__ = [
    "DEFAULT_LOCK_TTL_SECONDS",
    "TRACKED_FIELDS",
    "AmbiguousRow",
    "FailedRow",
    "MatchedRow",
    "NewRow",
    "ReconciliationEngine",
    "ReconciliationResult",
    "ResolutionStatus",
    "RowResolution",
    "SessionSpawner",
    "SnapshotRow",
    "apply_delta",
    "diff_record",
    "resolve_row",
]
