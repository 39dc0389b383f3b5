"""Public domain model surface."""

from __future__ import annotations

from loadtally.domain.model.audit import ChangeEntry, ConversionEntry, FieldDelta
from loadtally.domain.model.conflict import Conflict
from loadtally.domain.model.entity import Entity, TenantScoped
from loadtally.domain.model.enums import (
    Category,
    ChangeType,
    ConflictStatus,
    EntityType,
    EventAction,
    LoadStatus,
    MatchField,
    ScanResultKind,
    SessionSource,
    SessionStatus,
)
from loadtally.domain.model.inventory import InventoryRecord
from loadtally.domain.model.load import Load, validate_load_name
from loadtally.domain.model.primitives import (
    UNSET,
    Maybe,
    Unset,
    new_id,
    normalize_code,
    utcnow,
)
from loadtally.domain.model.session import ScanningSession

__all__ = [  # noqa: RUF022
    # base
    "Entity",
    "TenantScoped",
    # inventory
    "InventoryRecord",
    "Load",
    "validate_load_name",
    "ScanningSession",
    # audit
    "ConversionEntry",
    "ChangeEntry",
    "FieldDelta",
    "Conflict",
    # enums
    "Category",
    "ChangeType",
    "ConflictStatus",
    "EntityType",
    "EventAction",
    "LoadStatus",
    "MatchField",
    "ScanResultKind",
    "SessionSource",
    "SessionStatus",
    # primitives
    "UNSET",
    "Maybe",
    "Unset",
    "new_id",
    "normalize_code",
    "utcnow",
]
