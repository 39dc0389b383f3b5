"""Domain enums (pure, dependency-light)."""

from __future__ import annotations

from enum import StrEnum


class Category(StrEnum):
    """Top-level inventory classification."""

    ASIS = "ASIS"
    FG = "FG"
    BACKHAUL = "BackHaul"
    LOCAL_STOCK = "LocalStock"
    STAGED = "Staged"
    STA = "STA"
    INBOUND = "Inbound"
    WILL_CALL = "WillCall"
    PARTS = "Parts"

    def members(self) -> tuple[Category, ...]:
        """Categories whose loads are listed together under this main type."""

        return _MAIN_TYPE_MEMBERS.get(self, (self,))


_MAIN_TYPE_MEMBERS: dict[Category, tuple[Category, ...]] = {
    Category.FG: (Category.FG, Category.BACKHAUL),
    Category.LOCAL_STOCK: (
        Category.LOCAL_STOCK,
        Category.STAGED,
        Category.STA,
        Category.INBOUND,
        Category.WILL_CALL,
    ),
}


class LoadStatus(StrEnum):
    ACTIVE = "active"
    STAGED = "staged"
    IN_TRANSIT = "in_transit"
    DELIVERED = "delivered"

    @property
    def rank(self) -> int:
        return _LOAD_STATUS_ORDER.index(self)


_LOAD_STATUS_ORDER: tuple[LoadStatus, ...] = (
    LoadStatus.ACTIVE,
    LoadStatus.STAGED,
    LoadStatus.IN_TRANSIT,
    LoadStatus.DELIVERED,
)


class SessionStatus(StrEnum):
    DRAFT = "draft"
    ACTIVE = "active"
    CLOSED = "closed"


class SessionSource(StrEnum):
    MANUAL = "manual"
    ERP_SYNC = "erp_sync"
    SYSTEM = "system"


class MatchField(StrEnum):
    """Identifying code a scan or snapshot row matched on, in precedence order."""

    SERIAL = "serial"
    CSO = "cso"
    MODEL = "model"


class ScanResultKind(StrEnum):
    UNIQUE = "unique"
    MULTIPLE = "multiple"
    NOT_FOUND = "not_found"


class ConflictStatus(StrEnum):
    OPEN = "open"
    RESOLVED = "resolved"


class ChangeType(StrEnum):
    ITEM_APPEARED = "item_appeared"
    ITEM_UPDATED = "item_updated"
    CONFLICT_RAISED = "conflict_raised"


class EntityType(StrEnum):
    """Discriminator used on change events."""

    INVENTORY_RECORD = "inventory_record"
    LOAD = "load"
    SCANNING_SESSION = "scanning_session"
    CONVERSION_ENTRY = "conversion_entry"
    CONFLICT = "conflict"
    CHANGE_ENTRY = "change_entry"


class EventAction(StrEnum):
    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"
