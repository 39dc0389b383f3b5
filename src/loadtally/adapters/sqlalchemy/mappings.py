"""SQLAlchemy mapping metadata for the loadtally domain model."""

from __future__ import annotations

import json
import logging
import uuid
from datetime import UTC, datetime
from functools import cache
from typing import Any, cast

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Dialect,
    Enum,
    Index,
    Integer,
    String,
    Table,
    Text,
    TypeDecorator,
    UniqueConstraint,
    Uuid,
    orm,
)
from sqlalchemy.orm import configure_mappers

from loadtally.domain.model import (
    Category,
    ChangeEntry,
    ChangeType,
    Conflict,
    ConflictStatus,
    ConversionEntry,
    InventoryRecord,
    Load,
    LoadStatus,
    MatchField,
    ScanningSession,
    SessionSource,
    SessionStatus,
)

log = logging.getLogger(__name__)

UUIDColumnType = Uuid[uuid.UUID]


class UTCDateTime(TypeDecorator[datetime]):
    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    def process_result_value(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        return value if value.tzinfo else value.replace(tzinfo=UTC)


def _dump_uuids(value: frozenset[uuid.UUID] | tuple[uuid.UUID, ...] | None) -> str | None:
    if value is None:
        return None
    return json.dumps([str(item) for item in value])


def _load_uuids(value: str | None) -> list[uuid.UUID]:
    if value is None:
        return []
    loaded = json.loads(value)
    if not isinstance(loaded, list):
        return []
    items = cast(list[Any], loaded)
    return [uuid.UUID(item) for item in items if isinstance(item, str)]


class UUIDSetType(TypeDecorator[frozenset[uuid.UUID]]):
    """Set of ids stored as a sorted JSON array."""

    impl = Text
    cache_ok = True

    def process_bind_param(
        self, value: frozenset[uuid.UUID] | None, dialect: Dialect
    ) -> str | None:
        _ = dialect
        if value is None:
            return None
        return json.dumps(sorted(str(item) for item in value))

    def process_result_value(self, value: str | None, dialect: Dialect) -> frozenset[uuid.UUID]:
        _ = dialect
        return frozenset(_load_uuids(value))


class UUIDTupleType(TypeDecorator[tuple[uuid.UUID, ...]]):
    """Ordered ids stored as a JSON array."""

    impl = Text
    cache_ok = True

    def process_bind_param(
        self, value: tuple[uuid.UUID, ...] | None, dialect: Dialect
    ) -> str | None:
        _ = dialect
        return _dump_uuids(value)

    def process_result_value(self, value: str | None, dialect: Dialect) -> tuple[uuid.UUID, ...]:
        _ = dialect
        return tuple(_load_uuids(value))


mapper_registry = orm.registry()
mapper_registry.metadata.naming_convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_label)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_label)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

# Core tables -----------------------------------------------------------------

inventory_item_table = Table(
    "inventory_item",
    mapper_registry.metadata,
    Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
    Column("tenant_scope", String(64), nullable=False),
    Column("category", Enum(Category, native_enum=False), nullable=False),
    Column("bucket", String, nullable=True),
    Column("serial", String, nullable=True),
    Column("cso", String, nullable=True),
    Column("model", String, nullable=True),
    Column("qty", Integer, nullable=False, default=1),
    Column("product_type", String, nullable=True),
    Column("scanned", Boolean, nullable=False, default=False),
    Column("scanned_at", UTCDateTime(), nullable=True),
    Column("scanned_by", String, nullable=True),
    Column("notes", Text, nullable=True),
    Column("product_id", UUIDColumnType, nullable=True),
    Column("erp_status", String, nullable=True),
    Column("erp_quantity", Integer, nullable=True),
    Column("created_at", UTCDateTime(), nullable=False),
    Column("updated_at", UTCDateTime(), nullable=False),
    Index("ix_inventory_item_scope", "tenant_scope", "category", "bucket"),
    Index("ix_inventory_item_serial", "tenant_scope", "serial"),
    Index("ix_inventory_item_cso", "tenant_scope", "cso"),
    Index("ix_inventory_item_model", "tenant_scope", "model"),
)

load_table = Table(
    "load_metadata",
    mapper_registry.metadata,
    Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
    Column("tenant_scope", String(64), nullable=False),
    Column("category", Enum(Category, native_enum=False), nullable=False),
    Column("name", String, nullable=False),
    Column("status", Enum(LoadStatus, native_enum=False), nullable=False),
    Column("friendly_name", String, nullable=True),
    Column("notes", Text, nullable=True),
    Column("created_by", String, nullable=True),
    Column("created_at", UTCDateTime(), nullable=False),
    Column("updated_at", UTCDateTime(), nullable=False),
    UniqueConstraint("tenant_scope", "category", "name", name="uq_load_metadata_identity"),
)

scanning_session_table = Table(
    "scanning_session",
    mapper_registry.metadata,
    Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
    Column("tenant_scope", String(64), nullable=False),
    Column("name", String, nullable=False),
    Column("category", Enum(Category, native_enum=False), nullable=False),
    Column("bucket", String, nullable=True),
    Column("status", Enum(SessionStatus, native_enum=False), nullable=False),
    Column("source", Enum(SessionSource, native_enum=False), nullable=False),
    Column("scanned_item_ids", UUIDSetType(), nullable=False),
    Column("created_by", String, nullable=True),
    Column("updated_by", String, nullable=True),
    Column("closed_by", String, nullable=True),
    Column("created_at", UTCDateTime(), nullable=False),
    Column("updated_at", UTCDateTime(), nullable=False),
    Column("closed_at", UTCDateTime(), nullable=True),
    Index("ix_scanning_session_scope", "tenant_scope", "category", "bucket"),
)

conversion_table = Table(
    "inventory_conversion",
    mapper_registry.metadata,
    Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
    Column("tenant_scope", String(64), nullable=False),
    Column("item_id", UUIDColumnType, nullable=False),
    Column("from_category", Enum(Category, native_enum=False), nullable=False),
    Column("to_category", Enum(Category, native_enum=False), nullable=False),
    Column("from_bucket", String, nullable=True),
    Column("to_bucket", String, nullable=True),
    Column("converted_by", String, nullable=True),
    Column("notes", Text, nullable=True),
    Column("created_at", UTCDateTime(), nullable=False),
    Index("ix_inventory_conversion_item", "tenant_scope", "item_id"),
)

conflict_table = Table(
    "inventory_conflict",
    mapper_registry.metadata,
    Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
    Column("tenant_scope", String(64), nullable=False),
    Column("category", Enum(Category, native_enum=False), nullable=False),
    Column("match_field", Enum(MatchField, native_enum=False), nullable=False),
    Column("match_value", String, nullable=False),
    Column("candidate_ids", UUIDTupleType(), nullable=False),
    Column("incoming", JSON, nullable=False),
    Column("status", Enum(ConflictStatus, native_enum=False), nullable=False),
    Column("resolved_at", UTCDateTime(), nullable=True),
    Column("resolved_by", String, nullable=True),
    Column("resolution_note", Text, nullable=True),
    Column("created_at", UTCDateTime(), nullable=False),
    Column("updated_at", UTCDateTime(), nullable=False),
    Index(
        "ix_inventory_conflict_key",
        "tenant_scope",
        "category",
        "match_field",
        "match_value",
        "status",
    ),
)

change_table = Table(
    "inventory_change",
    mapper_registry.metadata,
    Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
    Column("tenant_scope", String(64), nullable=False),
    Column("category", Enum(Category, native_enum=False), nullable=False),
    Column("run_id", UUIDColumnType, nullable=False),
    Column("change_type", Enum(ChangeType, native_enum=False), nullable=False),
    Column("item_id", UUIDColumnType, nullable=True),
    Column("serial", String, nullable=True),
    Column("cso", String, nullable=True),
    Column("delta", JSON, nullable=False),
    Column("created_at", UTCDateTime(), nullable=False),
    Index("ix_inventory_change_run", "tenant_scope", "run_id"),
)

# Unmapped: used through Core by the category lock.
sync_lock_table = Table(
    "sync_lock",
    mapper_registry.metadata,
    Column("tenant_scope", String(64), primary_key=True),
    Column("category", Enum(Category, native_enum=False), primary_key=True),
    Column("token", String(64), nullable=False),
    Column("acquired_at", UTCDateTime(), nullable=False),
    Column("expires_at", UTCDateTime(), nullable=False),
)


@cache
def start_mappers() -> orm.registry:
    """Configure SQLAlchemy mappers for the domain model."""

    log.info("Starting SQLAlchemy mappers")

    mapper_registry.map_imperatively(InventoryRecord, inventory_item_table)
    mapper_registry.map_imperatively(Load, load_table)
    mapper_registry.map_imperatively(ScanningSession, scanning_session_table)
    mapper_registry.map_imperatively(ConversionEntry, conversion_table)
    mapper_registry.map_imperatively(Conflict, conflict_table)
    mapper_registry.map_imperatively(ChangeEntry, change_table)

    configure_mappers()
    return mapper_registry
