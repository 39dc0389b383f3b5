"""Repository implementations backed by SQLAlchemy sessions."""

from __future__ import annotations

from typing import TYPE_CHECKING, cast

from sqlalchemy import func, or_, select, update

from loadtally.adapters.sqlalchemy.mappings import (
    change_table,
    conflict_table,
    conversion_table,
    inventory_item_table,
    load_table,
    scanning_session_table,
)
from loadtally.domain.model import (
    ChangeEntry,
    Conflict,
    ConflictStatus,
    ConversionEntry,
    EntityType,
    EventAction,
    InventoryRecord,
    Load,
    ScanningSession,
    SessionStatus,
    utcnow,
)
from loadtally.domain.ports.events import ChangeEvent

if TYPE_CHECKING:
    from collections.abc import Callable, Collection, Iterable
    from datetime import datetime
    from uuid import UUID

    from sqlalchemy import CursorResult
    from sqlalchemy.orm import Session

    from loadtally.domain.model import Category, MatchField

type ChangeSink = Callable[[ChangeEvent], None]


def _discard(event: ChangeEvent) -> None:
    _ = event


class _BaseRepository:
    def __init__(self, session: Session, on_change: ChangeSink | None = None) -> None:
        self.session = session
        self._on_change = on_change or _discard

    def _notify(
        self,
        table: EntityType,
        ids: Iterable[UUID],
        *,
        tenant_scope: str,
        category: Category | None,
    ) -> None:
        for row_id in ids:
            self._on_change(
                ChangeEvent(
                    table=table,
                    action=EventAction.UPDATE,
                    row_id=row_id,
                    tenant_scope=tenant_scope,
                    category=category,
                )
            )


class SqlAlchemyInventoryRepository(_BaseRepository):
    def add(self, entity: InventoryRecord) -> None:
        self.session.add(entity)

    def get(self, tenant_scope: str, item_id: UUID) -> InventoryRecord | None:
        record = self.session.get(InventoryRecord, item_id)
        if record is None or record.tenant_scope != tenant_scope:
            return None
        return record

    def get_many(self, tenant_scope: str, item_ids: Collection[UUID]) -> list[InventoryRecord]:
        if not item_ids:
            return []
        stmt = (
            select(InventoryRecord)
            .where(inventory_item_table.c.tenant_scope == tenant_scope)
            .where(inventory_item_table.c.id.in_(list(item_ids)))
        )
        return list(self.session.scalars(stmt))

    def find_unscanned_by_code(
        self,
        tenant_scope: str,
        code: str,
        *,
        category: Category | None = None,
    ) -> list[InventoryRecord]:
        columns = inventory_item_table.c
        stmt = (
            select(InventoryRecord)
            .where(columns.tenant_scope == tenant_scope)
            .where(columns.scanned.is_(False))
            .where(or_(columns.serial == code, columns.cso == code, columns.model == code))
            .order_by(columns.created_at, columns.id)
        )
        if category is not None:
            stmt = stmt.where(columns.category == category)
        return list(self.session.scalars(stmt))

    def find_by_code(
        self,
        tenant_scope: str,
        category: Category,
        field: MatchField,
        value: str,
    ) -> list[InventoryRecord]:
        columns = inventory_item_table.c
        stmt = (
            select(InventoryRecord)
            .where(columns.tenant_scope == tenant_scope)
            .where(columns.category == category)
            .where(columns[field.value] == value)
            .order_by(columns.created_at, columns.id)
        )
        return list(self.session.scalars(stmt))

    def in_scope(
        self,
        tenant_scope: str,
        category: Category,
        bucket: str | None = None,
    ) -> list[InventoryRecord]:
        columns = inventory_item_table.c
        stmt = (
            select(InventoryRecord)
            .where(columns.tenant_scope == tenant_scope)
            .where(columns.category == category)
            .order_by(columns.created_at, columns.id)
        )
        if bucket is not None:
            stmt = stmt.where(columns.bucket == bucket)
        return list(self.session.scalars(stmt))

    def count_in_scope(
        self,
        tenant_scope: str,
        category: Category,
        bucket: str | None = None,
    ) -> int:
        columns = inventory_item_table.c
        stmt = (
            select(func.count())
            .select_from(InventoryRecord)
            .where(columns.tenant_scope == tenant_scope)
            .where(columns.category == category)
        )
        if bucket is not None:
            stmt = stmt.where(columns.bucket == bucket)
        return self.session.execute(stmt).scalar_one()

    def mark_scanned(
        self,
        tenant_scope: str,
        item_id: UUID,
        *,
        actor: str | None,
        at: datetime,
    ) -> bool:
        columns = inventory_item_table.c
        stmt = (
            update(InventoryRecord)
            .where(columns.id == item_id)
            .where(columns.tenant_scope == tenant_scope)
            .where(columns.scanned.is_(False))
            .values(scanned=True, scanned_at=at, scanned_by=actor, updated_at=at)
            .execution_options(synchronize_session="fetch")
        )
        result = cast("CursorResult[tuple[()]]", self.session.execute(stmt))
        changed = result.rowcount > 0
        if changed:
            record = self.session.get(InventoryRecord, item_id)
            self._notify(
                EntityType.INVENTORY_RECORD,
                [item_id],
                tenant_scope=tenant_scope,
                category=record.category if record is not None else None,
            )
        return changed

    def reassign_bucket(
        self,
        tenant_scope: str,
        category: Category,
        from_buckets: Collection[str],
        to_bucket: str | None,
    ) -> list[UUID]:
        if not from_buckets:
            return []
        columns = inventory_item_table.c
        ids = list(
            self.session.scalars(
                select(columns.id)
                .where(columns.tenant_scope == tenant_scope)
                .where(columns.category == category)
                .where(columns.bucket.in_(list(from_buckets)))
            )
        )
        if not ids:
            return []
        self.session.execute(
            update(InventoryRecord)
            .where(columns.id.in_(ids))
            .values(bucket=to_bucket, updated_at=utcnow())
            .execution_options(synchronize_session="fetch")
        )
        self._notify(EntityType.INVENTORY_RECORD, ids, tenant_scope=tenant_scope, category=category)
        return ids

    def distinct_buckets(self, tenant_scope: str, category: Category) -> set[str]:
        columns = inventory_item_table.c
        stmt = (
            select(columns.bucket)
            .select_from(InventoryRecord)
            .where(columns.tenant_scope == tenant_scope)
            .where(columns.category == category)
            .where(columns.bucket.is_not(None))
            .distinct()
        )
        return {bucket for bucket in self.session.scalars(stmt) if bucket is not None}


class SqlAlchemyLoadRepository(_BaseRepository):
    def add(self, entity: Load) -> None:
        self.session.add(entity)

    def get(self, tenant_scope: str, category: Category, name: str) -> Load | None:
        stmt = (
            select(Load)
            .where(load_table.c.tenant_scope == tenant_scope)
            .where(load_table.c.category == category)
            .where(load_table.c.name == name)
        )
        return self.session.scalars(stmt).one_or_none()

    def list(
        self,
        tenant_scope: str,
        categories: Collection[Category] | None = None,
    ) -> list[Load]:
        stmt = select(Load).where(load_table.c.tenant_scope == tenant_scope)
        if categories is not None:
            stmt = stmt.where(load_table.c.category.in_(list(categories)))
        return list(self.session.scalars(stmt.order_by(load_table.c.name)))

    def delete(self, load: Load) -> None:
        self.session.delete(load)


class SqlAlchemySessionRepository(_BaseRepository):
    def add(self, entity: ScanningSession) -> None:
        self.session.add(entity)

    def get(self, tenant_scope: str, session_id: UUID) -> ScanningSession | None:
        session = self.session.get(ScanningSession, session_id)
        if session is None or session.tenant_scope != tenant_scope:
            return None
        return session

    def list(
        self,
        tenant_scope: str,
        category: Category | None = None,
    ) -> list[ScanningSession]:
        columns = scanning_session_table.c
        stmt = select(ScanningSession).where(columns.tenant_scope == tenant_scope)
        if category is not None:
            stmt = stmt.where(columns.category == category)
        return list(self.session.scalars(stmt.order_by(columns.created_at, columns.id)))

    def find_open_for_scope(
        self,
        tenant_scope: str,
        category: Category,
        bucket: str | None,
    ) -> list[ScanningSession]:
        columns = scanning_session_table.c
        bucket_clause = columns.bucket.is_(None) if bucket is None else columns.bucket == bucket
        stmt = (
            select(ScanningSession)
            .where(columns.tenant_scope == tenant_scope)
            .where(columns.category == category)
            .where(bucket_clause)
            .where(columns.status != SessionStatus.CLOSED)
        )
        return list(self.session.scalars(stmt))

    def reassign_bucket(
        self,
        tenant_scope: str,
        category: Category,
        from_buckets: Collection[str],
        to_bucket: str | None,
    ) -> list[UUID]:
        if not from_buckets:
            return []
        columns = scanning_session_table.c
        ids = list(
            self.session.scalars(
                select(columns.id)
                .where(columns.tenant_scope == tenant_scope)
                .where(columns.category == category)
                .where(columns.bucket.in_(list(from_buckets)))
            )
        )
        if not ids:
            return []
        self.session.execute(
            update(ScanningSession)
            .where(columns.id.in_(ids))
            .values(bucket=to_bucket, updated_at=utcnow())
            .execution_options(synchronize_session="fetch")
        )
        self._notify(
            EntityType.SCANNING_SESSION, ids, tenant_scope=tenant_scope, category=category
        )
        return ids

    def delete(self, session: ScanningSession) -> None:
        self.session.delete(session)


class SqlAlchemyConversionRepository(_BaseRepository):
    def add(self, entity: ConversionEntry) -> None:
        self.session.add(entity)

    def for_item(self, tenant_scope: str, item_id: UUID) -> list[ConversionEntry]:
        columns = conversion_table.c
        stmt = (
            select(ConversionEntry)
            .where(columns.tenant_scope == tenant_scope)
            .where(columns.item_id == item_id)
            .order_by(columns.created_at.desc())
        )
        return list(self.session.scalars(stmt))

    def between(
        self,
        tenant_scope: str,
        start: datetime | None,
        end: datetime | None,
    ) -> list[ConversionEntry]:
        columns = conversion_table.c
        stmt = select(ConversionEntry).where(columns.tenant_scope == tenant_scope)
        if start is not None:
            stmt = stmt.where(columns.created_at >= start)
        if end is not None:
            stmt = stmt.where(columns.created_at <= end)
        return list(self.session.scalars(stmt.order_by(columns.created_at)))

    def count_by_transition(self, tenant_scope: str) -> dict[tuple[Category, Category], int]:
        columns = conversion_table.c
        stmt = (
            select(columns.from_category, columns.to_category, func.count())
            .select_from(ConversionEntry)
            .where(columns.tenant_scope == tenant_scope)
            .group_by(columns.from_category, columns.to_category)
        )
        return {
            (from_category, to_category): count
            for from_category, to_category, count in self.session.execute(stmt)
        }


class SqlAlchemyConflictRepository(_BaseRepository):
    def add(self, entity: Conflict) -> None:
        self.session.add(entity)

    def get(self, tenant_scope: str, conflict_id: UUID) -> Conflict | None:
        conflict = self.session.get(Conflict, conflict_id)
        if conflict is None or conflict.tenant_scope != tenant_scope:
            return None
        return conflict

    def find_open(
        self,
        tenant_scope: str,
        category: Category,
        field: MatchField,
        value: str,
    ) -> Conflict | None:
        columns = conflict_table.c
        stmt = (
            select(Conflict)
            .where(columns.tenant_scope == tenant_scope)
            .where(columns.category == category)
            .where(columns.match_field == field)
            .where(columns.match_value == value)
            .where(columns.status == ConflictStatus.OPEN)
        )
        return self.session.scalars(stmt).first()

    def list_open(self, tenant_scope: str, category: Category | None = None) -> list[Conflict]:
        columns = conflict_table.c
        stmt = (
            select(Conflict)
            .where(columns.tenant_scope == tenant_scope)
            .where(columns.status == ConflictStatus.OPEN)
        )
        if category is not None:
            stmt = stmt.where(columns.category == category)
        return list(self.session.scalars(stmt.order_by(columns.created_at)))


class SqlAlchemyChangeRepository(_BaseRepository):
    def add(self, entity: ChangeEntry) -> None:
        self.session.add(entity)

    def for_run(self, tenant_scope: str, run_id: UUID) -> list[ChangeEntry]:
        columns = change_table.c
        stmt = (
            select(ChangeEntry)
            .where(columns.tenant_scope == tenant_scope)
            .where(columns.run_id == run_id)
            .order_by(columns.created_at, columns.id)
        )
        return list(self.session.scalars(stmt))
