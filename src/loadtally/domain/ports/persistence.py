"""Ports for persisting inventory aggregates."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

from loadtally.domain.model import (
    ChangeEntry,
    Conflict,
    ConversionEntry,
    InventoryRecord,
    Load,
    ScanningSession,
)

if TYPE_CHECKING:
    from collections.abc import Collection, Sequence
    from datetime import datetime
    from uuid import UUID

    from loadtally.domain.model import Category, MatchField


@runtime_checkable
class Repository[TEntity](Protocol):
    """Minimal repository contract for a persistent aggregate store."""

    def add(self, entity: TEntity) -> None: ...


@runtime_checkable
class InventoryRepository(Repository[InventoryRecord], Protocol):
    """Inventory records; every query is restricted to one tenant scope."""

    def get(self, tenant_scope: str, item_id: UUID) -> InventoryRecord | None: ...

    def get_many(self, tenant_scope: str, item_ids: Collection[UUID]) -> list[InventoryRecord]: ...

    def find_unscanned_by_code(
        self,
        tenant_scope: str,
        code: str,
        *,
        category: Category | None = None,
    ) -> list[InventoryRecord]:
        """Unscanned records whose serial, cso or model equals ``code``."""
        ...

    def find_by_code(
        self,
        tenant_scope: str,
        category: Category,
        field: MatchField,
        value: str,
    ) -> list[InventoryRecord]: ...

    def in_scope(
        self,
        tenant_scope: str,
        category: Category,
        bucket: str | None = None,
    ) -> list[InventoryRecord]: ...

    def count_in_scope(
        self,
        tenant_scope: str,
        category: Category,
        bucket: str | None = None,
    ) -> int: ...

    def mark_scanned(
        self,
        tenant_scope: str,
        item_id: UUID,
        *,
        actor: str | None,
        at: datetime,
    ) -> bool:
        """Conditionally flag a record scanned; ``False`` if it already was (or is unknown)."""
        ...

    def reassign_bucket(
        self,
        tenant_scope: str,
        category: Category,
        from_buckets: Collection[str],
        to_bucket: str | None,
    ) -> list[UUID]:
        """Repoint every record in ``from_buckets``; returns the ids that moved."""
        ...

    def distinct_buckets(self, tenant_scope: str, category: Category) -> set[str]: ...


@runtime_checkable
class LoadRepository(Repository[Load], Protocol):
    def get(self, tenant_scope: str, category: Category, name: str) -> Load | None: ...

    def list(
        self,
        tenant_scope: str,
        categories: Collection[Category] | None = None,
    ) -> list[Load]: ...

    def delete(self, load: Load) -> None: ...


@runtime_checkable
class SessionRepository(Repository[ScanningSession], Protocol):
    def get(self, tenant_scope: str, session_id: UUID) -> ScanningSession | None: ...

    def list(
        self,
        tenant_scope: str,
        category: Category | None = None,
    ) -> list[ScanningSession]: ...

    def find_open_for_scope(
        self,
        tenant_scope: str,
        category: Category,
        bucket: str | None,
    ) -> list[ScanningSession]:
        """Sessions over exactly this scope that are not closed."""
        ...

    def reassign_bucket(
        self,
        tenant_scope: str,
        category: Category,
        from_buckets: Collection[str],
        to_bucket: str | None,
    ) -> list[UUID]: ...

    def delete(self, session: ScanningSession) -> None: ...


@runtime_checkable
class ConversionRepository(Repository[ConversionEntry], Protocol):
    """Append-only conversion history."""

    def for_item(self, tenant_scope: str, item_id: UUID) -> list[ConversionEntry]: ...

    def between(
        self,
        tenant_scope: str,
        start: datetime | None,
        end: datetime | None,
    ) -> list[ConversionEntry]: ...

    def count_by_transition(
        self, tenant_scope: str
    ) -> dict[tuple[Category, Category], int]: ...


@runtime_checkable
class ConflictRepository(Repository[Conflict], Protocol):
    def get(self, tenant_scope: str, conflict_id: UUID) -> Conflict | None: ...

    def find_open(
        self,
        tenant_scope: str,
        category: Category,
        field: MatchField,
        value: str,
    ) -> Conflict | None: ...

    def list_open(self, tenant_scope: str, category: Category | None = None) -> list[Conflict]: ...


@runtime_checkable
class ChangeRepository(Repository[ChangeEntry], Protocol):
    """Append-only reconciliation history."""

    def for_run(self, tenant_scope: str, run_id: UUID) -> Sequence[ChangeEntry]: ...
