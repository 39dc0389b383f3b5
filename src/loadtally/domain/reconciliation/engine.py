"""Merge an ERP snapshot into the internal store for one category.

Rows are processed independently: each row gets its own unit of work and a
failing row is recorded and skipped. Records missing from the snapshot are
never deleted, since a snapshot may be partial.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, fields
from typing import TYPE_CHECKING

from loadtally.domain.errors import (
    AmbiguousMatch,
    ConflictNotFound,
    LoadTallyError,
    ValidationError,
)
from loadtally.domain.loads import LoadRegistry
from loadtally.domain.model import (
    ChangeEntry,
    ChangeType,
    Conflict,
    InventoryRecord,
    new_id,
)
from loadtally.domain.sessions import spawn_sessions_for_scopes

from .contracts import (
    AmbiguousRow,
    FailedRow,
    MatchedRow,
    ReconciliationResult,
    ResolutionStatus,
    SnapshotRow,
)
from .diff import apply_delta, diff_record
from .resolve import resolve_row

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Sequence
    from uuid import UUID

    from loadtally.domain.context import OperationContext
    from loadtally.domain.model import Category, ScanningSession
    from loadtally.domain.ports import CategoryLock, InventoryUnitOfWork

log = logging.getLogger(__name__)

DEFAULT_LOCK_TTL_SECONDS = 900.0

type SessionSpawner = Callable[
    [InventoryUnitOfWork, OperationContext, Iterable[tuple[Category, str | None]]],
    Sequence[ScanningSession],
]


@dataclass(slots=True)
class _RowOutcome:
    status: ResolutionStatus
    changed: bool
    item_id: UUID | None = None
    conflict_id: UUID | None = None
    change: ChangeEntry | None = None
    created_scope: tuple[Category, str] | None = None
    ambiguity: AmbiguousMatch | None = None


@dataclass(slots=True)
class ReconciliationEngine:
    """Run reconciliation for one tenant, serialised per category by ``lock``."""

    unit_of_work_factory: Callable[[], InventoryUnitOfWork]
    lock: CategoryLock
    context: OperationContext
    spawn_sessions: SessionSpawner = spawn_sessions_for_scopes
    lock_ttl_seconds: float = DEFAULT_LOCK_TTL_SECONDS

    def run(self, category: Category, rows: Iterable[SnapshotRow]) -> ReconciliationResult:
        tenant = self.context.tenant_scope
        token = self.lock.acquire(tenant, category, ttl_seconds=self.lock_ttl_seconds)
        try:
            return self._run_locked(category, rows)
        finally:
            self.lock.release(tenant, category, token)

    def open_conflicts(self, category: Category | None = None) -> list[Conflict]:
        with self.unit_of_work_factory() as uow:
            return uow.repositories.conflicts.list_open(self.context.tenant_scope, category)

    def resolve_conflict(
        self,
        conflict_id: UUID,
        *,
        keep_item_id: UUID | None = None,
        note: str | None = None,
    ) -> Conflict:
        """Close a conflict; with ``keep_item_id`` the incoming row is applied to that record.

        Holds the category lock while writing, so it cannot interleave with a run.
        """

        tenant = self.context.tenant_scope
        with self.unit_of_work_factory() as uow:
            conflict = uow.repositories.conflicts.get(tenant, conflict_id)
            if conflict is None:
                raise ConflictNotFound(conflict_id)
            category = conflict.category

        token = self.lock.acquire(tenant, category, ttl_seconds=self.lock_ttl_seconds)
        try:
            with self.unit_of_work_factory() as uow:
                conflict = uow.repositories.conflicts.get(tenant, conflict_id)
                if conflict is None:
                    raise ConflictNotFound(conflict_id)
                if keep_item_id is not None:
                    if keep_item_id not in conflict.candidate_ids:
                        raise ValidationError(
                            f"Inventory record {keep_item_id} is not a candidate of conflict "
                            f"{conflict_id}"
                        )
                    self._apply_incoming(uow, conflict, keep_item_id)
                conflict.resolve(actor=self.context.actor, note=note)
                uow.commit()
        finally:
            self.lock.release(tenant, category, token)
        log.info("Resolved conflict %s (kept=%s)", conflict_id, keep_item_id)
        return conflict

    # Internals -------------------------------------------------------------

    def _run_locked(self, category: Category, rows: Iterable[SnapshotRow]) -> ReconciliationResult:
        result = ReconciliationResult(run_id=new_id(), category=category)
        log.info("Starting reconciliation run %s for %s", result.run_id, category)

        for index, raw in enumerate(rows):
            row = raw.normalized()
            try:
                with self.unit_of_work_factory() as uow:
                    outcome = self._process_row(uow, category, row, result.run_id)
                    uow.commit()
            except LoadTallyError as exc:
                log.warning("Snapshot row %s failed: %s", index, exc)
                result.failed.append(FailedRow(index=index, row=raw, error=exc))
                continue
            _collect(result, outcome)

        if result.new_scopes:
            self._spawn_sessions(result)

        log.info(
            "Finished reconciliation run %s for %s: inserted=%s, updated=%s, unchanged=%s, "
            "conflicts=%s, failed=%s, spawned_sessions=%s",
            result.run_id,
            category,
            len(result.inserted),
            len(result.updated),
            result.unchanged,
            len(result.conflicts),
            len(result.failed),
            len(result.spawned_sessions),
        )
        return result

    def _process_row(
        self,
        uow: InventoryUnitOfWork,
        category: Category,
        row: SnapshotRow,
        run_id: UUID,
    ) -> _RowOutcome:
        tenant = self.context.tenant_scope
        resolution = resolve_row(
            row, items=uow.repositories.items, tenant_scope=tenant, category=category
        )
        match resolution:
            case MatchedRow(record=record, matched_field=matched_field):
                delta = diff_record(record, row, matched_field)
                if not delta:
                    return _RowOutcome(ResolutionStatus.MATCHED, changed=False, item_id=record.id)
                created_scope = self._ensure_load(uow, category, row.bucket)
                apply_delta(record, delta)
                change = self._record_change(
                    uow, category, run_id, ChangeType.ITEM_UPDATED, row, record.id, delta
                )
                return _RowOutcome(
                    ResolutionStatus.MATCHED,
                    changed=True,
                    item_id=record.id,
                    change=change,
                    created_scope=created_scope,
                )
            case AmbiguousRow():
                return self._raise_conflict(uow, category, run_id, row, resolution)
            case _:
                created_scope = self._ensure_load(uow, category, row.bucket)
                record = InventoryRecord(
                    tenant_scope=tenant,
                    category=category,
                    bucket=row.bucket,
                    serial=row.serial,
                    cso=row.cso,
                    model=row.model,
                    qty=row.qty if row.qty is not None else 1,
                    product_type=row.product_type,
                    erp_status=row.erp_status,
                    erp_quantity=row.erp_quantity,
                )
                uow.repositories.items.add(record)
                change = self._record_change(
                    uow,
                    category,
                    run_id,
                    ChangeType.ITEM_APPEARED,
                    row,
                    record.id,
                    {name: {"old": None, "new": value} for name, value in row.as_payload().items()},
                )
                return _RowOutcome(
                    ResolutionStatus.NEW,
                    changed=True,
                    item_id=record.id,
                    change=change,
                    created_scope=created_scope,
                )

    def _raise_conflict(
        self,
        uow: InventoryUnitOfWork,
        category: Category,
        run_id: UUID,
        row: SnapshotRow,
        resolution: AmbiguousRow,
    ) -> _RowOutcome:
        conflicts = uow.repositories.conflicts
        tenant = self.context.tenant_scope
        incoming = row.as_payload()
        conflict = conflicts.find_open(tenant, category, resolution.matched_field, resolution.value)
        if conflict is None:
            conflict = Conflict(
                tenant_scope=tenant,
                category=category,
                match_field=resolution.matched_field,
                match_value=resolution.value,
                candidate_ids=resolution.candidate_ids,
                incoming=incoming,
            )
            conflicts.add(conflict)
            changed = True
        else:
            changed = conflict.refresh(resolution.candidate_ids, incoming)

        log.warning(
            "%s=%r matches %s records in %s; conflict %s is open",
            resolution.matched_field,
            resolution.value,
            len(resolution.candidates),
            category,
            conflict.id,
        )
        change = None
        if changed:
            change = self._record_change(
                uow,
                category,
                run_id,
                ChangeType.CONFLICT_RAISED,
                row,
                None,
                {"candidate_ids": {"old": None, "new": [str(i) for i in conflict.candidate_ids]}},
            )
        return _RowOutcome(
            ResolutionStatus.AMBIGUOUS,
            changed=changed,
            conflict_id=conflict.id,
            change=change,
            ambiguity=AmbiguousMatch(
                resolution.matched_field, resolution.value, resolution.candidate_ids
            ),
        )

    def _ensure_load(
        self,
        uow: InventoryUnitOfWork,
        category: Category,
        bucket: str | None,
    ) -> tuple[Category, str] | None:
        if bucket is None:
            return None
        load, created = LoadRegistry(uow, self.context).ensure(category, bucket)
        return (category, load.name) if created else None

    def _record_change(  # noqa: PLR0913
        self,
        uow: InventoryUnitOfWork,
        category: Category,
        run_id: UUID,
        change_type: ChangeType,
        row: SnapshotRow,
        item_id: UUID | None,
        delta: dict[str, dict[str, object]],
    ) -> ChangeEntry:
        entry = ChangeEntry(
            tenant_scope=self.context.tenant_scope,
            category=category,
            run_id=run_id,
            change_type=change_type,
            item_id=item_id,
            serial=row.serial,
            cso=row.cso,
            delta=delta,
        )
        uow.repositories.changes.add(entry)
        return entry

    def _apply_incoming(self, uow: InventoryUnitOfWork, conflict: Conflict, item_id: UUID) -> None:
        record = uow.repositories.items.get(self.context.tenant_scope, item_id)
        if record is None:
            return
        row = _row_from_payload(conflict.incoming)
        delta = diff_record(record, row, conflict.match_field)
        if delta:
            self._ensure_load(uow, conflict.category, row.bucket)
            apply_delta(record, delta)

    def _spawn_sessions(self, result: ReconciliationResult) -> None:
        try:
            with self.unit_of_work_factory() as uow:
                spawned = self.spawn_sessions(uow, self.context, list(result.new_scopes))
                uow.commit()
        except Exception as exc:
            log.exception(
                "Session hand-off failed for run %s; inventory changes are kept", result.run_id
            )
            result.sessions_error = exc
            return
        result.spawned_sessions = [session.id for session in spawned]


def _collect(result: ReconciliationResult, outcome: _RowOutcome) -> None:
    if outcome.change is not None:
        result.changes.append(outcome.change)
    if outcome.created_scope is not None:
        result.new_scopes.append(outcome.created_scope)
    if outcome.ambiguity is not None:
        result.ambiguous.append(outcome.ambiguity)
    match outcome.status:
        case ResolutionStatus.NEW if outcome.item_id is not None:
            result.inserted.append(outcome.item_id)
        case ResolutionStatus.MATCHED if outcome.changed and outcome.item_id is not None:
            result.updated.append(outcome.item_id)
        case ResolutionStatus.MATCHED:
            result.unchanged += 1
        case ResolutionStatus.AMBIGUOUS if outcome.conflict_id is not None:
            result.conflicts.append(outcome.conflict_id)
        case _:
            pass


def _row_from_payload(payload: dict[str, object]) -> SnapshotRow:
    known = {item.name for item in fields(SnapshotRow)}
    return SnapshotRow(**{key: value for key, value in payload.items() if key in known})  # pyright: ignore[reportArgumentType]
