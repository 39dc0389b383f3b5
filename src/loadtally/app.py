"""Application orchestration entry points.

Every caller-facing operation opens a unit of work, runs one domain call,
commits, and returns an ``Outcome``. Engine errors come back as ``Err`` and
are never raised across this boundary.
"""

from __future__ import annotations

from collections.abc import Callable
from logging import getLogger
from typing import TYPE_CHECKING

from loadtally.adapters.sqlalchemy.locking import SqlAlchemyCategoryLock
from loadtally.adapters.sqlalchemy.unit_of_work import (
    SqlAlchemyInventoryUnitOfWork,
    event_broker,
    is_started,
    startup,
)
from loadtally.config import get_sync_config
from loadtally.domain.context import OperationContext
from loadtally.domain.conversions import ConversionLedger
from loadtally.domain.errors import LoadTallyError, ValidationError
from loadtally.domain.loads import LoadRegistry
from loadtally.domain.matching import MatchResolver
from loadtally.domain.model import UNSET, LoadStatus, SessionSource, SessionStatus
from loadtally.domain.outcome import Err, Ok, Outcome
from loadtally.domain.ports.unit_of_work import InventoryUnitOfWork
from loadtally.domain.reconciliation import ReconciliationEngine
from loadtally.domain.sessions import SessionManager

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence
    from datetime import datetime
    from uuid import UUID

    from loadtally.domain.model import (
        Category,
        Conflict,
        ConversionEntry,
        InventoryRecord,
        Load,
        Maybe,
        ScanningSession,
    )
    from loadtally.domain.ports import CategoryLock, EventPredicate, SnapshotFetcher, Subscription
    from loadtally.domain.reconciliation import ReconciliationResult, SnapshotRow
    from loadtally.domain.results import BulkResult, ConversionResult, ScanResult, SessionSummary

UnitOfWorkFactory = Callable[[], InventoryUnitOfWork]


log = getLogger(__name__)


def _ensure_started() -> None:
    if not is_started():
        startup()


def _default_unit_of_work_factory() -> UnitOfWorkFactory:
    _ensure_started()
    return SqlAlchemyInventoryUnitOfWork


def default_context() -> OperationContext:
    config = get_sync_config()
    return OperationContext(tenant_scope=config.tenant_scope, actor=config.actor)


def _execute[T](
    name: str,
    work: Callable[[InventoryUnitOfWork, OperationContext], T],
    *,
    context: OperationContext | None,
    unit_of_work_factory: UnitOfWorkFactory | None,
    commit: bool = True,
) -> Outcome[T]:
    try:
        effective_context = context or default_context()
        factory = unit_of_work_factory or _default_unit_of_work_factory()
        with factory() as uow:
            value = work(uow, effective_context)
            if commit:
                uow.commit()
    except LoadTallyError as exc:
        log.warning("%s failed: %s", name, exc)
        return Err(exc)
    return Ok(value)


# Scanning --------------------------------------------------------------------


def resolve_scan(
    code: str | None,
    category: Category | None = None,
    *,
    context: OperationContext | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> Outcome[ScanResult]:
    return _execute(
        "resolve_scan",
        lambda uow, ctx: MatchResolver(uow, ctx).resolve(code, category),
        context=context,
        unit_of_work_factory=unit_of_work_factory,
        commit=False,
    )


def mark_scanned(
    item_id: UUID,
    *,
    context: OperationContext | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> Outcome[bool]:
    return _execute(
        "mark_scanned",
        lambda uow, ctx: MatchResolver(uow, ctx).mark_scanned(item_id),
        context=context,
        unit_of_work_factory=unit_of_work_factory,
    )


def mark_many_scanned(
    item_ids: Iterable[UUID],
    *,
    context: OperationContext | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> Outcome[BulkResult]:
    return _execute(
        "mark_many_scanned",
        lambda uow, ctx: MatchResolver(uow, ctx).mark_many_scanned(item_ids),
        context=context,
        unit_of_work_factory=unit_of_work_factory,
    )


# Loads -----------------------------------------------------------------------


def create_load(  # noqa: PLR0913
    category: Category,
    name: str,
    *,
    status: LoadStatus = LoadStatus.ACTIVE,
    notes: str | None = None,
    friendly_name: str | None = None,
    context: OperationContext | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> Outcome[Load]:
    return _execute(
        "create_load",
        lambda uow, ctx: LoadRegistry(uow, ctx).create(
            category, name, status=status, notes=notes, friendly_name=friendly_name
        ),
        context=context,
        unit_of_work_factory=unit_of_work_factory,
    )


def rename_load(
    category: Category,
    old_name: str,
    new_name: str,
    *,
    context: OperationContext | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> Outcome[Load]:
    return _execute(
        "rename_load",
        lambda uow, ctx: LoadRegistry(uow, ctx).rename(category, old_name, new_name),
        context=context,
        unit_of_work_factory=unit_of_work_factory,
    )


def merge_loads(  # noqa: PLR0913
    category: Category,
    sources: Sequence[str],
    target: str,
    *,
    create_target_if_missing: bool = False,
    context: OperationContext | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> Outcome[Load]:
    return _execute(
        "merge_loads",
        lambda uow, ctx: LoadRegistry(uow, ctx).merge(
            category, sources, target, create_target_if_missing=create_target_if_missing
        ),
        context=context,
        unit_of_work_factory=unit_of_work_factory,
    )


def delete_load(
    category: Category,
    name: str,
    *,
    clear_items: bool,
    context: OperationContext | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> Outcome[int]:
    return _execute(
        "delete_load",
        lambda uow, ctx: LoadRegistry(uow, ctx).delete(category, name, clear_items=clear_items),
        context=context,
        unit_of_work_factory=unit_of_work_factory,
    )


def set_load_status(
    category: Category,
    name: str,
    status: LoadStatus,
    *,
    context: OperationContext | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> Outcome[Load]:
    return _execute(
        "set_load_status",
        lambda uow, ctx: LoadRegistry(uow, ctx).set_status(category, name, status),
        context=context,
        unit_of_work_factory=unit_of_work_factory,
    )


def update_load(  # noqa: PLR0913
    category: Category,
    name: str,
    *,
    notes: Maybe[str | None] = UNSET,
    friendly_name: Maybe[str | None] = UNSET,
    context: OperationContext | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> Outcome[Load]:
    return _execute(
        "update_load",
        lambda uow, ctx: LoadRegistry(uow, ctx).update_metadata(
            category, name, notes=notes, friendly_name=friendly_name
        ),
        context=context,
        unit_of_work_factory=unit_of_work_factory,
    )


def list_loads(
    category: Category | None = None,
    *,
    include_delivered: bool = False,
    context: OperationContext | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> Outcome[list[Load]]:
    return _execute(
        "list_loads",
        lambda uow, ctx: LoadRegistry(uow, ctx).list(category, include_delivered=include_delivered),
        context=context,
        unit_of_work_factory=unit_of_work_factory,
        commit=False,
    )


# Sessions --------------------------------------------------------------------


def create_session(  # noqa: PLR0913
    name: str,
    category: Category,
    bucket: str | None = None,
    *,
    status: SessionStatus = SessionStatus.ACTIVE,
    source: SessionSource = SessionSource.MANUAL,
    context: OperationContext | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> Outcome[ScanningSession]:
    return _execute(
        "create_session",
        lambda uow, ctx: SessionManager(uow, ctx).create(
            name, category, bucket, status=status, source=source
        ),
        context=context,
        unit_of_work_factory=unit_of_work_factory,
    )


def record_session_scan(
    session_id: UUID,
    item_id: UUID,
    *,
    context: OperationContext | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> Outcome[SessionSummary]:
    return _execute(
        "record_session_scan",
        lambda uow, ctx: SessionManager(uow, ctx).record_scan(session_id, item_id),
        context=context,
        unit_of_work_factory=unit_of_work_factory,
    )


def set_session_status(
    session_id: UUID,
    status: SessionStatus,
    *,
    context: OperationContext | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> Outcome[ScanningSession]:
    return _execute(
        "set_session_status",
        lambda uow, ctx: SessionManager(uow, ctx).set_status(session_id, status),
        context=context,
        unit_of_work_factory=unit_of_work_factory,
    )


def session_summary(
    session_id: UUID,
    *,
    context: OperationContext | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> Outcome[SessionSummary]:
    return _execute(
        "session_summary",
        lambda uow, ctx: SessionManager(uow, ctx).summary(session_id),
        context=context,
        unit_of_work_factory=unit_of_work_factory,
        commit=False,
    )


def list_sessions(
    category: Category | None = None,
    *,
    context: OperationContext | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> Outcome[list[SessionSummary]]:
    return _execute(
        "list_sessions",
        lambda uow, ctx: SessionManager(uow, ctx).list_summaries(category),
        context=context,
        unit_of_work_factory=unit_of_work_factory,
        commit=False,
    )


def session_items(
    session_id: UUID,
    *,
    context: OperationContext | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> Outcome[list[InventoryRecord]]:
    return _execute(
        "session_items",
        lambda uow, ctx: SessionManager(uow, ctx).items(session_id),
        context=context,
        unit_of_work_factory=unit_of_work_factory,
        commit=False,
    )


# Conversions -----------------------------------------------------------------


def convert_items(  # noqa: PLR0913
    item_ids: Iterable[UUID],
    to_category: Category,
    to_bucket: Maybe[str | None] = UNSET,
    *,
    notes: str | None = None,
    context: OperationContext | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> Outcome[ConversionResult]:
    return _execute(
        "convert_items",
        lambda uow, ctx: ConversionLedger(uow, ctx).record_conversion(
            item_ids, to_category, to_bucket, notes=notes
        ),
        context=context,
        unit_of_work_factory=unit_of_work_factory,
    )


def conversion_history(
    item_id: UUID | None = None,
    *,
    start: datetime | None = None,
    end: datetime | None = None,
    context: OperationContext | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> Outcome[list[ConversionEntry]]:
    def work(uow: InventoryUnitOfWork, ctx: OperationContext) -> list[ConversionEntry]:
        ledger = ConversionLedger(uow, ctx)
        if item_id is not None:
            return ledger.history(item_id)
        return ledger.between(start, end)

    return _execute(
        "conversion_history",
        work,
        context=context,
        unit_of_work_factory=unit_of_work_factory,
        commit=False,
    )


# Reconciliation --------------------------------------------------------------


def _build_engine(
    context: OperationContext | None,
    unit_of_work_factory: UnitOfWorkFactory | None,
    lock: CategoryLock | None,
) -> ReconciliationEngine:
    config = get_sync_config()
    return ReconciliationEngine(
        unit_of_work_factory=unit_of_work_factory or _default_unit_of_work_factory(),
        lock=lock or SqlAlchemyCategoryLock(),
        context=context or default_context(),
        lock_ttl_seconds=config.lock_ttl_seconds,
    )


def run_reconciliation(  # noqa: PLR0913
    category: Category,
    rows: Iterable[SnapshotRow] | None = None,
    *,
    fetcher: SnapshotFetcher | None = None,
    lock: CategoryLock | None = None,
    context: OperationContext | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> Outcome[ReconciliationResult]:
    """Reconcile ``rows`` (or what ``fetcher`` returns) into ``category``."""

    try:
        if rows is None:
            if fetcher is None:
                raise ValidationError("run_reconciliation needs rows or a fetcher")
            rows = fetcher(category)
        engine = _build_engine(context, unit_of_work_factory, lock)
        result = engine.run(category, rows)
    except LoadTallyError as exc:
        log.warning("run_reconciliation failed for %s: %s", category, exc)
        return Err(exc)
    return Ok(result)


def resolve_conflict(  # noqa: PLR0913
    conflict_id: UUID,
    *,
    keep_item_id: UUID | None = None,
    note: str | None = None,
    lock: CategoryLock | None = None,
    context: OperationContext | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> Outcome[Conflict]:
    try:
        engine = _build_engine(context, unit_of_work_factory, lock)
        conflict = engine.resolve_conflict(conflict_id, keep_item_id=keep_item_id, note=note)
    except LoadTallyError as exc:
        log.warning("resolve_conflict failed for %s: %s", conflict_id, exc)
        return Err(exc)
    return Ok(conflict)


def list_conflicts(
    category: Category | None = None,
    *,
    context: OperationContext | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> Outcome[list[Conflict]]:
    return _execute(
        "list_conflicts",
        lambda uow, ctx: uow.repositories.conflicts.list_open(ctx.tenant_scope, category),
        context=context,
        unit_of_work_factory=unit_of_work_factory,
        commit=False,
    )


# Change feed -----------------------------------------------------------------


def subscribe_changes(predicate: EventPredicate | None = None) -> Subscription:
    """Subscribe to post-commit change hints from this process."""

    return event_broker().subscribe(predicate)
