from __future__ import annotations

from typing import TYPE_CHECKING

from loadtally.domain.model import Category, MatchField, SessionStatus, utcnow
from tests.helpers.inventory import make_record, make_session, seed

if TYPE_CHECKING:
    from collections.abc import Callable

    from loadtally.adapters.sqlalchemy.unit_of_work import SqlAlchemyInventoryUnitOfWork
    from loadtally.domain.context import OperationContext

    UowFactory = Callable[[], SqlAlchemyInventoryUnitOfWork]


def test_find_by_code_filters_on_one_field(
    sqlite_unit_of_work: UowFactory, context: OperationContext
) -> None:
    by_cso = make_record(cso="K1")
    seed(sqlite_unit_of_work, by_cso, make_record(serial="K1"), make_record(Category.FG, cso="K1"))

    with sqlite_unit_of_work() as uow:
        found = uow.repositories.items.find_by_code(
            context.tenant_scope, Category.ASIS, MatchField.CSO, "K1"
        )

    assert [record.id for record in found] == [by_cso.id]


def test_conditional_mark_scanned_updates_once(
    sqlite_unit_of_work: UowFactory, context: OperationContext
) -> None:
    record = make_record()
    seed(sqlite_unit_of_work, record)

    with sqlite_unit_of_work() as uow:
        items = uow.repositories.items
        first = items.mark_scanned(context.tenant_scope, record.id, actor="a", at=utcnow())
        second = items.mark_scanned(context.tenant_scope, record.id, actor="b", at=utcnow())
        loaded = items.get(context.tenant_scope, record.id)
        uow.commit()

    assert (first, second) == (True, False)
    assert loaded is not None
    assert loaded.scanned_by == "a"


def test_scope_queries_and_bucket_listing(
    sqlite_unit_of_work: UowFactory, context: OperationContext
) -> None:
    seed(
        sqlite_unit_of_work,
        make_record(bucket="L1"),
        make_record(bucket="L1"),
        make_record(bucket="L2"),
        make_record(),
    )

    with sqlite_unit_of_work() as uow:
        items = uow.repositories.items
        whole = items.count_in_scope(context.tenant_scope, Category.ASIS)
        one_load = items.count_in_scope(context.tenant_scope, Category.ASIS, "L1")
        buckets = items.distinct_buckets(context.tenant_scope, Category.ASIS)

    assert (whole, one_load) == (4, 2)
    assert buckets == {"L1", "L2"}


def test_open_sessions_for_scope_ignore_closed(
    sqlite_unit_of_work: UowFactory, context: OperationContext
) -> None:
    open_session = make_session(bucket="L1", status=SessionStatus.DRAFT)
    seed(
        sqlite_unit_of_work,
        open_session,
        make_session(bucket="L1", status=SessionStatus.CLOSED),
        make_session(bucket=None),
    )

    with sqlite_unit_of_work() as uow:
        found = uow.repositories.sessions.find_open_for_scope(
            context.tenant_scope, Category.ASIS, "L1"
        )

    assert [session.id for session in found] == [open_session.id]


def test_session_scanned_ids_round_trip(
    sqlite_unit_of_work: UowFactory, context: OperationContext
) -> None:
    record = make_record()
    session = make_session()
    seed(sqlite_unit_of_work, record, session)

    with sqlite_unit_of_work() as uow:
        stored = uow.repositories.sessions.get(context.tenant_scope, session.id)
        assert stored is not None
        stored.record_scan(record.id, actor="a")
        uow.commit()

    with sqlite_unit_of_work() as uow:
        reloaded = uow.repositories.sessions.get(context.tenant_scope, session.id)
        assert reloaded is not None
        assert reloaded.scanned_item_ids == frozenset({record.id})
