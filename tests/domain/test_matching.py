from __future__ import annotations

from typing import TYPE_CHECKING, cast
from uuid import uuid4

import pytest

from loadtally.domain.errors import ItemNotFound
from loadtally.domain.matching import MatchResolver, pick_by_precedence
from loadtally.domain.model import Category, MatchField, ScanResultKind
from tests.helpers.inventory import OTHER_TENANT, make_record, seed

if TYPE_CHECKING:
    from collections.abc import Callable

    from loadtally.adapters.sqlalchemy.unit_of_work import SqlAlchemyInventoryUnitOfWork
    from loadtally.domain.context import OperationContext
    from loadtally.domain.ports import InventoryUnitOfWork

    UowFactory = Callable[[], SqlAlchemyInventoryUnitOfWork]


def test_serial_match_wins_over_lower_levels(
    sqlite_unit_of_work: UowFactory, context: OperationContext
) -> None:
    by_serial = make_record(serial="X1")
    seed(sqlite_unit_of_work, by_serial, make_record(cso="X1"), make_record(model="X1"))

    with sqlite_unit_of_work() as uow:
        result = MatchResolver(uow, context).resolve("X1")

    assert result.kind is ScanResultKind.UNIQUE
    assert result.matched_field is MatchField.SERIAL
    assert result.item is not None
    assert result.item.id == by_serial.id


def test_shared_model_is_ambiguous_while_serials_are_unique(
    sqlite_unit_of_work: UowFactory, context: OperationContext
) -> None:
    first = make_record(serial="S1", model="M1")
    second = make_record(serial="S2", model="M1")
    seed(sqlite_unit_of_work, first, second)

    with sqlite_unit_of_work() as uow:
        resolver = MatchResolver(uow, context)
        by_model = resolver.resolve("M1")
        by_serial = resolver.resolve("S1")

    assert by_model.kind is ScanResultKind.MULTIPLE
    assert by_model.matched_field is MatchField.MODEL
    assert {item.id for item in by_model.items} == {first.id, second.id}
    assert by_serial.kind is ScanResultKind.UNIQUE
    assert by_serial.item is not None
    assert by_serial.item.id == first.id


def test_ambiguous_higher_level_is_not_skipped(
    sqlite_unit_of_work: UowFactory, context: OperationContext
) -> None:
    seed(
        sqlite_unit_of_work,
        make_record(serial="Z9"),
        make_record(serial="Z9"),
        make_record(cso="Z9"),
    )

    with sqlite_unit_of_work() as uow:
        result = MatchResolver(uow, context).resolve("Z9")

    assert result.kind is ScanResultKind.MULTIPLE
    assert result.matched_field is MatchField.SERIAL
    assert len(result.items) == 2


def test_scanned_and_foreign_records_are_not_candidates(
    sqlite_unit_of_work: UowFactory, context: OperationContext
) -> None:
    seed(
        sqlite_unit_of_work,
        make_record(serial="S1", scanned=True),
        make_record(serial="S1", tenant_scope=OTHER_TENANT),
    )

    with sqlite_unit_of_work() as uow:
        result = MatchResolver(uow, context).resolve("S1")

    assert result.kind is ScanResultKind.NOT_FOUND
    assert result.items == ()
    assert result.matched_field is None


def test_category_filter_limits_the_pool(
    sqlite_unit_of_work: UowFactory, context: OperationContext
) -> None:
    seed(sqlite_unit_of_work, make_record(Category.FG, serial="S1"))

    with sqlite_unit_of_work() as uow:
        resolver = MatchResolver(uow, context)
        in_asis = resolver.resolve("S1", Category.ASIS)
        in_fg = resolver.resolve(" S1 ", Category.FG)

    assert in_asis.kind is ScanResultKind.NOT_FOUND
    assert in_fg.kind is ScanResultKind.UNIQUE


class _UntouchableUnitOfWork:
    @property
    def repositories(self) -> object:
        raise AssertionError("store should not be queried")


@pytest.mark.parametrize("code", [None, "", "   "])
def test_blank_code_is_not_found_without_querying(
    code: str | None, context: OperationContext
) -> None:
    uow = cast("InventoryUnitOfWork", _UntouchableUnitOfWork())

    result = MatchResolver(uow, context).resolve(code)

    assert result.kind is ScanResultKind.NOT_FOUND


def test_pick_by_precedence_on_in_memory_pool() -> None:
    pool = [make_record(cso="C1"), make_record(cso="C1", model="M1")]

    result = pick_by_precedence("C1", pool)

    assert result.kind is ScanResultKind.MULTIPLE
    assert result.matched_field is MatchField.CSO


def test_mark_scanned_is_idempotent(
    sqlite_unit_of_work: UowFactory, context: OperationContext
) -> None:
    record = make_record(serial="S1")
    seed(sqlite_unit_of_work, record)

    with sqlite_unit_of_work() as uow:
        resolver = MatchResolver(uow, context)
        first = resolver.mark_scanned(record.id)
        second = resolver.mark_scanned(record.id)
        uow.commit()

    with sqlite_unit_of_work() as uow:
        stored = uow.repositories.items.get(context.tenant_scope, record.id)
        assert stored is not None
        assert stored.scanned is True
        assert stored.scanned_by == context.actor
        assert stored.scanned_at is not None

    assert (first, second) == (True, False)


def test_mark_scanned_unknown_item_raises(
    sqlite_unit_of_work: UowFactory, context: OperationContext
) -> None:
    with sqlite_unit_of_work() as uow, pytest.raises(ItemNotFound):
        MatchResolver(uow, context).mark_scanned(uuid4())


def test_mark_many_scanned_reports_unknown_ids(
    sqlite_unit_of_work: UowFactory, context: OperationContext
) -> None:
    fresh = make_record(serial="S1")
    already = make_record(serial="S2", scanned=True)
    seed(sqlite_unit_of_work, fresh, already)
    missing = uuid4()

    with sqlite_unit_of_work() as uow:
        result = MatchResolver(uow, context).mark_many_scanned([fresh.id, missing, already.id])
        uow.commit()

    assert result.succeeded == [fresh.id, already.id]
    assert result.failed_ids == [missing]
    assert isinstance(result.failed[0][1], ItemNotFound)
    assert result.partial is True
