from __future__ import annotations

import logging
from datetime import timedelta
from typing import TYPE_CHECKING
from uuid import uuid4

import pytest

from loadtally.adapters.sqlalchemy.repositories import SqlAlchemyConversionRepository
from loadtally.domain.conversions import ConversionLedger
from loadtally.domain.errors import InvalidScope, ItemNotFound, ValidationError
from loadtally.domain.loads import LoadRegistry
from loadtally.domain.model import Category, utcnow
from tests.helpers.inventory import make_load, make_record, seed

if TYPE_CHECKING:
    from collections.abc import Callable

    from loadtally.adapters.sqlalchemy.unit_of_work import SqlAlchemyInventoryUnitOfWork
    from loadtally.domain.context import OperationContext
    from loadtally.domain.model import ConversionEntry

    UowFactory = Callable[[], SqlAlchemyInventoryUnitOfWork]


def test_conversion_writes_history_and_moves_records(
    sqlite_unit_of_work: UowFactory, context: OperationContext
) -> None:
    record = make_record(Category.ASIS, serial="S1", bucket="A1")
    seed(sqlite_unit_of_work, make_load("F1", Category.FG), record)

    with sqlite_unit_of_work() as uow:
        result = ConversionLedger(uow, context).record_conversion(
            [record.id], Category.FG, "F1", notes="repaired"
        )
        uow.commit()

    assert result.succeeded == [record.id]
    assert result.ledger_written is True
    with sqlite_unit_of_work() as uow:
        stored = uow.repositories.items.get(context.tenant_scope, record.id)
        history = ConversionLedger(uow, context).history(record.id)
    assert stored is not None
    assert (stored.category, stored.bucket) == (Category.FG, "F1")
    assert len(history) == 1
    entry = history[0]
    assert (entry.from_category, entry.from_bucket) == (Category.ASIS, "A1")
    assert (entry.to_category, entry.to_bucket) == (Category.FG, "F1")
    assert entry.converted_by == context.actor
    assert entry.notes == "repaired"


def test_unset_bucket_is_kept_only_where_the_target_category_has_that_load(
    sqlite_unit_of_work: UowFactory, context: OperationContext
) -> None:
    first = make_record(bucket="A1")
    second = make_record(bucket="A2")
    unassigned = make_record()
    seed(sqlite_unit_of_work, make_load("A1", Category.PARTS), first, second, unassigned)

    with sqlite_unit_of_work() as uow:
        result = ConversionLedger(uow, context).record_conversion(
            [first.id, second.id, unassigned.id], Category.PARTS
        )
        uow.commit()

    assert result.succeeded == [first.id, unassigned.id]
    assert result.failed_ids == [second.id]
    error = result.failed[0][1]
    assert isinstance(error, InvalidScope)
    assert (error.category, error.bucket) == (Category.PARTS, "A2")
    with sqlite_unit_of_work() as uow:
        stored = {
            record.id: record
            for record in uow.repositories.items.get_many(
                context.tenant_scope, [first.id, second.id, unassigned.id]
            )
        }
        dangling = LoadRegistry(uow, context).dangling_buckets(Category.PARTS)
        history = ConversionLedger(uow, context).history(second.id)
    assert (stored[first.id].category, stored[first.id].bucket) == (Category.PARTS, "A1")
    assert (stored[second.id].category, stored[second.id].bucket) == (Category.ASIS, "A2")
    assert (stored[unassigned.id].category, stored[unassigned.id].bucket) == (Category.PARTS, None)
    assert dangling == set()
    assert history == []


@pytest.mark.parametrize("bucket", [None, "", "  "])
def test_explicit_empty_bucket_clears_it(
    sqlite_unit_of_work: UowFactory, context: OperationContext, bucket: str | None
) -> None:
    record = make_record(bucket="A1")
    seed(sqlite_unit_of_work, record)

    with sqlite_unit_of_work() as uow:
        ConversionLedger(uow, context).record_conversion([record.id], Category.FG, bucket)
        uow.commit()

    with sqlite_unit_of_work() as uow:
        stored = uow.repositories.items.get(context.tenant_scope, record.id)
    assert stored is not None
    assert stored.bucket is None


def test_target_bucket_must_exist_in_target_category(
    sqlite_unit_of_work: UowFactory, context: OperationContext
) -> None:
    record = make_record(bucket="A1")
    seed(sqlite_unit_of_work, make_load("A1"), record)

    with sqlite_unit_of_work() as uow, pytest.raises(InvalidScope):
        ConversionLedger(uow, context).record_conversion([record.id], Category.FG, "A1")


def test_empty_request_is_rejected(
    sqlite_unit_of_work: UowFactory, context: OperationContext
) -> None:
    with sqlite_unit_of_work() as uow, pytest.raises(ValidationError):
        ConversionLedger(uow, context).record_conversion([], Category.FG)


def test_unknown_ids_are_reported_per_item(
    sqlite_unit_of_work: UowFactory, context: OperationContext
) -> None:
    record = make_record()
    seed(sqlite_unit_of_work, record)
    missing = uuid4()

    with sqlite_unit_of_work() as uow:
        result = ConversionLedger(uow, context).record_conversion(
            [record.id, missing], Category.FG
        )
        uow.commit()

    assert result.succeeded == [record.id]
    assert result.failed_ids == [missing]
    assert isinstance(result.failed[0][1], ItemNotFound)


def test_history_failure_does_not_block_conversion(
    sqlite_unit_of_work: UowFactory,
    context: OperationContext,
    monkeypatch: pytest.MonkeyPatch,
    caplog: pytest.LogCaptureFixture,
) -> None:
    record = make_record(bucket="A1")
    seed(sqlite_unit_of_work, make_load("A1", Category.FG), record)

    def broken_add(self: SqlAlchemyConversionRepository, entity: ConversionEntry) -> None:
        raise RuntimeError("history table unavailable")

    monkeypatch.setattr(SqlAlchemyConversionRepository, "add", broken_add)

    with caplog.at_level(logging.ERROR), sqlite_unit_of_work() as uow:
        result = ConversionLedger(uow, context).record_conversion([record.id], Category.FG)
        uow.commit()

    assert result.ledger_written is False
    assert result.succeeded == [record.id]
    assert "Failed to write conversion history" in caplog.text
    with sqlite_unit_of_work() as uow:
        stored = uow.repositories.items.get(context.tenant_scope, record.id)
        assert ConversionLedger(uow, context).history(record.id) == []
    assert stored is not None
    assert stored.category is Category.FG


def test_between_and_stats(sqlite_unit_of_work: UowFactory, context: OperationContext) -> None:
    first = make_record()
    second = make_record()
    seed(sqlite_unit_of_work, first, second)
    start = utcnow() - timedelta(minutes=1)

    with sqlite_unit_of_work() as uow:
        ledger = ConversionLedger(uow, context)
        ledger.record_conversion([first.id, second.id], Category.FG)
        ledger.record_conversion([first.id], Category.PARTS)
        uow.commit()

    with sqlite_unit_of_work() as uow:
        ledger = ConversionLedger(uow, context)
        window = ledger.between(start, utcnow() + timedelta(minutes=1))
        stats = ledger.stats()
        with pytest.raises(ValidationError):
            ledger.between(utcnow(), start)

    assert len(window) == 3
    assert stats == {(Category.ASIS, Category.FG): 2, (Category.FG, Category.PARTS): 1}
