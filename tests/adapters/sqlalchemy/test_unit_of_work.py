from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError

import loadtally.adapters.sqlalchemy.unit_of_work as uow_module
from loadtally.adapters.events import matching
from loadtally.adapters.sqlalchemy.unit_of_work import (
    SqlAlchemyInventoryUnitOfWork,
    StartupError,
    configured_engine,
    event_broker,
    is_started,
    shutdown,
    startup,
    translate_store_error,
)
from loadtally.domain.errors import PersistenceError, TransientStoreError
from loadtally.domain.model import Category, EntityType, EventAction
from tests.helpers.inventory import make_load, make_record

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator

    from sqlalchemy.engine import Engine

    from loadtally.adapters.events import InMemoryEventBroker

    UowFactory = Callable[[], SqlAlchemyInventoryUnitOfWork]


@pytest.fixture(autouse=True)
def _reset_adapter() -> Iterator[None]:
    shutdown()
    yield
    shutdown()


def test_unit_of_work_requires_startup() -> None:
    with pytest.raises(StartupError):
        SqlAlchemyInventoryUnitOfWork()


def test_startup_twice_requires_force(sqlite_engine: Engine) -> None:
    startup(engine=sqlite_engine)

    with pytest.raises(StartupError):
        startup(engine=sqlite_engine)
    startup(engine=sqlite_engine, force=True)

    assert is_started()
    assert configured_engine() is sqlite_engine


def test_startup_without_engine_uses_database_uri(
    monkeypatch: pytest.MonkeyPatch,
    sqlite_engine: Engine,
) -> None:
    seen: list[str] = []

    def fake_build_engine(database_uri: str) -> Engine:
        seen.append(database_uri)
        return sqlite_engine

    monkeypatch.setattr(uow_module, "build_engine", fake_build_engine)
    monkeypatch.setenv("DATABASE_URI", "sqlite+pysqlite:///ignored.db")

    startup()

    assert seen == ["sqlite+pysqlite:///ignored.db"]
    assert configured_engine() is sqlite_engine


def test_events_are_published_only_after_commit(
    sqlite_unit_of_work: UowFactory,
    broker: InMemoryEventBroker,
) -> None:
    subscription = broker.subscribe(matching(table=EntityType.INVENTORY_RECORD))
    record = make_record(Category.FG, serial="S1")

    with sqlite_unit_of_work() as uow:
        uow.repositories.items.add(record)
        uow.flush()
        assert subscription.get(timeout=0) is None
        uow.commit()

    event = subscription.get(timeout=0)
    assert event is not None
    assert (event.action, event.row_id, event.category) == (
        EventAction.INSERT,
        record.id,
        Category.FG,
    )
    assert event_broker() is broker


def test_rolled_back_changes_emit_nothing(
    sqlite_unit_of_work: UowFactory,
    broker: InMemoryEventBroker,
) -> None:
    subscription = broker.subscribe()

    with sqlite_unit_of_work() as uow:
        uow.repositories.loads.add(make_load("L1"))
        uow.flush()
        uow.rollback()
        uow.commit()

    assert subscription.get(timeout=0) is None


def test_rolled_back_savepoint_drops_its_events(
    sqlite_unit_of_work: UowFactory,
    broker: InMemoryEventBroker,
) -> None:
    subscription = broker.subscribe(matching(table=EntityType.LOAD))
    kept = make_load("KEPT")

    with sqlite_unit_of_work() as uow:
        uow.repositories.loads.add(kept)
        uow.flush()
        with pytest.raises(RuntimeError), uow.savepoint():
            uow.repositories.loads.add(make_load("DROPPED"))
            uow.flush()
            raise RuntimeError("abort savepoint")
        uow.commit()

    received = list(iter(lambda: subscription.get(timeout=0), None))
    assert [event.row_id for event in received] == [kept.id]


def test_bulk_updates_notify_subscribers(
    sqlite_unit_of_work: UowFactory,
    broker: InMemoryEventBroker,
) -> None:
    record = make_record(bucket="A")
    with sqlite_unit_of_work() as uow:
        uow.repositories.items.add(record)
        uow.commit()
    subscription = broker.subscribe(matching(table=EntityType.INVENTORY_RECORD))

    with sqlite_unit_of_work() as uow:
        uow.repositories.items.reassign_bucket(record.tenant_scope, Category.ASIS, ["A"], "B")
        uow.commit()

    event = subscription.get(timeout=0)
    assert event is not None
    assert (event.action, event.row_id) == (EventAction.UPDATE, record.id)


def test_constraint_violation_is_a_persistence_error(sqlite_unit_of_work: UowFactory) -> None:
    with pytest.raises(PersistenceError) as excinfo, sqlite_unit_of_work() as uow:
        uow.repositories.loads.add(make_load("L1"))
        uow.repositories.loads.add(make_load("L1"))
        uow.commit()

    assert not isinstance(excinfo.value, TransientStoreError)


def test_translate_store_error() -> None:
    operational = OperationalError("SELECT 1", {}, Exception("database is locked"))
    integrity = IntegrityError("INSERT", {}, Exception("UNIQUE constraint failed"))

    assert isinstance(translate_store_error(operational), TransientStoreError)
    assert isinstance(translate_store_error(PoolTimeoutError("pool exhausted")), TransientStoreError)
    translated = translate_store_error(integrity)
    assert isinstance(translated, PersistenceError)
    assert not isinstance(translated, TransientStoreError)
