from __future__ import annotations

import os
from typing import TYPE_CHECKING

import pytest
from sqlalchemy.engine import Engine  # noqa: TC002

from loadtally.adapters.events import InMemoryEventBroker
from loadtally.adapters.sqlalchemy import start_mappers
from loadtally.adapters.sqlalchemy.migrations import upgrade_head
from loadtally.adapters.sqlalchemy.unit_of_work import (
    SqlAlchemyInventoryUnitOfWork,
    build_engine,
    shutdown,
    startup,
)
from loadtally.domain.context import OperationContext
from tests.helpers.inventory import ACTOR, TENANT

os.environ.setdefault("DATABASE_URI", "sqlite+pysqlite:///:memory:")

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator
    from pathlib import Path


@pytest.fixture
def sqlite_engine(tmp_path: Path) -> Iterator[Engine]:
    engine = build_engine(f"sqlite+pysqlite:///{tmp_path / 'loadtally.db'}", timeout_seconds=5)
    start_mappers()
    upgrade_head(engine=engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture
def broker() -> InMemoryEventBroker:
    return InMemoryEventBroker(buffer_size=64)


@pytest.fixture
def sqlite_unit_of_work(
    sqlite_engine: Engine,
    broker: InMemoryEventBroker,
) -> Iterator[Callable[[], SqlAlchemyInventoryUnitOfWork]]:
    startup(engine=sqlite_engine, publisher=broker, force=True)

    def factory() -> SqlAlchemyInventoryUnitOfWork:
        return SqlAlchemyInventoryUnitOfWork()

    try:
        yield factory
    finally:
        shutdown()


@pytest.fixture
def context() -> OperationContext:
    return OperationContext(tenant_scope=TENANT, actor=ACTOR)
