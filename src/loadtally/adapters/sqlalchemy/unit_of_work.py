"""SQLAlchemy-backed unit of work for inventory operations."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Literal

from sqlalchemy import create_engine, event
from sqlalchemy.engine import make_url
from sqlalchemy.exc import DBAPIError, OperationalError, SQLAlchemyError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.orm import Session, sessionmaker

from loadtally.adapters.events import InMemoryEventBroker
from loadtally.adapters.sqlalchemy.mappings import start_mappers
from loadtally.adapters.sqlalchemy.migrations import upgrade_head
from loadtally.adapters.sqlalchemy.repositories import (
    SqlAlchemyChangeRepository,
    SqlAlchemyConflictRepository,
    SqlAlchemyConversionRepository,
    SqlAlchemyInventoryRepository,
    SqlAlchemyLoadRepository,
    SqlAlchemySessionRepository,
)
from loadtally.config import get_database_uri, get_sync_config
from loadtally.domain.errors import LoadTallyError, PersistenceError, TransientStoreError
from loadtally.domain.model import EventAction, TenantScoped
from loadtally.domain.ports.events import ChangeEvent
from loadtally.domain.ports.unit_of_work import InventoryRepositories, RepositoryCollection

if TYPE_CHECKING:
    from collections.abc import Iterator
    from types import TracebackType

    from sqlalchemy.engine import Engine
    from sqlalchemy.orm import SessionTransaction

    from loadtally.domain.ports.events import EventPublisher

log = logging.getLogger(__name__)


class StartupError(RuntimeError):
    """Raised when a SQLAlchemy unit of work is used before initialisation."""


def build_engine(database_uri: str, *, timeout_seconds: float | None = None) -> Engine:
    """Create an engine whose store calls carry ``timeout_seconds``.

    SQLite gets its busy timeout and working SAVEPOINT support; other
    backends get a pool checkout timeout.
    """

    url = make_url(database_uri)
    timeout = timeout_seconds if timeout_seconds is not None else get_sync_config().store_timeout_seconds
    if url.get_backend_name() != "sqlite":
        return create_engine(url, future=True, pool_timeout=timeout)

    engine = create_engine(url, future=True, connect_args={"timeout": timeout})
    _enable_sqlite_savepoints(engine)
    return engine


def _enable_sqlite_savepoints(engine: Engine) -> None:
    # pysqlite issues its own BEGIN lazily, which breaks SAVEPOINT; take over transaction start.
    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection: Any, _connection_record: Any) -> None:  # pyright: ignore[reportUnusedFunction]
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _on_begin(connection: Any) -> None:  # pyright: ignore[reportUnusedFunction]
        connection.exec_driver_sql("BEGIN")


@dataclass(slots=True)
class _AdapterState:
    _engine: Engine | None = None
    _session_factory: sessionmaker[Session] | None = None
    publisher: EventPublisher = field(default_factory=InMemoryEventBroker)

    @property
    def engine(self) -> Engine | None:
        return self._engine

    @engine.setter
    def engine(self, value: Engine | None) -> None:
        self._session_factory = None
        self._engine = value

    @property
    def session_factory(self) -> sessionmaker[Session]:
        if self._engine is None:
            raise StartupError(
                "SQLAlchemy adapter not initialised. Call loadtally.adapters.sqlalchemy."
                "unit_of_work.startup() before requesting a unit of work."
            )
        if self._session_factory is None:
            self._session_factory = sessionmaker(bind=self._engine, expire_on_commit=False)
        return self._session_factory


_STATE = _AdapterState()


def startup(
    *,
    engine: Engine | None = None,
    database_uri: str | None = None,
    publisher: EventPublisher | None = None,
    force: bool = False,
) -> None:
    """Initialise the SQLAlchemy engine, schema, and session factory."""

    if _STATE.engine is not None and not force:
        raise StartupError(
            "SQLAlchemy adapter already initialised. Pass force=True to reconfigure."
        )

    resolved_engine = engine or build_engine(database_uri or get_database_uri())
    start_mappers()
    upgrade_head(engine=resolved_engine)

    _STATE.engine = resolved_engine
    if publisher is not None:
        _STATE.publisher = publisher


def configured_engine() -> Engine | None:
    """Return the engine currently managed by the adapter (if any)."""

    return _STATE.engine


def event_broker() -> EventPublisher:
    """Return the publisher that committed units of work notify."""

    return _STATE.publisher


def is_started() -> bool:
    """Return whether the adapter has been initialised."""

    return _STATE.engine is not None


def shutdown() -> None:
    """Dispose the managed engine and reset state (primarily for tests)."""

    if _STATE.engine is not None:
        _STATE.engine.dispose()
    _STATE.engine = None
    _STATE.publisher = InMemoryEventBroker()


def translate_store_error(exc: SQLAlchemyError) -> LoadTallyError:
    """Map driver/pool failures onto the engine's error taxonomy."""

    if isinstance(exc, OperationalError | PoolTimeoutError):
        return TransientStoreError(str(exc))
    if isinstance(exc, DBAPIError) and exc.connection_invalidated:
        return TransientStoreError(str(exc))
    return PersistenceError(str(exc))


class BaseSqlAlchemyUnitOfWork[TRepositories: RepositoryCollection](ABC):
    """Generic SQLAlchemy unit of work with pluggable repository collections.

    Change events are queued while the unit is open and handed to the
    publisher only once ``commit`` succeeds.
    """

    def __init__(self, publisher: EventPublisher | None = None) -> None:
        self.session_factory: sessionmaker[Session] = _STATE.session_factory
        self._publisher = publisher or _STATE.publisher
        self._session: Session | None = None
        self._pending: list[ChangeEvent] = []

    @abstractmethod
    def _build_repositories(self, session: Session) -> TRepositories: ...

    def __enter__(self) -> BaseSqlAlchemyUnitOfWork[TRepositories]:
        self.session = self.session_factory()
        event.listen(self.session, "before_flush", self._track_flush)
        self._repositories = self._build_repositories(self.session)
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> Literal[False]:
        try:
            if exc_type is not None:
                self.rollback()
        finally:
            self.session.close()
            self.session = None
        if isinstance(exc_value, SQLAlchemyError):
            raise translate_store_error(exc_value) from exc_value
        return False

    def commit(self) -> None:
        try:
            self.session.commit()
        except SQLAlchemyError as exc:
            raise translate_store_error(exc) from exc
        published, self._pending = self._pending, []
        for change in published:
            self._publisher.publish(change)

    def rollback(self) -> None:
        self._pending.clear()
        self.session.rollback()

    def flush(self) -> None:
        try:
            self.session.flush()
        except SQLAlchemyError as exc:
            raise translate_store_error(exc) from exc

    @contextmanager
    def savepoint(self) -> Iterator[SessionTransaction]:
        """Nested transaction; events queued inside it are dropped if it rolls back."""

        mark = len(self._pending)
        try:
            with self.session.begin_nested() as nested:
                yield nested
        except BaseException:
            del self._pending[mark:]
            raise

    def emit(self, change: ChangeEvent) -> None:
        self._pending.append(change)

    def _track_flush(self, session: Session, _flush_context: object, _instances: object) -> None:
        for action, instances in (
            (EventAction.INSERT, session.new),
            (EventAction.UPDATE, session.dirty),
            (EventAction.DELETE, session.deleted),
        ):
            for instance in instances:
                if not isinstance(instance, TenantScoped):
                    continue
                if action is EventAction.UPDATE and not session.is_modified(instance):
                    continue
                self.emit(
                    ChangeEvent(
                        table=instance.entity_type,
                        action=action,
                        row_id=instance.id,
                        tenant_scope=instance.tenant_scope,
                        category=getattr(instance, "category", None),
                    )
                )

    @property
    def repositories(self) -> TRepositories:
        if self._session is None:
            raise StartupError("Unit of work session not initialised")
        return self._repositories

    @property
    def session(self) -> Session:
        if self._session is None:
            raise StartupError("Unit of work session not initialised")
        return self._session

    @session.setter
    def session(self, session: Session | None) -> None:
        if self._session is not None and session is not None:
            raise StartupError("Unit of work session already initialised")
        self._session = session


class SqlAlchemyInventoryUnitOfWork(BaseSqlAlchemyUnitOfWork[InventoryRepositories]):
    """Unit of work managing SQLAlchemy sessions for inventory operations."""

    def _build_repositories(self, session: Session) -> InventoryRepositories:
        return InventoryRepositories(
            items=SqlAlchemyInventoryRepository(session, self.emit),
            loads=SqlAlchemyLoadRepository(session, self.emit),
            sessions=SqlAlchemySessionRepository(session, self.emit),
            conversions=SqlAlchemyConversionRepository(session, self.emit),
            conflicts=SqlAlchemyConflictRepository(session, self.emit),
            changes=SqlAlchemyChangeRepository(session, self.emit),
        )


if TYPE_CHECKING:
    from loadtally.domain.ports.unit_of_work import InventoryUnitOfWork

    _uow_check: InventoryUnitOfWork = SqlAlchemyInventoryUnitOfWork()
