"""Table-backed category lock serialising reconciliation runs."""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import TYPE_CHECKING
from uuid import uuid4

from sqlalchemy import delete, insert
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from loadtally.adapters.sqlalchemy.mappings import sync_lock_table
from loadtally.adapters.sqlalchemy.unit_of_work import (
    StartupError,
    configured_engine,
    translate_store_error,
)
from loadtally.domain.errors import SyncInProgress
from loadtally.domain.model import utcnow

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine

    from loadtally.domain.model import Category

log = logging.getLogger(__name__)


class SqlAlchemyCategoryLock:
    """Insert-or-fail lock row keyed by ``(tenant_scope, category)``.

    A row whose ``expires_at`` has passed belongs to a crashed run and is
    taken over.
    """

    def __init__(self, engine: Engine | None = None) -> None:
        self._engine = engine

    @property
    def engine(self) -> Engine:
        engine = self._engine or configured_engine()
        if engine is None:
            raise StartupError("SQLAlchemy adapter not initialised; no engine for sync lock")
        return engine

    def acquire(self, tenant_scope: str, category: Category, *, ttl_seconds: float) -> str:
        token = uuid4().hex
        now = utcnow()
        columns = sync_lock_table.c
        try:
            with self.engine.begin() as connection:
                stale = connection.execute(
                    delete(sync_lock_table)
                    .where(columns.tenant_scope == tenant_scope)
                    .where(columns.category == category)
                    .where(columns.expires_at < now)
                )
                if stale.rowcount:
                    log.warning("Taking over expired sync lock for %s/%s", tenant_scope, category)
                connection.execute(
                    insert(sync_lock_table).values(
                        tenant_scope=tenant_scope,
                        category=category,
                        token=token,
                        acquired_at=now,
                        expires_at=now + timedelta(seconds=ttl_seconds),
                    )
                )
        except IntegrityError as exc:
            raise SyncInProgress(tenant_scope, category) from exc
        except SQLAlchemyError as exc:
            raise translate_store_error(exc) from exc
        log.info("Acquired sync lock for %s/%s", tenant_scope, category)
        return token

    def release(self, tenant_scope: str, category: Category, token: str) -> None:
        columns = sync_lock_table.c
        try:
            with self.engine.begin() as connection:
                connection.execute(
                    delete(sync_lock_table)
                    .where(columns.tenant_scope == tenant_scope)
                    .where(columns.category == category)
                    .where(columns.token == token)
                )
        except SQLAlchemyError as exc:
            raise translate_store_error(exc) from exc
        log.info("Released sync lock for %s/%s", tenant_scope, category)
