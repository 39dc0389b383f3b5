"""Scanning session lifecycle and live progress views."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from loadtally.domain.errors import (
    InvalidScope,
    InvalidTransition,
    ItemNotFound,
    SessionNotFound,
    ValidationError,
)
from loadtally.domain.loads import LoadRegistry
from loadtally.domain.matching import MatchResolver
from loadtally.domain.model import (
    ScanningSession,
    SessionSource,
    SessionStatus,
    normalize_code,
)
from loadtally.domain.results import SessionSummary

if TYPE_CHECKING:
    from collections.abc import Iterable
    from uuid import UUID

    from loadtally.domain.context import OperationContext
    from loadtally.domain.model import Category, InventoryRecord
    from loadtally.domain.ports import InventoryUnitOfWork

log = logging.getLogger(__name__)

_INITIAL_STATUSES = frozenset({SessionStatus.DRAFT, SessionStatus.ACTIVE})


class SessionManager:
    def __init__(self, uow: InventoryUnitOfWork, context: OperationContext) -> None:
        self._uow = uow
        self._context = context
        self._loads = LoadRegistry(uow, context)
        self._resolver = MatchResolver(uow, context)

    @property
    def _tenant(self) -> str:
        return self._context.tenant_scope

    def create(
        self,
        name: str,
        category: Category,
        bucket: str | None = None,
        *,
        status: SessionStatus = SessionStatus.ACTIVE,
        source: SessionSource = SessionSource.MANUAL,
    ) -> ScanningSession:
        normalized_name = normalize_code(name)
        if normalized_name is None:
            raise ValidationError("Session name must not be blank")
        if status not in _INITIAL_STATUSES:
            raise ValidationError(f"Sessions cannot be created as {status}")
        scope_bucket = self._loads.validate_scope(category, bucket)

        session = ScanningSession(
            tenant_scope=self._tenant,
            name=normalized_name,
            category=category,
            bucket=scope_bucket,
            status=status,
            source=source,
            created_by=self._context.actor,
            updated_by=self._context.actor,
        )
        self._uow.repositories.sessions.add(session)
        self._uow.flush()
        log.info("Created %s session %r over %s/%s", status, normalized_name, category, scope_bucket)
        return session

    def get(self, session_id: UUID) -> ScanningSession:
        session = self._uow.repositories.sessions.get(self._tenant, session_id)
        if session is None:
            raise SessionNotFound(session_id)
        return session

    def set_status(self, session_id: UUID, status: SessionStatus) -> ScanningSession:
        session = self.get(session_id)
        session.transition(status, actor=self._context.actor)
        return session

    def record_scan(self, session_id: UUID, item_id: UUID) -> SessionSummary:
        """Add ``item_id`` to the session and flag the record scanned.

        Recording the same item twice leaves the scanned count unchanged.
        """

        session = self.get(session_id)
        if session.status is not SessionStatus.ACTIVE:
            raise InvalidTransition(f"Session {session.name!r}", session.status, "scanning")

        record = self._uow.repositories.items.get(self._tenant, item_id)
        if record is None:
            raise ItemNotFound(item_id)
        if not record.in_scope(session.category, session.bucket):
            raise InvalidScope(
                session.category,
                session.bucket,
                f"Inventory record {item_id} is outside session {session.name!r}",
            )

        session.record_scan(item_id, actor=self._context.actor)
        self._resolver.mark_scanned(item_id)
        return self._summarise(session)

    def summary(self, session_id: UUID) -> SessionSummary:
        return self._summarise(self.get(session_id))

    def list_summaries(self, category: Category | None = None) -> list[SessionSummary]:
        sessions = self._uow.repositories.sessions.list(self._tenant, category)
        return [self._summarise(session) for session in sessions]

    def items(self, session_id: UUID) -> list[InventoryRecord]:
        """Records currently inside the session's scope."""

        session = self.get(session_id)
        return self._uow.repositories.items.in_scope(
            self._tenant, session.category, session.bucket
        )

    def delete(self, session_id: UUID) -> None:
        session = self.get(session_id)
        self._uow.repositories.sessions.delete(session)
        self._uow.flush()
        log.info("Deleted session %r", session.name)

    def spawn_for_scopes(
        self,
        scopes: Iterable[tuple[Category, str | None]],
        *,
        source: SessionSource = SessionSource.ERP_SYNC,
    ) -> list[ScanningSession]:
        """Create one draft session per scope that has no open session yet.

        Either every needed session is created or none is.
        """

        created: list[ScanningSession] = []
        with self._uow.savepoint():
            for category, bucket in dict.fromkeys(scopes):
                existing = self._uow.repositories.sessions.find_open_for_scope(
                    self._tenant, category, bucket
                )
                if existing:
                    continue
                name = f"{category} {bucket}" if bucket else f"{category}"
                created.append(
                    self.create(
                        name,
                        category,
                        bucket,
                        status=SessionStatus.DRAFT,
                        source=source,
                    )
                )
        return created

    def _summarise(self, session: ScanningSession) -> SessionSummary:
        total = self._uow.repositories.items.count_in_scope(
            self._tenant, session.category, session.bucket
        )
        return SessionSummary.of(session, total_items=total)


def spawn_sessions_for_scopes(
    uow: InventoryUnitOfWork,
    context: OperationContext,
    scopes: Iterable[tuple[Category, str | None]],
) -> list[ScanningSession]:
    return SessionManager(uow, context).spawn_for_scopes(scopes)
