"""Error taxonomy shared by every engine operation.

``ValidationError`` is raised before any store I/O. ``ConflictError`` needs an
explicit operator decision. ``InvalidTransition`` is fatal to the call only.
``TransientStoreError`` may be retried by the caller; the engine never retries.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from uuid import UUID


class LoadTallyError(Exception):
    """Base class for every error crossing the engine boundary."""


class ValidationError(LoadTallyError):
    """Bad input, rejected before any store I/O."""


class InvalidScope(ValidationError):
    """A category/bucket pairing that does not name an existing load."""

    def __init__(self, category: str, bucket: str | None, reason: str | None = None) -> None:
        super().__init__(reason or f"Load {bucket!r} does not exist in category {category}")
        self.category = category
        self.bucket = bucket


class ConflictError(LoadTallyError):
    """State that must be resolved explicitly by an operator."""


class DuplicateLoad(ConflictError):
    def __init__(self, category: str, name: str) -> None:
        super().__init__(f"Load {name!r} already exists in category {category}")
        self.category = category
        self.name = name


class AmbiguousMatch(ConflictError):
    def __init__(self, field: str, value: str, candidate_ids: tuple[UUID, ...]) -> None:
        super().__init__(
            f"{field}={value!r} matches {len(candidate_ids)} inventory records"
        )
        self.field = field
        self.value = value
        self.candidate_ids = candidate_ids


class SyncInProgress(ConflictError):
    def __init__(self, tenant_scope: str, category: str) -> None:
        super().__init__(f"A reconciliation run for {tenant_scope}/{category} is in progress")
        self.tenant_scope = tenant_scope
        self.category = category


class InvalidTransition(LoadTallyError):
    def __init__(self, subject: str, current: str, requested: str) -> None:
        super().__init__(f"{subject} cannot move from {current} to {requested}")
        self.subject = subject
        self.current = current
        self.requested = requested


class NotFound(LoadTallyError):
    """A referenced row does not exist in the caller's scope."""


class LoadNotFound(NotFound):
    def __init__(self, category: str, name: str) -> None:
        super().__init__(f"Load {name!r} not found in category {category}")
        self.category = category
        self.name = name


class SessionNotFound(NotFound):
    def __init__(self, session_id: UUID) -> None:
        super().__init__(f"Scanning session {session_id} not found")
        self.session_id = session_id


class ItemNotFound(NotFound):
    def __init__(self, item_id: UUID) -> None:
        super().__init__(f"Inventory record {item_id} not found")
        self.item_id = item_id


class ConflictNotFound(NotFound):
    def __init__(self, conflict_id: UUID) -> None:
        super().__init__(f"Conflict {conflict_id} not found")
        self.conflict_id = conflict_id


class PersistenceError(LoadTallyError):
    """The store rejected a write (constraint violation and similar)."""


class TransientStoreError(PersistenceError):
    """Timeout or lost connection; eligible for caller-driven retry."""
