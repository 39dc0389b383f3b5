"""Unit-of-work abstractions for coordinating repositories."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from contextlib import AbstractContextManager
    from types import TracebackType

    from loadtally.domain.ports.events import ChangeEvent
    from loadtally.domain.ports.persistence import (
        ChangeRepository,
        ConflictRepository,
        ConversionRepository,
        InventoryRepository,
        LoadRepository,
        SessionRepository,
    )


@runtime_checkable
class RepositoryCollection(Protocol):
    """Marker protocol for groups of repositories managed together."""


@runtime_checkable
class UnitOfWork[TRepositories: RepositoryCollection](Protocol):
    """Generic unit-of-work boundary around a repository collection.

    Change events handed to ``emit`` are published only after ``commit``
    succeeds and are dropped on rollback.
    """

    @property
    def repositories(self) -> TRepositories: ...

    def __enter__(self) -> UnitOfWork[TRepositories]: ...

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> bool: ...

    def commit(self) -> None: ...

    def rollback(self) -> None: ...

    def flush(self) -> None: ...

    def savepoint(self) -> AbstractContextManager[object]:
        """Nested transaction; an exception inside rolls back only the nested part."""
        ...

    def emit(self, change: ChangeEvent) -> None: ...


@dataclass(slots=True)
class InventoryRepositories(RepositoryCollection):
    """Repositories required by every inventory operation."""

    items: InventoryRepository
    loads: LoadRepository
    sessions: SessionRepository
    conversions: ConversionRepository
    conflicts: ConflictRepository
    changes: ChangeRepository


type InventoryUnitOfWork = UnitOfWork[InventoryRepositories]
