"""Domain port definitions for adapters."""

from __future__ import annotations

from .events import ChangeEvent, EventPredicate, EventPublisher, Subscription
from .fetching import SnapshotFetcher
from .locking import CategoryLock
from .persistence import (
    ChangeRepository,
    ConflictRepository,
    ConversionRepository,
    InventoryRepository,
    LoadRepository,
    Repository,
    SessionRepository,
)
from .unit_of_work import (
    InventoryRepositories,
    InventoryUnitOfWork,
    RepositoryCollection,
    UnitOfWork,
)

__all__ = [
    "CategoryLock",
    "ChangeEvent",
    "ChangeRepository",
    "ConflictRepository",
    "ConversionRepository",
    "EventPredicate",
    "EventPublisher",
    "InventoryRepositories",
    "InventoryRepository",
    "InventoryUnitOfWork",
    "LoadRepository",
    "Repository",
    "RepositoryCollection",
    "SessionRepository",
    "SnapshotFetcher",
    "Subscription",
    "UnitOfWork",
]
