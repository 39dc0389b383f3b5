"""SQLAlchemy adapter package for loadtally."""

from __future__ import annotations

from .mappings import mapper_registry, start_mappers
from .repositories import (
    SqlAlchemyChangeRepository,
    SqlAlchemyConflictRepository,
    SqlAlchemyConversionRepository,
    SqlAlchemyInventoryRepository,
    SqlAlchemyLoadRepository,
    SqlAlchemySessionRepository,
)

__all__ = [
    "SqlAlchemyChangeRepository",
    "SqlAlchemyConflictRepository",
    "SqlAlchemyConversionRepository",
    "SqlAlchemyInventoryRepository",
    "SqlAlchemyLoadRepository",
    "SqlAlchemySessionRepository",
    "mapper_registry",
    "start_mappers",
]
