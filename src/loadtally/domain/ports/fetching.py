"""Ports for fetching external inventory snapshots."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Sequence

    from loadtally.domain.model import Category
    from loadtally.domain.reconciliation.contracts import SnapshotRow


@runtime_checkable
class SnapshotFetcher(Protocol):
    """Callable port returning an already ordered ERP snapshot for one category."""

    def __call__(self, category: Category) -> Sequence[SnapshotRow]: ...


__all__ = ["SnapshotFetcher"]
