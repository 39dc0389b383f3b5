"""Per-category serialisation of reconciliation runs."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from loadtally.domain.model import Category


@runtime_checkable
class CategoryLock(Protocol):
    def acquire(self, tenant_scope: str, category: Category, *, ttl_seconds: float) -> str:
        """Return a release token, or raise ``SyncInProgress`` while another run holds it."""
        ...

    def release(self, tenant_scope: str, category: Category, token: str) -> None: ...
