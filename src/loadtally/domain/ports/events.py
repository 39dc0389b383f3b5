"""Change notification ports.

Events are hints to re-fetch. Delivery is at-most-once, so a consumer must be
able to resynchronise from the store alone.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator
    from uuid import UUID

    from loadtally.domain.model import Category, EntityType, EventAction


@dataclass(frozen=True, slots=True)
class ChangeEvent:
    table: EntityType
    action: EventAction
    row_id: UUID
    tenant_scope: str
    category: Category | None = None


type EventPredicate = Callable[[ChangeEvent], bool]


@runtime_checkable
class Subscription(Protocol):
    """Cancelable stream of events matching a predicate."""

    @property
    def dropped(self) -> int: ...

    @property
    def cancelled(self) -> bool: ...

    def __iter__(self) -> Iterator[ChangeEvent]: ...

    def get(self, timeout: float | None = None) -> ChangeEvent | None: ...

    def cancel(self) -> None: ...


@runtime_checkable
class EventPublisher(Protocol):
    def publish(self, event: ChangeEvent) -> None: ...

    def subscribe(self, predicate: EventPredicate | None = None) -> Subscription: ...
