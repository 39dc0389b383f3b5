"""In-process change-event broker.

Each subscription owns a bounded queue. A full queue drops the event and
counts the drop rather than blocking the publisher, so consumers must treat
events as refetch hints and tolerate gaps.
"""

from __future__ import annotations

import contextlib
import logging
import queue
import threading
from typing import TYPE_CHECKING, Final

if TYPE_CHECKING:
    from collections.abc import Iterator

    from loadtally.domain.model import Category, EntityType
    from loadtally.domain.ports.events import ChangeEvent, EventPredicate

log = logging.getLogger(__name__)

DEFAULT_BUFFER_SIZE: Final = 256


def _accept_all(_event: ChangeEvent) -> bool:
    return True


def matching(
    *,
    table: EntityType | None = None,
    category: Category | None = None,
    tenant_scope: str | None = None,
) -> EventPredicate:
    """Build a predicate filtering on table, category and tenant (``None`` = any)."""

    def predicate(event: ChangeEvent) -> bool:
        if table is not None and event.table is not table:
            return False
        if category is not None and event.category is not category:
            return False
        return tenant_scope is None or event.tenant_scope == tenant_scope

    return predicate


class QueueSubscription:
    """Cancelable, bounded stream of events accepted by ``predicate``."""

    def __init__(
        self,
        broker: InMemoryEventBroker,
        predicate: EventPredicate,
        buffer_size: int,
    ) -> None:
        self._broker = broker
        self._predicate = predicate
        self._queue: queue.Queue[ChangeEvent | None] = queue.Queue(maxsize=buffer_size)
        self._dropped = 0
        self._cancelled = threading.Event()

    @property
    def dropped(self) -> int:
        return self._dropped

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def offer(self, event: ChangeEvent) -> None:
        if self.cancelled or not self._predicate(event):
            return
        try:
            self._queue.put_nowait(event)
        except queue.Full:
            self._dropped += 1

    def get(self, timeout: float | None = None) -> ChangeEvent | None:
        """Next event, or ``None`` on timeout or once cancelled and drained."""

        if self.cancelled and self._queue.empty():
            return None
        try:
            return self._queue.get(timeout=timeout)
        except queue.Empty:
            return None

    def __iter__(self) -> Iterator[ChangeEvent]:
        while True:
            event = self.get()
            if event is None:
                return
            yield event

    def cancel(self) -> None:
        if self.cancelled:
            return
        self._cancelled.set()
        self._broker.unsubscribe(self)
        # wake a blocked consumer
        try:
            self._queue.put_nowait(None)
        except queue.Full:
            with contextlib.suppress(queue.Empty):
                self._queue.get_nowait()
            self._queue.put_nowait(None)


class InMemoryEventBroker:
    def __init__(self, buffer_size: int = DEFAULT_BUFFER_SIZE) -> None:
        self._buffer_size = buffer_size
        self._lock = threading.Lock()
        self._subscriptions: list[QueueSubscription] = []

    def publish(self, event: ChangeEvent) -> None:
        with self._lock:
            subscriptions = list(self._subscriptions)
        for subscription in subscriptions:
            subscription.offer(event)

    def subscribe(
        self,
        predicate: EventPredicate | None = None,
        *,
        buffer_size: int | None = None,
    ) -> QueueSubscription:
        subscription = QueueSubscription(
            self, predicate or _accept_all, buffer_size or self._buffer_size
        )
        with self._lock:
            self._subscriptions.append(subscription)
        log.debug("Subscribed %s (active=%s)", subscription, len(self._subscriptions))
        return subscription

    def unsubscribe(self, subscription: QueueSubscription) -> None:
        with self._lock:
            if subscription in self._subscriptions:
                self._subscriptions.remove(subscription)

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscriptions)
