from __future__ import annotations

import threading
from uuid import uuid4

from loadtally.adapters.events import InMemoryEventBroker, matching
from loadtally.domain.model import Category, EntityType, EventAction
from loadtally.domain.ports import EventPublisher, Subscription
from loadtally.domain.ports.events import ChangeEvent
from tests.helpers.inventory import OTHER_TENANT, TENANT


def _event(
    table: EntityType = EntityType.INVENTORY_RECORD,
    *,
    category: Category | None = Category.ASIS,
    tenant_scope: str = TENANT,
) -> ChangeEvent:
    return ChangeEvent(
        table=table,
        action=EventAction.UPDATE,
        row_id=uuid4(),
        tenant_scope=tenant_scope,
        category=category,
    )


def test_broker_satisfies_ports() -> None:
    broker = InMemoryEventBroker()

    assert isinstance(broker, EventPublisher)
    assert isinstance(broker.subscribe(), Subscription)


def test_predicate_filters_events() -> None:
    broker = InMemoryEventBroker()
    subscription = broker.subscribe(
        matching(table=EntityType.INVENTORY_RECORD, category=Category.FG, tenant_scope=TENANT)
    )
    wanted = _event(category=Category.FG)

    broker.publish(_event(category=Category.ASIS))
    broker.publish(_event(EntityType.LOAD, category=Category.FG))
    broker.publish(_event(category=Category.FG, tenant_scope=OTHER_TENANT))
    broker.publish(wanted)

    assert subscription.get(timeout=0) == wanted
    assert subscription.get(timeout=0) is None


def test_full_buffer_drops_and_counts() -> None:
    broker = InMemoryEventBroker()
    slow = broker.subscribe(buffer_size=2)
    fast = broker.subscribe(buffer_size=10)

    for _ in range(5):
        broker.publish(_event())

    assert slow.dropped == 3
    assert fast.dropped == 0
    assert slow.get(timeout=0) is not None


def test_cancel_ends_iteration_and_unsubscribes() -> None:
    broker = InMemoryEventBroker()
    subscription = broker.subscribe()
    received: list[ChangeEvent] = []
    consumer = threading.Thread(target=lambda: received.extend(subscription))
    consumer.start()

    first = _event()
    broker.publish(first)
    subscription.cancel()
    consumer.join(timeout=2)

    assert not consumer.is_alive()
    assert received == [first]
    assert subscription.cancelled
    assert broker.subscriber_count == 0
    broker.publish(_event())
    assert subscription.get(timeout=0) is None


def test_cancel_on_full_queue_still_wakes_consumer() -> None:
    broker = InMemoryEventBroker()
    subscription = broker.subscribe(buffer_size=1)
    broker.publish(_event())

    subscription.cancel()

    assert list(subscription) == []
