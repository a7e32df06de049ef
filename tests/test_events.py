"""Unit tests for events.py - Cycle event fan-out."""

import asyncio
from datetime import datetime

import pytest

from events import EventBus, EventSubscription, EventType, ReconcileEvent
from resources import ResourceKey
from result import Result

KEY = ResourceKey("default", "simple-1")


def make_event(event_type=EventType.RECONCILED, name="simple-1", reconciler="simple"):
    return ReconcileEvent(
        event_type=event_type,
        reconciler=reconciler,
        key=ResourceKey("default", name),
        message="Succeeded",
        timestamp="2024-01-15T10:30:00Z",
    )


class TestReconcileEvent:
    """Tests for the ReconcileEvent dataclass."""

    def test_to_dict(self):
        assert make_event().to_dict() == {
            "event_type": "RECONCILED",
            "reconciler": "simple",
            "namespace": "default",
            "name": "simple-1",
            "message": "Succeeded",
            "timestamp": "2024-01-15T10:30:00Z",
        }

    @pytest.mark.parametrize(
        "result, event_type",
        [
            (Result.ok(), EventType.RECONCILED),
            (Result.requeue("later"), EventType.REQUEUED),
            (Result.error(ValueError("boom")), EventType.FAILED),
        ],
    )
    def test_from_result(self, result, event_type):
        event = ReconcileEvent.from_result("simple", KEY, result)
        assert event.event_type == event_type
        assert event.key == KEY
        assert event.message == str(result)

    def test_default_timestamp_is_aware(self):
        event = ReconcileEvent.from_result("simple", KEY, Result.ok())
        assert datetime.fromisoformat(event.timestamp).tzinfo is not None


class TestEventSubscription:
    """Tests for matching events to a subscription."""

    def test_matches_everything_by_default(self):
        subscription = EventSubscription(queue_size=4)
        assert subscription.matches(make_event())
        assert subscription.matches(make_event(reconciler="other", name="x"))

    def test_matches_reconciler_and_key(self):
        subscription = EventSubscription(queue_size=4, reconciler="simple", key=KEY)
        assert subscription.matches(make_event())
        assert not subscription.matches(make_event(reconciler="other"))
        assert not subscription.matches(make_event(name="simple-2"))


@pytest.mark.asyncio
class TestEventBus:
    """Tests for the EventBus."""

    @pytest.fixture
    def bus(self):
        return EventBus(queue_size=16)

    async def test_publish_without_subscriptions(self, bus):
        bus.publish(make_event())
        assert bus.subscriptions() == []

    async def test_every_subscription_receives(self, bus):
        first = bus.subscribe()
        second = bus.subscribe()
        event = make_event()

        bus.publish(event)

        assert await asyncio.wait_for(first.__anext__(), timeout=1.0) is event
        assert await asyncio.wait_for(second.__anext__(), timeout=1.0) is event

    async def test_narrowed_subscription(self, bus):
        subscription = bus.subscribe(key=ResourceKey("default", "wanted"))

        bus.publish(make_event(name="other"))
        bus.publish(make_event(name="wanted"))

        received = await asyncio.wait_for(subscription.__anext__(), timeout=1.0)
        assert received.key.name == "wanted"

    async def test_unsubscribe_drains_then_stops(self, bus):
        subscription = bus.subscribe()
        event = make_event()
        bus.publish(event)

        bus.unsubscribe(subscription)
        bus.publish(make_event(name="late"))

        assert [e async for e in subscription] == [event]
        assert bus.subscriptions() == []

    async def test_full_buffer_drops_events(self):
        bus = EventBus(queue_size=1)
        subscription = bus.subscribe()
        first = make_event(name="first")

        bus.publish(first)
        bus.publish(make_event(name="second"))

        assert subscription.dropped == 1
        assert await asyncio.wait_for(subscription.__anext__(), timeout=1.0) is first

    async def test_close_full_subscription(self):
        """Test that closing always ends iteration, even with a full buffer."""
        bus = EventBus(queue_size=1)
        subscription = bus.subscribe()
        bus.publish(make_event())

        bus.unsubscribe(subscription)

        assert [e async for e in subscription] == []
        assert subscription.dropped == 1

    async def test_unsubscribe_twice_is_noop(self, bus):
        subscription = bus.subscribe()
        bus.unsubscribe(subscription)
        bus.unsubscribe(subscription)
        assert subscription.closed
