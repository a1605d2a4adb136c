"""Tests for the in-memory event bus."""

from noteweave.events import Event, InMemoryEventBus


def test_publish_reaches_subscribers():
    bus = InMemoryEventBus()
    received = []
    bus.subscribe(Event.NODE_CREATED, received.append)

    bus.publish(Event.NODE_CREATED, {"node": "n1", "parent_id": None})
    bus.publish(Event.NODE_REMOVED, {"removed_node_id": "n1", "all_removed_ids": ["n1"]})

    assert received == [{"node": "n1", "parent_id": None}]


def test_subscribe_by_event_name():
    bus = InMemoryEventBus()
    received = []
    bus.subscribe("tags.updated", received.append)
    bus.publish(Event.TAGS_UPDATED, {"action": "create", "tag_name": "x"})
    assert len(received) == 1


def test_unsubscribe():
    bus = InMemoryEventBus()
    received = []
    unsubscribe = bus.subscribe(Event.NODE_RENAMED, received.append)
    assert bus.subscriber_count(Event.NODE_RENAMED) == 1

    unsubscribe()
    unsubscribe()
    bus.publish(Event.NODE_RENAMED, {"node": "n1"})

    assert received == []
    assert bus.subscriber_count(Event.NODE_RENAMED) == 0


def test_failing_subscriber_does_not_stop_delivery():
    bus = InMemoryEventBus()
    received = []

    def broken(payload):
        raise RuntimeError("boom")

    bus.subscribe(Event.SRS_CARD_UPDATED, broken)
    bus.subscribe(Event.SRS_CARD_UPDATED, received.append)

    bus.publish(Event.SRS_CARD_UPDATED, {"card_id": "clz-1", "new_state": None})
    assert received == [{"card_id": "clz-1", "new_state": None}]
