"""Life-cycle notifications published by noteweave services.

Services receive an `EventBus` in their constructor and only publish; they
never subscribe to their own events. Delivery is synchronous and
fire-and-forget: a failing subscriber is logged and skipped.
"""

from collections import defaultdict
from enum import Enum
from typing import Any, Callable, Dict, List, Protocol

from loguru import logger

Payload = Dict[str, Any]
Subscriber = Callable[[Payload], None]


class Event(str, Enum):
    NODE_CREATED = "node.created"  # {node, parent_id}
    NODE_CONTENT_UPDATED = "node.contentUpdated"  # {node}
    NODE_METADATA_UPDATED = "node.metadataUpdated"  # {node}
    NODE_MOVED = "node.moved"  # {node_id, new_parent_id, node}
    NODE_RENAMED = "node.renamed"  # {node}
    NODE_REMOVED = "node.removed"  # {removed_node_id, all_removed_ids}
    SRS_CARD_UPDATED = "srsCard.updated"  # {card_id, new_state}
    TAGS_UPDATED = "tags.updated"  # {action, node_id?, tag_name?}
    DATA_IMPORTED = "system.imported"  # {tables}
    DATA_CLEARED = "system.cleared"  # {tables}


class EventBus(Protocol):
    def publish(self, event: Event, payload: Payload) -> None: ...

    def subscribe(self, event: Event, callback: Subscriber) -> Callable[[], None]: ...


class InMemoryEventBus:
    """In-process event bus with synchronous delivery."""

    def __init__(self) -> None:
        self._subscribers: Dict[str, List[Subscriber]] = defaultdict(list)

    def subscribe(self, event: Event, callback: Subscriber) -> Callable[[], None]:
        """Register `callback` for `event`; returns a function that unsubscribes it."""
        key = Event(event).value
        self._subscribers[key].append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers[key]:
                self._subscribers[key].remove(callback)

        return unsubscribe

    def publish(self, event: Event, payload: Payload) -> None:
        key = Event(event).value
        logger.debug(f"Publishing event: {key}")
        for callback in list(self._subscribers.get(key, [])):
            try:
                callback(payload)
            except Exception as e:
                logger.exception(f"Event subscriber failed for {key}: {e}")

    def subscriber_count(self, event: Event) -> int:
        return len(self._subscribers.get(Event(event).value, []))

