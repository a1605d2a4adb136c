"""Base service class."""

from typing import Generic

from noteweave.events import Event, EventBus, Payload
from noteweave.repository.repository import Repository, T


class BaseService(Generic[T]):
    """Base service that owns a primary repository and publishes events."""

    def __init__(self, repository: Repository[T], events: EventBus):
        self.repository = repository
        self.events = events

    def publish(self, event: Event, payload: Payload) -> None:
        self.events.publish(event, payload)
