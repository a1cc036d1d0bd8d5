"""Composite serializer and topic router for the outbox.

Each bounded context registers its own serializer and topic routes at
startup. The publisher and the outbox service only ever see the composite,
so shared infrastructure stays agnostic of specific domain events.
"""

from __future__ import annotations

from collections.abc import Mapping

from shared_kernel.events.base import DomainEvent
from shared_kernel.outbox.exceptions import UnknownEventTypeError
from shared_kernel.outbox.ports import EventSerializer, TopicRouter

DEFAULT_UNKNOWN_TOPIC = "auth.events.unknown"


class CompositeSerializer:
    """Delegates to the serializer registered for each event type.

    Example:
        serializer = CompositeSerializer()
        serializer.register(IAMEventSerializer())
        data = serializer.serialize(UserRegistered(...))
    """

    def __init__(self) -> None:
        """Initialize with empty serializer list."""
        self._serializers: list[EventSerializer] = []
        self._type_cache: dict[str, EventSerializer] = {}

    def register(self, serializer: EventSerializer) -> None:
        """Register a context-specific serializer.

        Raises:
            ValueError: If one of its event types is already registered
        """
        duplicates = serializer.supported_event_types() & self._type_cache.keys()
        if duplicates:
            raise ValueError(
                f"Event types already registered: {sorted(duplicates)}"
            )

        self._serializers.append(serializer)
        for event_type in serializer.supported_event_types():
            self._type_cache[event_type] = serializer

    def supported_event_types(self) -> frozenset[str]:
        """Return all supported event types across all serializers."""
        return frozenset(self._type_cache)

    def supports(self, event_type: str) -> bool:
        return event_type in self._type_cache

    def serialize(self, event: DomainEvent) -> str:
        """Serialize a domain event with the serializer owning its type.

        Raises:
            UnknownEventTypeError: If no serializer handles the event type
        """
        return self._serializer_for(event.event_type).serialize(event)

    def deserialize(self, event_type: str, data: str) -> DomainEvent:
        """Reconstruct a domain event with the serializer owning its type.

        Raises:
            UnknownEventTypeError: If no serializer handles the event type
        """
        return self._serializer_for(event_type).deserialize(event_type, data)

    def _serializer_for(self, event_type: str) -> EventSerializer:
        serializer = self._type_cache.get(event_type)
        if serializer is None:
            raise UnknownEventTypeError(event_type, self.supported_event_types())
        return serializer


class StaticTopicRouter:
    """Routes event types through a fixed name to topic table."""

    def __init__(self, routes: Mapping[str, str]) -> None:
        self._routes = dict(routes)

    def topic_for(self, event_type: str) -> str | None:
        return self._routes.get(event_type)

    def routed_event_types(self) -> frozenset[str]:
        return frozenset(self._routes)


class CompositeTopicRouter:
    """Asks each registered router in turn.

    Returns None when no router knows the event type; the publisher then
    uses its default topic so unknown types never block a batch.
    """

    def __init__(self) -> None:
        self._routers: list[TopicRouter] = []

    def register(self, router: TopicRouter) -> None:
        self._routers.append(router)

    def topic_for(self, event_type: str) -> str | None:
        for router in self._routers:
            topic = router.topic_for(event_type)
            if topic is not None:
                return topic
        return None
