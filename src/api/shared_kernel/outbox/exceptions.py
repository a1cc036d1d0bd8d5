"""Exceptions for the outbox pattern.

Serialization failures are programmer errors and are kept apart from
broker failures, which are transient and retried by the publisher.
"""


class OutboxError(Exception):
    """Base class for outbox errors."""

    pass


class EventSerializationError(OutboxError, ValueError):
    """Raised when an event cannot be converted to or from its wire form."""

    pass


class UnknownEventTypeError(EventSerializationError):
    """Raised when an event type name is not registered with any serializer."""

    def __init__(self, event_type: str, supported: frozenset[str] = frozenset()):
        self.event_type = event_type
        self.supported = supported
        message = f"Unknown event type: {event_type}"
        if supported:
            message += f". Supported types: {sorted(supported)}"
        super().__init__(message)


class EventDeserializationError(EventSerializationError):
    """Raised when stored event data cannot be turned back into an event."""

    pass


class BrokerPublishError(OutboxError):
    """Raised when the broker did not acknowledge a message.

    The original broker exception is chained as ``__cause__``.
    """

    def __init__(self, topic: str, key: str, message: str) -> None:
        self.topic = topic
        self.key = key
        super().__init__(f"Failed to publish {key} to {topic}: {message}")
