"""Outbox pattern primitives.

This package provides the transactional outbox pattern that guarantees
domain events reach the message broker at least once, independent of
whether the broker is reachable when the business write commits.
"""

from shared_kernel.outbox.exceptions import (
    BrokerPublishError,
    EventDeserializationError,
    EventSerializationError,
    OutboxError,
    UnknownEventTypeError,
)
from shared_kernel.outbox.ports import (
    BrokerPublisher,
    EventSerializer,
    IOutboxRepository,
    OutboxEventSource,
    OutboxWriter,
    TopicRouter,
)
from shared_kernel.outbox.value_objects import (
    DeadLetterEntry,
    DeadLetterPolicy,
    DeadLetterReason,
    OutboxEntry,
    OutboxPage,
    OutboxStatistics,
)

__all__ = [
    "BrokerPublishError",
    "BrokerPublisher",
    "DeadLetterEntry",
    "DeadLetterPolicy",
    "DeadLetterReason",
    "EventDeserializationError",
    "EventSerializationError",
    "EventSerializer",
    "IOutboxRepository",
    "OutboxEntry",
    "OutboxError",
    "OutboxEventSource",
    "OutboxPage",
    "OutboxStatistics",
    "OutboxWriter",
    "TopicRouter",
    "UnknownEventTypeError",
]
