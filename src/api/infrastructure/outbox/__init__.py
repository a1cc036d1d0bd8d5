"""Infrastructure layer for the outbox pattern.

Contains SQLAlchemy models, the repository and service used inside business
transactions, and the background publisher that delivers records to the
message broker.
"""

from infrastructure.outbox.composite import (
    CompositeSerializer,
    CompositeTopicRouter,
    StaticTopicRouter,
)
from infrastructure.outbox.models import OutboxDeadLetterModel, OutboxMessageModel
from infrastructure.outbox.repository import OutboxRepository
from infrastructure.outbox.service import OutboxService, TransactionalOutboxWriter
from infrastructure.outbox.worker import BatchResult, OutboxPublisher

__all__ = [
    "BatchResult",
    "CompositeSerializer",
    "CompositeTopicRouter",
    "OutboxDeadLetterModel",
    "OutboxMessageModel",
    "OutboxPublisher",
    "OutboxRepository",
    "OutboxService",
    "StaticTopicRouter",
    "TransactionalOutboxWriter",
]
