"""Message broker adapters."""

from infrastructure.messaging.kafka import KafkaBrokerPublisher

__all__ = ["KafkaBrokerPublisher"]
