"""Observability probes for the outbox.

Following Domain Oriented Observability, probes capture domain-significant
events and metrics without cluttering delivery logic with logging concerns.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol
from uuid import UUID

import structlog

logger = structlog.get_logger()


class OutboxPublisherProbe(Protocol):
    """Protocol for outbox publisher observability.

    Implementations can log, emit metrics, or send traces.
    """

    def publisher_started(self) -> None:
        """Called when the publisher starts."""
        ...

    def publisher_stopped(self) -> None:
        """Called when the publisher stops."""
        ...

    def publisher_disabled(self, missing: Sequence[str]) -> None:
        """Called once when required collaborators are not configured."""
        ...

    def event_published(self, entry_id: UUID, event_type: str, topic: str) -> None:
        """Called when a record was delivered and marked processed."""
        ...

    def event_publish_failed(
        self, entry_id: UUID, event_type: str, error: str, retry_count: int
    ) -> None:
        """Called when delivery failed and the record stays pending."""
        ...

    def event_dead_lettered(
        self, entry_id: UUID, event_type: str, reason: str, error: str
    ) -> None:
        """Called when a record is removed from the outbox undelivered."""
        ...

    def event_already_processed(self, entry_id: UUID) -> None:
        """Called when marking found the record already processed."""
        ...

    def unknown_topic(self, event_type: str, fallback_topic: str) -> None:
        """Called when an event type has no topic route."""
        ...

    def batch_processed(
        self, fetched: int, published: int, failed: int, dead_lettered: int
    ) -> None:
        """Called when a poll tick finishes."""
        ...

    def batch_interrupted(self, remaining: int) -> None:
        """Called when a stop signal cut a batch short."""
        ...

    def poll_loop_started(self, poll_interval_seconds: float) -> None:
        """Called when the poll loop starts."""
        ...

    def poll_loop_error(self, error: str) -> None:
        """Called when a poll tick raised."""
        ...

    def wakeup_received(self, entry_id: UUID) -> None:
        """Called when the event source signals a new record."""
        ...


class DefaultOutboxPublisherProbe:
    """Default implementation using structlog.

    Logs all publisher events with appropriate log levels.
    """

    def __init__(self) -> None:
        """Initialize the probe with a logger."""
        self._log = logger.bind(component="outbox_publisher")

    def publisher_started(self) -> None:
        self._log.info("outbox_publisher_started")

    def publisher_stopped(self) -> None:
        self._log.info("outbox_publisher_stopped")

    def publisher_disabled(self, missing: Sequence[str]) -> None:
        """Log that the publisher will not run in this process."""
        self._log.warning("outbox_publisher_disabled", missing=list(missing))

    def event_published(self, entry_id: UUID, event_type: str, topic: str) -> None:
        self._log.info(
            "outbox_event_published",
            entry_id=str(entry_id),
            event_type=event_type,
            topic=topic,
        )

    def event_publish_failed(
        self, entry_id: UUID, event_type: str, error: str, retry_count: int
    ) -> None:
        self._log.warning(
            "outbox_event_publish_failed",
            entry_id=str(entry_id),
            event_type=event_type,
            error=error,
            retry_count=retry_count,
        )

    def event_dead_lettered(
        self, entry_id: UUID, event_type: str, reason: str, error: str
    ) -> None:
        """Log a record leaving the outbox without delivery.

        This is the point where delivery is abandoned, so it logs at error.
        """
        self._log.error(
            "outbox_event_dead_lettered",
            entry_id=str(entry_id),
            event_type=event_type,
            reason=reason,
            error=error,
        )

    def event_already_processed(self, entry_id: UUID) -> None:
        self._log.debug("outbox_event_already_processed", entry_id=str(entry_id))

    def unknown_topic(self, event_type: str, fallback_topic: str) -> None:
        self._log.warning(
            "outbox_unknown_topic",
            event_type=event_type,
            fallback_topic=fallback_topic,
        )

    def batch_processed(
        self, fetched: int, published: int, failed: int, dead_lettered: int
    ) -> None:
        """Log batch processing."""
        if fetched > 0:
            self._log.info(
                "outbox_batch_processed",
                fetched=fetched,
                published=published,
                failed=failed,
                dead_lettered=dead_lettered,
            )

    def batch_interrupted(self, remaining: int) -> None:
        self._log.info("outbox_batch_interrupted", remaining=remaining)

    def poll_loop_started(self, poll_interval_seconds: float) -> None:
        self._log.info(
            "outbox_poll_loop_started", poll_interval_seconds=poll_interval_seconds
        )

    def poll_loop_error(self, error: str) -> None:
        self._log.warning("outbox_poll_loop_error", error=error)

    def wakeup_received(self, entry_id: UUID) -> None:
        self._log.debug("outbox_wakeup_received", entry_id=str(entry_id))


class OutboxServiceProbe(Protocol):
    """Protocol for outbox write-side and maintenance observability."""

    def events_saved(self, count: int, event_types: Sequence[str]) -> None:
        """Called when events were added to the current transaction."""
        ...

    def serialization_failed(self, event_type: str, error: str) -> None:
        """Called when an event in a batch could not be serialized."""
        ...

    def processed_records_cleaned(self, deleted: int, retention_days: float) -> None:
        """Called after old processed records were removed."""
        ...

    def dead_letter_requeued(self, dead_letter_id: UUID, entry_id: UUID) -> None:
        """Called when a dead-lettered record went back into the outbox."""
        ...

    def record_reset_for_retry(self, entry_id: UUID) -> None:
        """Called when an operator made a failed record due again."""
        ...

    def retry_rejected(self, entry_id: UUID) -> None:
        """Called when a retry targets a missing or processed record."""
        ...


class DefaultOutboxServiceProbe:
    """Default implementation using structlog."""

    def __init__(self) -> None:
        self._log = logger.bind(component="outbox_service")

    def events_saved(self, count: int, event_types: Sequence[str]) -> None:
        if count > 0:
            self._log.debug(
                "outbox_events_saved", count=count, event_types=list(event_types)
            )

    def serialization_failed(self, event_type: str, error: str) -> None:
        self._log.error(
            "outbox_serialization_failed", event_type=event_type, error=error
        )

    def processed_records_cleaned(self, deleted: int, retention_days: float) -> None:
        self._log.info(
            "outbox_processed_records_cleaned",
            deleted=deleted,
            retention_days=retention_days,
        )

    def dead_letter_requeued(self, dead_letter_id: UUID, entry_id: UUID) -> None:
        self._log.info(
            "outbox_dead_letter_requeued",
            dead_letter_id=str(dead_letter_id),
            entry_id=str(entry_id),
        )

    def record_reset_for_retry(self, entry_id: UUID) -> None:
        self._log.info("outbox_record_reset_for_retry", entry_id=str(entry_id))

    def retry_rejected(self, entry_id: UUID) -> None:
        self._log.warning("outbox_retry_rejected", entry_id=str(entry_id))


class BrokerPublisherProbe(Protocol):
    """Protocol for broker publisher observability."""

    def producer_started(self, bootstrap_servers: str) -> None:
        """Called when the producer connected."""
        ...

    def producer_stopped(self) -> None:
        """Called when the producer disconnected."""
        ...

    def message_published(
        self, topic: str, key: str, partition: int, offset: int
    ) -> None:
        """Called when the broker acknowledged a message."""
        ...

    def publish_retrying(self, topic: str, key: str, attempt: int, error: str) -> None:
        """Called before a transient failure is retried."""
        ...

    def publish_failed(self, topic: str, key: str, error: str) -> None:
        """Called when a message was not acknowledged after all attempts."""
        ...


class DefaultBrokerPublisherProbe:
    """Default implementation using structlog."""

    def __init__(self) -> None:
        self._log = logger.bind(component="broker_publisher")

    def producer_started(self, bootstrap_servers: str) -> None:
        self._log.info("kafka_producer_started", bootstrap_servers=bootstrap_servers)

    def producer_stopped(self) -> None:
        self._log.info("kafka_producer_stopped")

    def message_published(
        self, topic: str, key: str, partition: int, offset: int
    ) -> None:
        self._log.debug(
            "kafka_message_published",
            topic=topic,
            key=key,
            partition=partition,
            offset=offset,
        )

    def publish_retrying(self, topic: str, key: str, attempt: int, error: str) -> None:
        self._log.warning(
            "kafka_publish_retrying",
            topic=topic,
            key=key,
            attempt=attempt,
            error=error,
        )

    def publish_failed(self, topic: str, key: str, error: str) -> None:
        self._log.error("kafka_publish_failed", topic=topic, key=key, error=error)


class EventSourceProbe(Protocol):
    """Protocol for event source observability.

    Implementations can log, emit metrics, or send traces for event source
    lifecycle and notification handling.
    """

    def event_source_started(self, channel: str) -> None:
        """Called when the event source starts listening."""
        ...

    def event_source_stopped(self) -> None:
        """Called when the event source stops."""
        ...

    def notification_received(self, entry_id: UUID) -> None:
        """Called when a valid notification is received."""
        ...

    def invalid_notification_ignored(self, payload: str, reason: str) -> None:
        """Called when an invalid notification is ignored."""
        ...

    def listener_error(self, error: str) -> None:
        """Called when an error occurs in the listener."""
        ...


class DefaultEventSourceProbe:
    """Default implementation using structlog.

    Logs all event source events with appropriate log levels.
    """

    def __init__(self) -> None:
        """Initialize the probe with a logger."""
        self._log = logger.bind(component="event_source")

    def event_source_started(self, channel: str) -> None:
        """Log event source start."""
        self._log.info("event_source_started", channel=channel)

    def event_source_stopped(self) -> None:
        """Log event source stop."""
        self._log.info("event_source_stopped")

    def notification_received(self, entry_id: UUID) -> None:
        """Log notification received."""
        self._log.debug("notification_received", entry_id=str(entry_id))

    def invalid_notification_ignored(self, payload: str, reason: str) -> None:
        """Log invalid notification ignored."""
        self._log.warning(
            "invalid_notification_ignored",
            payload=payload,
            reason=reason,
        )

    def listener_error(self, error: str) -> None:
        """Log listener error."""
        self._log.error("event_source_listener_error", error=error)
