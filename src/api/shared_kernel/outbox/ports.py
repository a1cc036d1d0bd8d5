"""Protocols (ports) for the outbox pattern.

These protocols define the interfaces for outbox operations. They enable
a plugin architecture where each bounded context registers its own event
serializer and topic routes without shared_kernel knowing about them.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Sequence
from datetime import datetime
from typing import TYPE_CHECKING, Protocol, runtime_checkable
from uuid import UUID

if TYPE_CHECKING:
    from shared_kernel.events.base import DomainEvent
    from shared_kernel.outbox.value_objects import (
        DeadLetterEntry,
        DeadLetterReason,
        OutboxEntry,
        OutboxPage,
        OutboxStatistics,
        RetryBackoff,
    )


@runtime_checkable
class IOutboxRepository(Protocol):
    """Repository for outbox record persistence.

    The repository shares the database session of its caller. It never
    commits; transaction boundaries belong to whoever owns the session.
    """

    async def append(
        self,
        event_id: UUID,
        event_type: str,
        event_data: str,
        occurred_at: datetime,
    ) -> UUID:
        """Add a serialized event to the current transaction.

        Returns:
            The identifier generated for the new record
        """
        ...

    async def fetch_unprocessed(
        self,
        limit: int = 100,
        backoff: "RetryBackoff | None" = None,
        now: datetime | None = None,
    ) -> list["OutboxEntry"]:
        """Fetch pending records that are due, oldest occurrence first."""
        ...

    async def mark_processed(self, entry_id: UUID) -> bool:
        """Set processed_at if it is not set yet.

        Returns:
            True if this call marked the record, False if it was already
            processed or does not exist
        """
        ...

    async def record_failure(self, entry_id: UUID, error: str) -> int | None:
        """Increment the retry count and store the error.

        Returns:
            The new retry count, or None if the record no longer exists
        """
        ...

    async def reset_for_retry(self, entry_id: UUID) -> bool:
        """Clear the failure state of a pending record so it is due at once."""
        ...

    async def list_failed_for_retry(
        self,
        limit: int = 50,
        backoff: "RetryBackoff | None" = None,
        now: datetime | None = None,
    ) -> list["OutboxEntry"]:
        """Return failed pending records whose backoff has elapsed."""
        ...

    async def move_to_dead_letter(
        self, entry: "OutboxEntry", reason: "DeadLetterReason"
    ) -> None:
        """Append the record to the dead-letter table and remove it."""
        ...

    async def delete(self, entry_id: UUID) -> None:
        """Remove a record."""
        ...

    async def delete_processed_before(self, cutoff: datetime) -> int:
        """Remove processed records older than the cutoff."""
        ...

    async def get_statistics(
        self,
        backoff: "RetryBackoff | None" = None,
        now: datetime | None = None,
    ) -> "OutboxStatistics":
        """Count records by state and by event type."""
        ...

    async def list_by_event_type(
        self, event_type: str, page_index: int, page_size: int
    ) -> "OutboxPage":
        """Return one page of records of the given event type."""
        ...

    async def list_dead_letters(self, limit: int = 100) -> list["DeadLetterEntry"]:
        """Return dead-lettered records, most recent first."""
        ...

    async def requeue_dead_letter(self, dead_letter_id: UUID) -> UUID | None:
        """Move a dead-lettered record back into the outbox as a new record."""
        ...


@runtime_checkable
class OutboxWriter(Protocol):
    """Persists domain events for asynchronous delivery."""

    async def save_domain_events(self, events: Sequence["DomainEvent"]) -> None:
        """Persist every event or none of them.

        Raises:
            EventSerializationError: If any event cannot be serialized
        """
        ...


@runtime_checkable
class EventSerializer(Protocol):
    """Serializes and deserializes domain events.

    Each bounded context provides its own implementation that knows its
    event types. This keeps shared_kernel agnostic of specific domain
    event structures.
    """

    def supported_event_types(self) -> frozenset[str]:
        """Return the event type names this serializer handles.

        Returns:
            Frozenset of event type names (e.g., {"UserRegistered"})
        """
        ...

    def supports(self, event_type: str) -> bool:
        """Check whether an event type name is registered."""
        ...

    def serialize(self, event: "DomainEvent") -> str:
        """Convert a domain event to its durable string form.

        Raises:
            UnknownEventTypeError: If the event type is not registered
            EventSerializationError: If a field cannot be encoded
        """
        ...

    def deserialize(self, event_type: str, data: str) -> "DomainEvent":
        """Reconstruct a domain event from its durable string form.

        Raises:
            UnknownEventTypeError: If the event type is not registered
            EventDeserializationError: If the data does not fit the type
        """
        ...


@runtime_checkable
class TopicRouter(Protocol):
    """Maps event type names to broker topics."""

    def topic_for(self, event_type: str) -> str | None:
        """Return the topic for an event type, or None if not routed."""
        ...


@runtime_checkable
class BrokerPublisher(Protocol):
    """Delivers one message to one topic with acknowledgment.

    Implementations know nothing about the outbox. Failures propagate as
    exceptions for the caller to turn into retry bookkeeping.
    """

    async def start(self) -> None:
        """Connect to the broker."""
        ...

    async def stop(self) -> None:
        """Flush pending messages and disconnect."""
        ...

    async def publish(self, topic: str, key: str, event: "DomainEvent") -> None:
        """Publish one event and wait for the broker acknowledgment.

        Raises:
            BrokerPublishError: If the message was not acknowledged
        """
        ...


@runtime_checkable
class OutboxEventSource(Protocol):
    """Event source for outbox records.

    Implementations provide a mechanism for being notified of new outbox
    records (PostgreSQL NOTIFY, message queue, etc.). Notifications only
    shorten the wait between polls; they never replace polling.
    """

    async def start(self, on_event: Callable[[UUID], Awaitable[None]]) -> None:
        """Start the event source and begin monitoring for events.

        The event source should invoke the callback when new outbox records
        are created, passing the record UUID.

        Args:
            on_event: Async callback to invoke when an event occurs
        """
        ...

    async def stop(self) -> None:
        """Stop the event source and release held resources."""
        ...
