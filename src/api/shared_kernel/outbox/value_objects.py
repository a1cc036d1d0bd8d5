"""Value objects for the outbox pattern.

Value objects are immutable descriptors that provide type safety and
domain semantics for outbox records.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import StrEnum
from uuid import UUID


class DeadLetterPolicy(StrEnum):
    """What happens to a record that can no longer be delivered."""

    MOVE = "move"
    """Append the record to the dead-letter table, then remove it."""

    DELETE = "delete"
    """Remove the record without keeping a copy."""


class DeadLetterReason(StrEnum):
    RETRIES_EXHAUSTED = "retries_exhausted"
    UNDESERIALIZABLE = "undeserializable"


@dataclass(frozen=True)
class RetryBackoff:
    """Exponential delay between delivery attempts of a failed record.

    After the n-th failure a record waits base * 2**n, capped at
    max_delay, counted from its last update.
    """

    base: timedelta = timedelta(minutes=1)
    max_delay: timedelta = timedelta(minutes=30)

    def __post_init__(self) -> None:
        if self.base <= timedelta(0):
            raise ValueError("Retry backoff base must be positive")
        if self.max_delay < self.base:
            raise ValueError("Retry backoff max_delay must not be below base")

    def delay_for(self, retry_count: int) -> timedelta:
        if retry_count <= 0:
            return timedelta(0)
        if retry_count >= self.capped_from:
            return self.max_delay
        return self.base * 2**retry_count

    @property
    def capped_from(self) -> int:
        """Smallest retry count whose delay is max_delay."""
        retry_count = 1
        while self.base * 2**retry_count < self.max_delay:
            retry_count += 1
        return retry_count


@dataclass(frozen=True)
class OutboxEntry:
    """Represents a single record in the outbox table.

    This is an immutable value object that captures the state of an outbox
    record as it exists in the database. It contains all the information
    needed to deliver the event to the broker.

    Attributes:
        id: Unique identifier for the record (UUID)
        event_id: Identifier of the originating domain event
        event_type: Name of the domain event type (e.g., "UserRegistered")
        event_data: Serialized event payload
        occurred_at: When the domain event occurred
        processed_at: When delivery was confirmed (None while pending)
        created_at: When the record was written
        retry_count: Number of failed delivery attempts
        error: The most recent error message (if any)
        updated_at: When the record last changed, the start of its backoff
    """

    id: UUID
    event_id: UUID
    event_type: str
    event_data: str
    occurred_at: datetime
    processed_at: datetime | None
    created_at: datetime
    retry_count: int = 0
    error: str | None = None
    updated_at: datetime | None = None

    @property
    def is_processed(self) -> bool:
        """Check if this record has been delivered.

        Returns:
            True if processed_at is set, False otherwise
        """
        return self.processed_at is not None

    @property
    def is_failed(self) -> bool:
        """Check if at least one delivery attempt has failed.

        Returns:
            True if the record is pending with a non-zero retry count
        """
        return not self.is_processed and self.retry_count > 0

    def should_retry(self, max_retries: int) -> bool:
        """Check if the record is still within its retry budget."""
        return not self.is_processed and self.retry_count <= max_retries

    def next_attempt_at(self, backoff: RetryBackoff) -> datetime:
        """When the publisher may try this record again."""
        since = self.updated_at or self.created_at
        return since + backoff.delay_for(self.retry_count)

    def is_due(self, backoff: RetryBackoff, now: datetime) -> bool:
        return not self.is_processed and now >= self.next_attempt_at(backoff)


@dataclass(frozen=True)
class DeadLetterEntry:
    """A record that was removed from the outbox without being delivered.

    Attributes:
        id: Unique identifier of the dead-letter record
        outbox_id: Identifier the record had in the outbox
        event_id: Identifier of the originating domain event
        event_type: Name of the domain event type
        event_data: Serialized event payload, kept verbatim
        occurred_at: When the domain event occurred
        error: The last error seen before dead-lettering
        retry_count: Failed attempts at the time of dead-lettering
        reason: Why the record was dead-lettered
        dead_lettered_at: When the record was moved
    """

    id: UUID
    outbox_id: UUID
    event_id: UUID
    event_type: str
    event_data: str
    occurred_at: datetime
    error: str | None
    retry_count: int
    reason: DeadLetterReason
    dead_lettered_at: datetime


@dataclass(frozen=True)
class OutboxStatistics:
    """Point-in-time counts over the outbox and dead-letter tables."""

    pending: int
    processed: int
    failed: int
    dead_lettered: int
    oldest_pending_at: datetime | None = None
    retryable: int = 0
    """Failed records whose backoff has elapsed."""

    by_event_type: Mapping[str, int] = field(default_factory=dict)
    """Outbox records per event type, processed or not."""

    @property
    def total(self) -> int:
        return self.pending + self.processed


@dataclass(frozen=True)
class OutboxPage:
    """One page of outbox records for a single event type."""

    items: tuple[OutboxEntry, ...]
    page_index: int
    page_size: int
    total: int

    @property
    def has_next(self) -> bool:
        return (self.page_index + 1) * self.page_size < self.total
