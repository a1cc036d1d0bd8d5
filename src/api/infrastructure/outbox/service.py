"""Write-side and maintenance API of the outbox.

OutboxService works inside a transaction owned by its caller and is what
the unit of work uses to record events atomically with business writes.
TransactionalOutboxWriter owns its own short transaction and backs the
critical-event fallback, which runs after the business commit.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import UTC, datetime, timedelta
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from infrastructure.outbox.repository import OutboxRepository
from shared_kernel.events.base import DomainEvent
from shared_kernel.outbox.exceptions import EventSerializationError
from shared_kernel.outbox.observability import (
    DefaultOutboxServiceProbe,
    OutboxServiceProbe,
)
from shared_kernel.outbox.ports import EventSerializer
from shared_kernel.outbox.value_objects import (
    DeadLetterEntry,
    OutboxPage,
    OutboxEntry,
    OutboxStatistics,
    RetryBackoff,
)


class OutboxService:
    """Records domain events in the outbox within the caller's transaction.

    Never commits and never publishes.
    """

    def __init__(
        self,
        session: AsyncSession,
        serializer: EventSerializer,
        probe: OutboxServiceProbe | None = None,
        retry_backoff: RetryBackoff | None = None,
    ) -> None:
        self._repository = OutboxRepository(session)
        self._serializer = serializer
        self._probe = probe or DefaultOutboxServiceProbe()
        self._retry_backoff = retry_backoff

    async def save_domain_events(self, events: Sequence[DomainEvent]) -> None:
        """Add one outbox record per event to the current transaction.

        Every event is serialized before any record is added, so a single
        bad event fails the whole batch and with it the caller's
        transaction.

        Raises:
            EventSerializationError: If any event cannot be serialized
        """
        serialized: list[tuple[DomainEvent, str]] = []
        for event in events:
            try:
                serialized.append((event, self._serializer.serialize(event)))
            except EventSerializationError as e:
                self._probe.serialization_failed(event.event_type, str(e))
                raise

        for event, event_data in serialized:
            await self._repository.append(
                event_id=event.event_id,
                event_type=event.event_type,
                event_data=event_data,
                occurred_at=event.occurred_at,
            )

        self._probe.events_saved(
            count=len(serialized),
            event_types=[event.event_type for event, _ in serialized],
        )

    async def get_statistics(self) -> OutboxStatistics:
        return await self._repository.get_statistics(backoff=self._retry_backoff)

    async def list_failed_for_retry(self, limit: int = 50) -> list[OutboxEntry]:
        """Failed pending records whose backoff has elapsed."""
        return await self._repository.list_failed_for_retry(
            limit, backoff=self._retry_backoff
        )

    async def retry_record(self, entry_id: UUID) -> bool:
        """Make a pending record due now, with a fresh retry budget.

        Returns:
            False if the record does not exist or was already processed
        """
        reset = await self._repository.reset_for_retry(entry_id)
        if reset:
            self._probe.record_reset_for_retry(entry_id)
        else:
            self._probe.retry_rejected(entry_id)
        return reset

    async def cleanup_processed(self, older_than: timedelta) -> int:
        """Delete processed records older than the retention window.

        Returns:
            Number of records deleted
        """
        cutoff = datetime.now(UTC) - older_than
        deleted = await self._repository.delete_processed_before(cutoff)
        self._probe.processed_records_cleaned(
            deleted=deleted,
            retention_days=older_than.total_seconds() / 86400,
        )
        return deleted

    async def list_by_event_type(
        self,
        event_type: str,
        page_index: int = 0,
        page_size: int = 50,
    ) -> OutboxPage:
        if page_index < 0 or page_size < 1:
            raise ValueError("page_index must be >= 0 and page_size >= 1")
        return await self._repository.list_by_event_type(
            event_type, page_index=page_index, page_size=page_size
        )

    async def list_dead_letters(self, limit: int = 100) -> list[DeadLetterEntry]:
        return await self._repository.list_dead_letters(limit)

    async def requeue_dead_letter(self, dead_letter_id: UUID) -> UUID | None:
        """Put a dead-lettered record back into the outbox.

        Returns:
            The new outbox record identifier, or None if not found
        """
        entry_id = await self._repository.requeue_dead_letter(dead_letter_id)
        if entry_id is not None:
            self._probe.dead_letter_requeued(dead_letter_id, entry_id)
        return entry_id


class TransactionalOutboxWriter:
    """Writes domain events to the outbox in a transaction of its own."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        serializer: EventSerializer,
        probe: OutboxServiceProbe | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._serializer = serializer
        self._probe = probe

    async def save_domain_events(self, events: Sequence[DomainEvent]) -> None:
        """Persist and commit the events, or none of them."""
        if not events:
            return

        async with self._session_factory() as session:
            async with session.begin():
                service = OutboxService(session, self._serializer, self._probe)
                await service.save_domain_events(events)
