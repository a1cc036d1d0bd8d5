"""Outbox publisher for delivering recorded events to the message broker.

The publisher runs as a background task within the FastAPI application,
polling the outbox table and publishing pending records one at a time.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager, suppress
from dataclasses import dataclass, replace
from enum import StrEnum
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from infrastructure.outbox.composite import DEFAULT_UNKNOWN_TOPIC
from infrastructure.outbox.repository import OutboxRepository
from shared_kernel.outbox.exceptions import EventSerializationError
from shared_kernel.outbox.observability import (
    DefaultOutboxPublisherProbe,
    OutboxPublisherProbe,
)
from shared_kernel.outbox.ports import (
    BrokerPublisher,
    EventSerializer,
    OutboxEventSource,
    TopicRouter,
)
from shared_kernel.outbox.value_objects import (
    DeadLetterPolicy,
    DeadLetterReason,
    OutboxEntry,
    RetryBackoff,
)


class EntryOutcome(StrEnum):
    PUBLISHED = "published"
    FAILED = "failed"
    DEAD_LETTERED = "dead_lettered"
    VANISHED = "vanished"


@dataclass(frozen=True)
class BatchResult:
    """What a single poll tick did."""

    fetched: int = 0
    published: int = 0
    failed: int = 0
    dead_lettered: int = 0
    interrupted: bool = False


class OutboxPublisher:
    """Background worker that publishes outbox records to the broker.

    Polling on a fixed interval is the delivery mechanism. An optional
    event source (PostgreSQL NOTIFY) only wakes the poll loop early.

    Records are processed sequentially in occurrence order. Every record's
    bookkeeping is its own transaction, so stopping mid-batch leaves each
    record either fully updated or untouched.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession] | None,
        serializer: EventSerializer | None,
        broker: BrokerPublisher | None,
        topic_router: TopicRouter,
        probe: OutboxPublisherProbe | None = None,
        poll_interval_seconds: float = 30,
        batch_size: int = 100,
        max_retries: int = 5,
        dead_letter_policy: DeadLetterPolicy = DeadLetterPolicy.MOVE,
        default_topic: str = DEFAULT_UNKNOWN_TOPIC,
        event_source: OutboxEventSource | None = None,
        retry_backoff: RetryBackoff | None = None,
    ) -> None:
        """Initialize the publisher.

        Args:
            session_factory: Factory for creating database sessions
            serializer: Serializer able to read every stored event type
            broker: Client delivering messages to the broker
            topic_router: Maps event types to broker topics
            probe: Observability probe for logging/metrics
            poll_interval_seconds: Time between polls
            batch_size: Maximum records to process per poll
            max_retries: Failed attempts allowed before a record is
                dead-lettered; the failure that exceeds it removes the record
            dead_letter_policy: Keep undeliverable records or drop them
            default_topic: Topic for event types without a route
            event_source: Optional push notifications that wake the poll loop
            retry_backoff: Delay before a failed record is tried again; None
                retries it on every tick
        """
        self._session_factory = session_factory
        self._serializer = serializer
        self._broker = broker
        self._topic_router = topic_router
        self._probe = probe or DefaultOutboxPublisherProbe()
        self._poll_interval = poll_interval_seconds
        self._batch_size = batch_size
        self._max_retries = max_retries
        self._dead_letter_policy = dead_letter_policy
        self._default_topic = default_topic
        self._event_source = event_source
        self._retry_backoff = retry_backoff

        self._stopping = asyncio.Event()
        self._wakeup = asyncio.Event()
        self._tick_lock = asyncio.Lock()
        self._task: asyncio.Task | None = None
        self._event_source_task: asyncio.Task | None = None

    @property
    def missing_collaborators(self) -> list[str]:
        wiring = {
            "session_factory": self._session_factory,
            "serializer": self._serializer,
            "broker": self._broker,
        }
        return [name for name, value in wiring.items() if value is None]

    @property
    def is_enabled(self) -> bool:
        return not self.missing_collaborators

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> bool:
        """Start the poll loop.

        Without a broker, serializer or session factory the publisher
        disables itself for the lifetime of the process.

        Returns:
            True if the poll loop was started
        """
        if not self.is_enabled:
            self._probe.publisher_disabled(self.missing_collaborators)
            return False
        if self.is_running:
            return True

        self._stopping.clear()
        self._probe.publisher_started()
        self._task = asyncio.create_task(self._poll_loop(), name="outbox-publisher")

        if self._event_source is not None:
            self._event_source_task = asyncio.create_task(
                self._event_source.start(self._on_notification),
                name="outbox-event-source",
            )
        return True

    async def stop(self, timeout: float = 10.0) -> None:
        """Gracefully stop the publisher.

        Lets the record in flight finish, then waits up to ``timeout``
        seconds before cancelling the loop.
        """
        if self._task is None:
            return

        self._stopping.set()
        self._wakeup.set()

        if self._event_source is not None:
            await self._event_source.stop()
        if self._event_source_task is not None:
            self._event_source_task.cancel()
            with suppress(asyncio.CancelledError):
                await self._event_source_task
            self._event_source_task = None

        try:
            await asyncio.wait_for(self._task, timeout=timeout)
        except TimeoutError:
            # wait_for already cancelled the task
            pass
        except asyncio.CancelledError:
            if not self._task.cancelled():
                raise

        self._task = None
        self._probe.publisher_stopped()

    def wake(self) -> None:
        """Run the next poll without waiting for the interval."""
        self._wakeup.set()

    async def run_once(self) -> BatchResult:
        """Fetch and process one batch of pending records.

        Ticks never overlap: a second caller waits for the first to finish.
        """
        if not self.is_enabled:
            return BatchResult()

        async with self._tick_lock:
            async with self._session_factory() as session:
                entries = await OutboxRepository(session).fetch_unprocessed(
                    self._batch_size, backoff=self._retry_backoff
                )

            outcomes: list[EntryOutcome] = []
            interrupted = False
            for index, entry in enumerate(entries):
                if self._stopping.is_set():
                    interrupted = True
                    self._probe.batch_interrupted(remaining=len(entries) - index)
                    break
                outcomes.append(await self._process_entry(entry))

            result = BatchResult(
                fetched=len(entries),
                published=outcomes.count(EntryOutcome.PUBLISHED),
                failed=outcomes.count(EntryOutcome.FAILED),
                dead_lettered=outcomes.count(EntryOutcome.DEAD_LETTERED),
                interrupted=interrupted,
            )
            self._probe.batch_processed(
                fetched=result.fetched,
                published=result.published,
                failed=result.failed,
                dead_lettered=result.dead_lettered,
            )
            return result

    async def _poll_loop(self) -> None:
        self._probe.poll_loop_started(self._poll_interval)

        while not self._stopping.is_set():
            try:
                await self.run_once()
            except Exception as e:
                self._probe.poll_loop_error(str(e))

            await self._wait_for_next_tick()

    async def _wait_for_next_tick(self) -> None:
        try:
            await asyncio.wait_for(self._wakeup.wait(), timeout=self._poll_interval)
        except TimeoutError:
            pass
        self._wakeup.clear()

    async def _on_notification(self, entry_id: UUID) -> None:
        self._probe.wakeup_received(entry_id)
        self.wake()

    async def _process_entry(self, entry: OutboxEntry) -> EntryOutcome:
        topic = self._topic_router.topic_for(entry.event_type)
        if topic is None:
            topic = self._default_topic
            self._probe.unknown_topic(entry.event_type, topic)

        try:
            event = self._serializer.deserialize(entry.event_type, entry.event_data)
        except EventSerializationError as e:
            # Retrying cannot fix a payload that does not deserialize
            await self._dead_letter(
                replace(entry, error=str(e)), DeadLetterReason.UNDESERIALIZABLE
            )
            return EntryOutcome.DEAD_LETTERED

        try:
            await self._broker.publish(topic, str(entry.event_id), event)
        except Exception as e:
            return await self._handle_publish_failure(entry, str(e))

        async with self._repository() as repository:
            marked = await repository.mark_processed(entry.id)

        if marked:
            self._probe.event_published(entry.id, entry.event_type, topic)
        else:
            self._probe.event_already_processed(entry.id)
        return EntryOutcome.PUBLISHED

    async def _handle_publish_failure(
        self, entry: OutboxEntry, error: str
    ) -> EntryOutcome:
        """Record a failed attempt, dead-lettering once retries run out."""
        async with self._repository() as repository:
            retry_count = await repository.record_failure(entry.id, error)
            if retry_count is None:
                return EntryOutcome.VANISHED

            exhausted = retry_count > self._max_retries
            if exhausted:
                await self._remove_undeliverable(
                    repository,
                    replace(entry, retry_count=retry_count, error=error),
                    DeadLetterReason.RETRIES_EXHAUSTED,
                )

        if exhausted:
            self._probe.event_dead_lettered(
                entry.id,
                entry.event_type,
                DeadLetterReason.RETRIES_EXHAUSTED.value,
                error,
            )
            return EntryOutcome.DEAD_LETTERED

        self._probe.event_publish_failed(
            entry.id, entry.event_type, error, retry_count
        )
        return EntryOutcome.FAILED

    async def _dead_letter(self, entry: OutboxEntry, reason: DeadLetterReason) -> None:
        async with self._repository() as repository:
            await self._remove_undeliverable(repository, entry, reason)
        self._probe.event_dead_lettered(
            entry.id, entry.event_type, reason.value, entry.error or ""
        )

    async def _remove_undeliverable(
        self,
        repository: OutboxRepository,
        entry: OutboxEntry,
        reason: DeadLetterReason,
    ) -> None:
        match self._dead_letter_policy:
            case DeadLetterPolicy.MOVE:
                await repository.move_to_dead_letter(entry, reason)
            case DeadLetterPolicy.DELETE:
                await repository.delete(entry.id)

    @asynccontextmanager
    async def _repository(self) -> AsyncIterator[OutboxRepository]:
        """Yield a repository bound to a fresh transaction."""
        async with self._session_factory() as session:
            async with session.begin():
                yield OutboxRepository(session)
