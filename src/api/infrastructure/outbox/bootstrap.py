"""Assembly of the event delivery pipeline.

Bounded contexts contribute serializers, topic routers and critical event
handlers. This module combines them with the shared infrastructure into an
``OutboxRuntime`` that the application starts and stops as one piece.
Nothing here imports a bounded context; ``main`` passes their parts in.
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Iterable
from contextlib import asynccontextmanager
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from infrastructure.database.engines import build_listen_dsn
from infrastructure.database.unit_of_work import SqlAlchemyUnitOfWork
from infrastructure.events.dispatcher import HybridDomainEventDispatcher
from infrastructure.messaging.kafka import KafkaBrokerPublisher
from infrastructure.outbox.composite import CompositeSerializer, CompositeTopicRouter
from infrastructure.outbox.event_sources import PostgresNotifyEventSource
from infrastructure.outbox.service import OutboxService, TransactionalOutboxWriter
from infrastructure.outbox.worker import OutboxPublisher
from infrastructure.settings import DatabaseSettings, KafkaSettings, OutboxSettings
from shared_kernel.events.base import DomainEvent
from shared_kernel.events.handlers import DomainEventHandler, build_handler_registry
from shared_kernel.outbox.ports import EventSerializer, TopicRouter
from shared_kernel.outbox.value_objects import OutboxStatistics, RetryBackoff


def build_event_serializer(serializers: Iterable[EventSerializer]) -> CompositeSerializer:
    composite = CompositeSerializer()
    for serializer in serializers:
        composite.register(serializer)
    return composite


def build_topic_router(routers: Iterable[TopicRouter]) -> CompositeTopicRouter:
    composite = CompositeTopicRouter()
    for router in routers:
        composite.register(router)
    return composite


@dataclass
class OutboxRuntime:
    """Everything that moves domain events out of the process."""

    session_factory: async_sessionmaker[AsyncSession]
    serializer: CompositeSerializer
    topic_router: CompositeTopicRouter
    dispatcher: HybridDomainEventDispatcher
    publisher: OutboxPublisher
    broker: KafkaBrokerPublisher | None
    publisher_enabled: bool
    retry_backoff: RetryBackoff | None = None

    def unit_of_work(self) -> SqlAlchemyUnitOfWork:
        """Create a unit of work that commits through this pipeline."""
        return SqlAlchemyUnitOfWork(
            self.session_factory, self.dispatcher, self.serializer
        )

    @asynccontextmanager
    async def outbox(self) -> AsyncIterator[OutboxService]:
        """Yield an outbox service in a transaction committed on exit."""
        async with self.session_factory() as session:
            async with session.begin():
                yield OutboxService(
                    session, self.serializer, retry_backoff=self.retry_backoff
                )

    async def statistics(self) -> OutboxStatistics:
        async with self.outbox() as service:
            return await service.get_statistics()

    async def start(self) -> bool:
        """Start the background publisher if this process runs one."""
        if not self.publisher_enabled:
            return False
        return await self.publisher.start()

    async def stop(self) -> None:
        """Stop the publisher first so no send is cut off, then the producer."""
        await self.publisher.stop()
        if self.broker is not None:
            await self.broker.stop()


def build_outbox_runtime(
    session_factory: async_sessionmaker[AsyncSession],
    serializers: Iterable[EventSerializer],
    topic_routers: Iterable[TopicRouter],
    handlers: Iterable[tuple[type[DomainEvent], DomainEventHandler]],
    outbox_settings: OutboxSettings,
    kafka_settings: KafkaSettings,
    database_settings: DatabaseSettings | None = None,
) -> OutboxRuntime:
    """Wire serializer, router, dispatcher and publisher from settings.

    Args:
        session_factory: Factory for sessions on the application database
        serializers: One serializer per bounded context
        topic_routers: One topic router per bounded context
        handlers: (event type, handler) pairs for critical events
        outbox_settings: Publisher tuning
        kafka_settings: Producer settings; unconfigured leaves the
            publisher without a broker, so it disables itself on start
        database_settings: Needed only when NOTIFY wake-ups are enabled

    Returns:
        The assembled runtime, not yet started
    """
    serializer = build_event_serializer(serializers)
    topic_router = build_topic_router(topic_routers)

    dispatcher = HybridDomainEventDispatcher(
        handlers=build_handler_registry(handlers),
        outbox_writer=TransactionalOutboxWriter(session_factory, serializer),
    )

    broker = (
        KafkaBrokerPublisher(kafka_settings, serializer)
        if kafka_settings.is_configured
        else None
    )

    event_source = None
    if outbox_settings.notify_enabled and database_settings is not None:
        event_source = PostgresNotifyEventSource(dsn=build_listen_dsn(database_settings))

    publisher = OutboxPublisher(
        session_factory=session_factory,
        serializer=serializer,
        broker=broker,
        topic_router=topic_router,
        poll_interval_seconds=outbox_settings.poll_interval_seconds,
        batch_size=outbox_settings.batch_size,
        max_retries=outbox_settings.max_retries,
        dead_letter_policy=outbox_settings.dead_letter_policy,
        default_topic=outbox_settings.default_topic,
        event_source=event_source,
        retry_backoff=outbox_settings.retry_backoff,
    )

    return OutboxRuntime(
        session_factory=session_factory,
        serializer=serializer,
        topic_router=topic_router,
        dispatcher=dispatcher,
        publisher=publisher,
        broker=broker,
        publisher_enabled=outbox_settings.enabled,
        retry_backoff=outbox_settings.retry_backoff,
    )
