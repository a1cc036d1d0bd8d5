"""Kafka implementation of the broker publisher.

Delivers one domain event per call with acknowledgment from all in-sync
replicas. The producer is idempotent, so its internal retries never
duplicate a message; transient failures that surface anyway are retried
here with exponential backoff before being reported to the caller.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from datetime import UTC, datetime

from aiokafka import AIOKafkaProducer
from aiokafka.errors import KafkaError
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from infrastructure.settings import KafkaSettings
from shared_kernel.events.base import DomainEvent
from shared_kernel.outbox.exceptions import BrokerPublishError
from shared_kernel.outbox.observability import (
    BrokerPublisherProbe,
    DefaultBrokerPublisherProbe,
)
from shared_kernel.outbox.ports import EventSerializer

HEADER_EVENT_TYPE = "event-type"
HEADER_PUBLISHED_AT = "published-at"
HEADER_SOURCE = "source"


def is_transient_kafka_error(exc: BaseException) -> bool:
    """Check whether a send failure is worth retrying."""
    if isinstance(exc, KafkaError):
        return exc.retriable
    return isinstance(exc, asyncio.TimeoutError)


class KafkaBrokerPublisher:
    """Publishes domain events to Kafka with aiokafka.

    The producer starts lazily on the first publish, so a broker that is
    down at boot shows up as an ordinary publish failure.
    """

    def __init__(
        self,
        settings: KafkaSettings,
        serializer: EventSerializer,
        probe: BrokerPublisherProbe | None = None,
        producer_factory: Callable[..., AIOKafkaProducer] = AIOKafkaProducer,
        backoff_multiplier: float = 1.0,
    ) -> None:
        if not settings.bootstrap_servers:
            raise ValueError("Kafka bootstrap servers are not configured")

        self._settings = settings
        self._serializer = serializer
        self._probe = probe or DefaultBrokerPublisherProbe()
        self._producer_factory = producer_factory
        self._backoff_multiplier = backoff_multiplier
        self._producer: AIOKafkaProducer | None = None
        self._start_lock = asyncio.Lock()

    @property
    def is_started(self) -> bool:
        return self._producer is not None

    async def start(self) -> None:
        """Create and connect the producer if it is not running."""
        async with self._start_lock:
            if self._producer is not None:
                return

            compression = self._settings.compression_type
            producer = self._producer_factory(
                bootstrap_servers=self._settings.bootstrap_servers,
                client_id=self._settings.client_id,
                acks="all",
                enable_idempotence=True,
                compression_type=None if compression == "none" else compression,
                request_timeout_ms=self._settings.request_timeout_ms,
                retry_backoff_ms=self._settings.retry_backoff_ms,
                linger_ms=self._settings.linger_ms,
            )
            try:
                await producer.start()
            except Exception:
                await producer.stop()
                raise
            self._producer = producer
            self._probe.producer_started(self._settings.bootstrap_servers)

    async def stop(self) -> None:
        """Flush pending messages and disconnect."""
        if self._producer is None:
            return
        producer, self._producer = self._producer, None
        await producer.stop()
        self._probe.producer_stopped()

    def build_headers(self, event: DomainEvent) -> list[tuple[str, bytes]]:
        return [
            (HEADER_EVENT_TYPE, event.event_type.encode("utf-8")),
            (HEADER_PUBLISHED_AT, datetime.now(UTC).isoformat().encode("utf-8")),
            (HEADER_SOURCE, self._settings.source.encode("utf-8")),
        ]

    async def publish(self, topic: str, key: str, event: DomainEvent) -> None:
        """Publish one event and wait for acknowledgment.

        Raises:
            BrokerPublishError: If the broker did not acknowledge the message
                within the configured attempts
        """
        value = self._serializer.serialize(event).encode("utf-8")
        headers = self.build_headers(event)

        def before_sleep(retry_state: RetryCallState) -> None:
            self._probe.publish_retrying(
                topic,
                key,
                retry_state.attempt_number,
                str(retry_state.outcome.exception()),
            )

        retrying = AsyncRetrying(
            stop=stop_after_attempt(self._settings.max_send_attempts),
            wait=wait_exponential(
                multiplier=self._backoff_multiplier,
                max=self._settings.send_backoff_max_seconds,
            ),
            retry=retry_if_exception(is_transient_kafka_error),
            before_sleep=before_sleep,
            reraise=True,
        )

        try:
            async for attempt in retrying:
                with attempt:
                    if self._producer is None:
                        await self.start()
                    metadata = await self._producer.send_and_wait(
                        topic,
                        value=value,
                        key=key.encode("utf-8"),
                        headers=headers,
                    )
        except Exception as e:
            self._probe.publish_failed(topic, key, str(e))
            raise BrokerPublishError(topic, key, str(e)) from e

        self._probe.message_published(topic, key, metadata.partition, metadata.offset)
