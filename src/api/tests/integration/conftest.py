"""Integration test fixtures backed by a real database.

The outbox and IAM tables are created in a throwaway SQLite file through
aiosqlite, so the repository SQL, the unit of work and the publisher run
against an actual database without external services.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

import iam.infrastructure.models  # noqa: F401
import infrastructure.outbox.models  # noqa: F401
from iam.application.event_handlers import iam_event_handlers
from iam.infrastructure.account_notifier import LoggingAccountNotifier
from iam.infrastructure.outbox import IAMEventSerializer, IAMTopicRouter
from infrastructure.database.models import Base
from infrastructure.outbox.bootstrap import OutboxRuntime, build_outbox_runtime
from infrastructure.outbox.worker import OutboxPublisher
from infrastructure.settings import KafkaSettings, OutboxSettings
from shared_kernel.events.base import DomainEvent


class RecordingBroker:
    """In-memory broker publisher that records or rejects messages."""

    def __init__(self) -> None:
        self.published: list[tuple[str, str, DomainEvent]] = []
        self.failure: Exception | None = None

    async def start(self) -> None:
        pass

    async def stop(self) -> None:
        pass

    async def publish(self, topic: str, key: str, event: DomainEvent) -> None:
        if self.failure is not None:
            raise self.failure
        self.published.append((topic, key, event))


@pytest_asyncio.fixture
async def session_factory(tmp_path) -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """Provide a session factory over a fresh database with all tables."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'courier.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, expire_on_commit=False)

    await engine.dispose()


@pytest.fixture
def handlers() -> list:
    """Critical handler registrations; tests override to inject failures."""
    return iam_event_handlers(LoggingAccountNotifier())


@pytest.fixture
def runtime(session_factory, handlers) -> OutboxRuntime:
    return build_outbox_runtime(
        session_factory=session_factory,
        serializers=[IAMEventSerializer()],
        topic_routers=[IAMTopicRouter()],
        handlers=handlers,
        outbox_settings=OutboxSettings(_env_file=None),
        kafka_settings=KafkaSettings(_env_file=None, bootstrap_servers=None),
    )


@pytest.fixture
def broker() -> RecordingBroker:
    return RecordingBroker()


@pytest.fixture
def publisher(runtime, broker) -> OutboxPublisher:
    """Publisher over the test database with the recording broker."""
    return OutboxPublisher(
        session_factory=runtime.session_factory,
        serializer=runtime.serializer,
        broker=broker,
        topic_router=runtime.topic_router,
        max_retries=5,
    )
