"""Unit of work that commits aggregates and their events together.

Deferred and regular events are written to the outbox inside the business
transaction, so a committed business change always has its outbox records.
Critical events are handled in-process only after the commit succeeds.
"""

from __future__ import annotations

from types import TracebackType
from typing import Self

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from infrastructure.database.exceptions import UnitOfWorkError
from infrastructure.events.dispatcher import HybridDomainEventDispatcher
from infrastructure.observability import DefaultUnitOfWorkProbe, UnitOfWorkProbe
from infrastructure.outbox.service import OutboxService
from shared_kernel.events.base import DomainEvent, HasDomainEvents
from shared_kernel.outbox.ports import EventSerializer


class SqlAlchemyUnitOfWork:
    """One database transaction plus the events raised during it.

    Usage:
        async with uow_factory() as uow:
            user = User.register(...)
            await UserRepository(uow).save(user)
            await uow.commit()

    Leaving the block without commit() rolls back.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        dispatcher: HybridDomainEventDispatcher,
        serializer: EventSerializer,
        probe: UnitOfWorkProbe | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._dispatcher = dispatcher
        self._serializer = serializer
        self._probe = probe or DefaultUnitOfWorkProbe()
        self._session: AsyncSession | None = None
        self._aggregates: list[HasDomainEvents] = []

    async def __aenter__(self) -> Self:
        if self._session is not None:
            raise UnitOfWorkError("Unit of work is already active")
        self._session = self._session_factory()
        self._aggregates = []
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        session, self._session = self._session, None
        try:
            if session is not None and session.in_transaction():
                await session.rollback()
                self._probe.rolled_back(str(exc) if exc else None)
        finally:
            self._aggregates = []
            if session is not None:
                await session.close()

    @property
    def session(self) -> AsyncSession:
        if self._session is None:
            raise UnitOfWorkError("Unit of work is not active")
        return self._session

    def track(self, aggregate: HasDomainEvents) -> None:
        """Collect the aggregate's events when the unit of work commits."""
        if not any(tracked is aggregate for tracked in self._aggregates):
            self._aggregates.append(aggregate)

    async def commit(self) -> None:
        """Commit business changes and outbox records, then run critical handlers.

        Raises:
            EventSerializationError: If an event cannot be serialized; nothing
                is committed in that case
        """
        session = self.session
        aggregate_count = len(self._aggregates)
        events: list[DomainEvent] = []
        for aggregate in self._aggregates:
            events.extend(aggregate.collect_events())
        self._aggregates = []

        partition = self._dispatcher.partition(events)
        if partition.outbox_bound:
            outbox = OutboxService(session, self._serializer)
            await outbox.save_domain_events(partition.outbox_bound)

        await session.commit()
        self._probe.committed(
            aggregate_count=aggregate_count,
            outbox_count=len(partition.outbox_bound),
            critical_count=len(partition.critical),
        )

        await self._dispatcher.dispatch_critical(partition.critical)

    async def rollback(self) -> None:
        await self.session.rollback()
        self._aggregates = []
        self._probe.rolled_back(None)
