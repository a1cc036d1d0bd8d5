"""Hybrid domain event dispatcher.

Critical events are handled in-process right after the commit that raised
them; everything else goes through the outbox. A failing critical handler
never reaches the caller: the whole critical batch is written to the
outbox instead, turning the failure into eventual delivery.
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

from shared_kernel.events.base import DeliveryMode, DomainEvent
from shared_kernel.events.handlers import HandlerRegistry
from shared_kernel.events.observability import DefaultDispatcherProbe, DispatcherProbe
from shared_kernel.outbox.ports import OutboxWriter


@dataclass(frozen=True)
class EventPartition:
    """Events of one unit of work, grouped by delivery mode."""

    critical: tuple[DomainEvent, ...] = ()
    deferred: tuple[DomainEvent, ...] = ()
    regular: tuple[DomainEvent, ...] = ()

    @property
    def outbox_bound(self) -> tuple[DomainEvent, ...]:
        """Events that are only ever delivered through the outbox."""
        return self.deferred + self.regular


@dataclass(frozen=True)
class DispatchResult:
    critical_handled: bool
    critical_count: int = 0
    deferred_count: int = 0
    fallback_event_ids: tuple[str, ...] = field(default_factory=tuple)


class HybridDomainEventDispatcher:
    """Routes committed domain events to handlers or the outbox."""

    def __init__(
        self,
        handlers: HandlerRegistry,
        outbox_writer: OutboxWriter,
        probe: DispatcherProbe | None = None,
    ) -> None:
        self._handlers = handlers
        self._outbox_writer = outbox_writer
        self._probe = probe or DefaultDispatcherProbe()

    def partition(self, events: Iterable[DomainEvent]) -> EventPartition:
        buckets: dict[DeliveryMode, list[DomainEvent]] = {
            mode: [] for mode in DeliveryMode
        }
        for event in events:
            buckets[event.delivery].append(event)

        partition = EventPartition(
            critical=tuple(buckets[DeliveryMode.CRITICAL]),
            deferred=tuple(buckets[DeliveryMode.DEFERRED]),
            regular=tuple(buckets[DeliveryMode.REGULAR]),
        )
        self._probe.events_partitioned(
            critical=len(partition.critical),
            deferred=len(partition.deferred),
            regular=len(partition.regular),
        )
        return partition

    async def dispatch(self, events: Sequence[DomainEvent]) -> DispatchResult:
        """Dispatch all events of a unit of work that already committed.

        Critical events run first. Deferred and regular events are then
        written to the outbox in a transaction of their own, which leaves
        a window where a crash loses them; callers that own the business
        transaction should write them through the unit of work instead.
        """
        partition = self.partition(events)
        result = await self._run_critical(partition.critical)

        outbox_bound = partition.outbox_bound
        if outbox_bound:
            await self._outbox_writer.save_domain_events(outbox_bound)
            self._probe.events_deferred_to_outbox(len(outbox_bound))

        return DispatchResult(
            critical_handled=result.critical_handled,
            critical_count=result.critical_count,
            deferred_count=len(outbox_bound),
            fallback_event_ids=result.fallback_event_ids,
        )

    async def dispatch_critical(self, events: Sequence[DomainEvent]) -> bool:
        """Handle critical events in-process, falling back to the outbox.

        Returns:
            True if every handler of every event succeeded, False if the
            batch went to the outbox instead. A failed outbox write is
            logged and also returns False; the business transaction has
            already committed and must not fail the caller
        """
        result = await self._run_critical(events)
        return result.critical_handled

    async def _run_critical(self, events: Sequence[DomainEvent]) -> DispatchResult:
        if not events:
            return DispatchResult(critical_handled=True)

        # sorted() is stable, so equal priorities keep the order they were raised
        ordered = sorted(events, key=lambda e: e.priority)

        for event in ordered:
            if not await self._handle_one(event):
                event_ids = await self._fall_back_to_outbox(ordered)
                return DispatchResult(
                    critical_handled=False,
                    critical_count=len(ordered),
                    fallback_event_ids=event_ids,
                )

        return DispatchResult(critical_handled=True, critical_count=len(ordered))

    async def _handle_one(self, event: DomainEvent) -> bool:
        """Run every handler of one event concurrently.

        An event without a registered handler counts as a failure, so the
        batch goes to the outbox instead of being logged and skipped.

        Returns:
            True if all handlers succeeded

        Raises:
            BaseException: Cancellation and interpreter exits from a handler
                are re-raised, not counted as failures
        """
        handlers = self._handlers.handlers_for(event)
        if not handlers:
            self._probe.critical_event_unhandled(event.event_type)
            return False

        results = await asyncio.gather(
            *(handler.handle(event) for handler in handlers),
            return_exceptions=True,
        )

        succeeded = True
        for handler, outcome in zip(handlers, results):
            if isinstance(outcome, BaseException) and not isinstance(
                outcome, Exception
            ):
                raise outcome
            if isinstance(outcome, Exception):
                succeeded = False
                self._probe.critical_handler_failed(
                    event.event_type, type(handler).__name__, str(outcome)
                )

        if succeeded:
            self._probe.critical_event_handled(event.event_type, len(handlers))
        return succeeded

    async def _fall_back_to_outbox(
        self, events: Sequence[DomainEvent]
    ) -> tuple[str, ...]:
        event_ids = tuple(str(event.event_id) for event in events)
        try:
            await self._outbox_writer.save_domain_events(events)
        except Exception as e:
            self._probe.critical_fallback_failed(event_ids, str(e))
            return ()
        self._probe.critical_batch_deferred_to_outbox(event_ids)
        return event_ids
