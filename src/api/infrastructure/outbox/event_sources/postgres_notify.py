"""PostgreSQL NOTIFY wake-up source for the outbox publisher.

A trigger on outbox_messages sends the new record id on a NOTIFY channel.
This source listens on that channel with asyncpg-listen, which handles
reconnection, and tells the publisher to poll early. Polling stays the
delivery guarantee: a missed or malformed notification only costs latency.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from contextlib import suppress
from uuid import UUID

from asyncpg_listen import (
    ListenPolicy,
    NotificationListener,
    NotificationOrTimeout,
    Timeout,
    connect_func,
)

from shared_kernel.outbox.observability import (
    DefaultEventSourceProbe,
    EventSourceProbe,
)

# Fixed by the create_outbox_notify_trigger migration
DEFAULT_CHANNEL = "outbox_events"


class PostgresNotifyEventSource:
    """Implements the OutboxEventSource protocol over LISTEN/NOTIFY."""

    def __init__(
        self,
        dsn: str,
        channel: str = DEFAULT_CHANNEL,
        probe: EventSourceProbe | None = None,
    ) -> None:
        """Initialize the NOTIFY event source.

        Args:
            dsn: libpq-style PostgreSQL DSN (postgresql://...)
            channel: NOTIFY channel name
            probe: Optional observability probe
        """
        self._dsn = dsn
        self._channel = channel
        self._probe = probe or DefaultEventSourceProbe()
        self._listener_task: asyncio.Task[None] | None = None

    @property
    def channel(self) -> str:
        return self._channel

    def parse_payload(self, payload: str | None) -> UUID | None:
        """Extract the record id from a notification payload."""
        if not payload:
            return None
        try:
            return UUID(payload)
        except ValueError:
            self._probe.invalid_notification_ignored(payload, "Invalid UUID format")
            return None

    async def start(self, on_event: Callable[[UUID], Awaitable[None]]) -> None:
        """Listen until stop() is called.

        Listener failures are reported and end the source; the publisher
        keeps polling.
        """

        async def handle_notification(notification: NotificationOrTimeout) -> None:
            if isinstance(notification, Timeout):
                return
            entry_id = self.parse_payload(notification.payload)
            if entry_id is None:
                return
            self._probe.notification_received(entry_id)
            await on_event(entry_id)

        listener = NotificationListener(connect_func(self._dsn))
        self._listener_task = asyncio.create_task(
            listener.run(
                {self._channel: handle_notification},
                policy=ListenPolicy.LAST,
            )
        )
        self._probe.event_source_started(self._channel)

        try:
            await self._listener_task
        except asyncio.CancelledError:
            if self._listener_task is not None and not self._listener_task.cancelled():
                raise
        except Exception as e:
            self._probe.listener_error(str(e))

    async def stop(self) -> None:
        """Stop listening and close the connection."""
        if self._listener_task is not None and not self._listener_task.done():
            self._listener_task.cancel()
            with suppress(asyncio.CancelledError):
                await self._listener_task
        self._listener_task = None
        self._probe.event_source_stopped()
