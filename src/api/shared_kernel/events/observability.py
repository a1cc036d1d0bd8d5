"""Observability probes for domain event dispatch.

Following Domain Oriented Observability, the dispatcher reports what
happened to each batch of events through a probe rather than logging
directly.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol

import structlog

logger = structlog.get_logger()


class DispatcherProbe(Protocol):
    """Protocol for hybrid dispatcher observability."""

    def events_partitioned(self, critical: int, deferred: int, regular: int) -> None:
        """Called after a batch of events is classified."""
        ...

    def critical_event_handled(self, event_type: str, handler_count: int) -> None:
        """Called when every handler of a critical event succeeded."""
        ...

    def critical_event_unhandled(self, event_type: str) -> None:
        """Called when a critical event has no registered handler."""
        ...

    def critical_handler_failed(
        self, event_type: str, handler: str, error: str
    ) -> None:
        """Called for each handler that raised while handling a critical event."""
        ...

    def critical_batch_deferred_to_outbox(self, event_ids: Sequence[str]) -> None:
        """Called when a failed critical batch was written to the outbox."""
        ...

    def critical_fallback_failed(self, event_ids: Sequence[str], error: str) -> None:
        """Called when the outbox fallback itself failed."""
        ...

    def events_deferred_to_outbox(self, count: int) -> None:
        """Called when deferred and regular events were handed to the outbox."""
        ...


class DefaultDispatcherProbe:
    """Default implementation using structlog."""

    def __init__(self) -> None:
        self._log = logger.bind(component="event_dispatcher")

    def events_partitioned(self, critical: int, deferred: int, regular: int) -> None:
        self._log.debug(
            "domain_events_partitioned",
            critical=critical,
            deferred=deferred,
            regular=regular,
        )

    def critical_event_handled(self, event_type: str, handler_count: int) -> None:
        self._log.debug(
            "critical_event_handled",
            event_type=event_type,
            handler_count=handler_count,
        )

    def critical_event_unhandled(self, event_type: str) -> None:
        self._log.warning("critical_event_unhandled", event_type=event_type)

    def critical_handler_failed(
        self, event_type: str, handler: str, error: str
    ) -> None:
        self._log.warning(
            "critical_handler_failed",
            event_type=event_type,
            handler=handler,
            error=error,
        )

    def critical_batch_deferred_to_outbox(self, event_ids: Sequence[str]) -> None:
        self._log.warning(
            "critical_batch_deferred_to_outbox",
            event_ids=list(event_ids),
            count=len(event_ids),
        )

    def critical_fallback_failed(self, event_ids: Sequence[str], error: str) -> None:
        """Log events that could neither be handled nor persisted."""
        self._log.error(
            "critical_fallback_failed",
            event_ids=list(event_ids),
            error=error,
        )

    def events_deferred_to_outbox(self, count: int) -> None:
        if count > 0:
            self._log.debug("domain_events_deferred_to_outbox", count=count)
