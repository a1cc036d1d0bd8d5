"""Event sources for the outbox publisher.

Event sources notify the publisher of new outbox records so it can poll
before its interval elapses.
"""

from infrastructure.outbox.event_sources.postgres_notify import (
    PostgresNotifyEventSource,
)

__all__ = ["PostgresNotifyEventSource"]
