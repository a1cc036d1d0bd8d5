"""Domain probes for infrastructure observability.

Domain probes provide a high-level instrumentation API oriented around
domain semantics, keeping infrastructure code clean and testable.
"""

from __future__ import annotations

from typing import Protocol

import structlog


class ConnectionProbe(Protocol):
    """Domain probe for database engine observability."""

    def engine_created(self, database: str, pool_size: int) -> None:
        """Record that an engine and its pool were created."""
        ...

    def pool_closed(self) -> None:
        """Record that the connection pool was closed."""
        ...


class DefaultConnectionProbe:
    """Default implementation of ConnectionProbe using structlog."""

    def __init__(self, logger: structlog.stdlib.BoundLogger | None = None):
        self._logger = logger or structlog.get_logger()

    def engine_created(self, database: str, pool_size: int) -> None:
        """Record that an engine and its pool were created."""
        self._logger.info(
            "database_engine_created",
            database=database,
            pool_size=pool_size,
        )

    def pool_closed(self) -> None:
        """Record that the connection pool was closed."""
        self._logger.info("connection_pool_closed")


class UnitOfWorkProbe(Protocol):
    """Domain probe for unit of work observability."""

    def committed(
        self, aggregate_count: int, outbox_count: int, critical_count: int
    ) -> None:
        """Record a successful commit and what it carried."""
        ...

    def rolled_back(self, reason: str | None) -> None:
        """Record a rollback."""
        ...


class DefaultUnitOfWorkProbe:
    """Default implementation of UnitOfWorkProbe using structlog."""

    def __init__(self, logger: structlog.stdlib.BoundLogger | None = None):
        self._logger = logger or structlog.get_logger()

    def committed(
        self, aggregate_count: int, outbox_count: int, critical_count: int
    ) -> None:
        self._logger.debug(
            "unit_of_work_committed",
            aggregate_count=aggregate_count,
            outbox_count=outbox_count,
            critical_count=critical_count,
        )

    def rolled_back(self, reason: str | None) -> None:
        self._logger.info("unit_of_work_rolled_back", reason=reason)
