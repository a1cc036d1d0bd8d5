"""Domain probe for IAM repository operations.

Following Domain-Oriented Observability patterns, this probe captures
domain-significant events related to user repository operations.
"""

from __future__ import annotations

from typing import Protocol

import structlog


class UserRepositoryProbe(Protocol):
    """Domain probe for user repository operations.

    Records domain events during user persistence operations.
    """

    def user_saved(self, user_id: str, created: bool) -> None:
        """Record that a user was added to or updated in the session."""
        ...

    def user_retrieved(self, user_id: str) -> None:
        """Record that a user was retrieved."""
        ...

    def user_not_found(self, lookup: str) -> None:
        """Record that a lookup found no user."""
        ...


class DefaultUserRepositoryProbe:
    """Default implementation of UserRepositoryProbe using structlog."""

    def __init__(self, logger: structlog.stdlib.BoundLogger | None = None):
        self._logger = logger or structlog.get_logger()

    def user_saved(self, user_id: str, created: bool) -> None:
        self._logger.debug("user_saved", user_id=user_id, created=created)

    def user_retrieved(self, user_id: str) -> None:
        self._logger.debug("user_retrieved", user_id=user_id)

    def user_not_found(self, lookup: str) -> None:
        self._logger.debug("user_not_found", lookup=lookup)
