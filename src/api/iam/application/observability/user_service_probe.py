"""Protocol for user application service observability.

Defines the interface for domain probes that capture application-level
domain events for user service operations.
"""

from __future__ import annotations

from typing import Protocol

import structlog


class UserServiceProbe(Protocol):
    """Domain probe for user application service operations."""

    def user_registered(self, user_id: str, email: str) -> None:
        """Record that a new user account was committed."""
        ...

    def registration_rejected(self, email: str, reason: str) -> None:
        """Record that a registration was refused."""
        ...

    def user_updated(self, user_id: str, operation: str) -> None:
        """Record that a state change on a user was committed."""
        ...

    def user_not_found(self, user_id: str, operation: str) -> None:
        """Record that an operation targeted an unknown user."""
        ...


class DefaultUserServiceProbe:
    """Default implementation of UserServiceProbe using structlog."""

    def __init__(self, logger: structlog.stdlib.BoundLogger | None = None):
        self._logger = logger or structlog.get_logger()

    def user_registered(self, user_id: str, email: str) -> None:
        """Record that a new user account was committed."""
        self._logger.info("user_registered", user_id=user_id, email=email)

    def registration_rejected(self, email: str, reason: str) -> None:
        """Record that a registration was refused."""
        self._logger.warning("user_registration_rejected", email=email, reason=reason)

    def user_updated(self, user_id: str, operation: str) -> None:
        self._logger.info("user_updated", user_id=user_id, operation=operation)

    def user_not_found(self, user_id: str, operation: str) -> None:
        self._logger.warning(
            "user_not_found_for_operation", user_id=user_id, operation=operation
        )
