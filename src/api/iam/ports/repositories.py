"""Repository protocols (ports) for IAM bounded context.

Repository protocols define the interface for persisting and retrieving
aggregates. Implementations share the unit of work's transaction, so a
saved aggregate and the events it raised commit together.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from iam.domain.aggregates import User
from iam.domain.value_objects import UserId


@runtime_checkable
class IUserRepository(Protocol):
    """Repository for User aggregate persistence."""

    async def save(self, user: User) -> None:
        """Add or update a user in the current unit of work.

        The user's pending events are collected when the unit of work
        commits.

        Raises:
            DuplicateEmailError: If another user already has the e-mail
        """
        ...

    async def get_by_id(self, user_id: UserId) -> User | None:
        """Retrieve a user by ID, or None if not found."""
        ...

    async def get_by_email(self, email: str) -> User | None:
        """Retrieve a user by e-mail address, or None if not found."""
        ...
