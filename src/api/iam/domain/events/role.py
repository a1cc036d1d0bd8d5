"""Role assignment domain events for IAM context."""

from __future__ import annotations

from dataclasses import dataclass

from shared_kernel.events.base import DomainEvent


@dataclass(frozen=True, kw_only=True)
class UserRoleAssigned(DomainEvent):
    """Event raised when a role is granted to a user.

    Attributes:
        user_id: The ULID of the user
        role_name: Name of the granted role
        assigned_by: ULID of the acting user, if any
    """

    user_id: str
    role_name: str
    assigned_by: str | None = None


@dataclass(frozen=True, kw_only=True)
class UserRoleRemoved(DomainEvent):
    """Event raised when a role is taken away from a user."""

    user_id: str
    role_name: str
