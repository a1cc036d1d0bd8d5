"""User domain events for IAM context.

Domain events related to the user account lifecycle.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar

from iam.domain.value_objects import UserStatus
from shared_kernel.events.base import (
    CriticalDomainEvent,
    DeferredDomainEvent,
    DomainEvent,
)


@dataclass(frozen=True, kw_only=True)
class UserRegistered(CriticalDomainEvent):
    """Event raised when a new user account is created.

    Critical: the confirmation e-mail must be sent before registration
    returns.

    Attributes:
        user_id: The ULID of the user
        email: The address the account was registered with
        first_name: Given name
        last_name: Family name
    """

    priority: ClassVar[int] = 0

    user_id: str
    email: str
    first_name: str
    last_name: str


@dataclass(frozen=True, kw_only=True)
class UserEmailConfirmed(DomainEvent):
    """Event raised when a user confirms their e-mail address."""

    user_id: str
    email: str


@dataclass(frozen=True, kw_only=True)
class UserLoggedIn(DeferredDomainEvent):
    """Event raised on each successful login.

    Only analytics consume it, so it is delivered in the background.

    Attributes:
        user_id: The ULID of the user
        ip_address: Client address, if known
        user_agent: Client user agent, if known
    """

    user_id: str
    ip_address: str | None = None
    user_agent: str | None = None


@dataclass(frozen=True, kw_only=True)
class UserPasswordChanged(CriticalDomainEvent):
    """Event raised when a user's password changes.

    Critical: existing sessions must be revoked before the change is
    reported as done. Runs after registration handlers in the same batch.
    """

    priority: ClassVar[int] = 10

    user_id: str


@dataclass(frozen=True, kw_only=True)
class UserStatusChanged(DomainEvent):
    """Event raised when a user account changes status.

    Attributes:
        user_id: The ULID of the user
        old_status: Status before the change
        new_status: Status after the change
        reason: Optional free-text justification
    """

    user_id: str
    old_status: UserStatus
    new_status: UserStatus
    reason: str | None = None
