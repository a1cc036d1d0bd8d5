"""Domain events for IAM bounded context.

Domain events capture facts about things that have happened in the domain.
They are immutable value objects that carry all the information needed
to describe the occurrence of an event.

These events are delivered to the message broker through the outbox.
"""

from iam.domain.events.role import UserRoleAssigned, UserRoleRemoved
from iam.domain.events.user import (
    UserEmailConfirmed,
    UserLoggedIn,
    UserPasswordChanged,
    UserRegistered,
    UserStatusChanged,
)

# Type alias for all domain events in the IAM context
IAMEvent = (
    UserRegistered
    | UserEmailConfirmed
    | UserLoggedIn
    | UserPasswordChanged
    | UserStatusChanged
    | UserRoleAssigned
    | UserRoleRemoved
)

__all__ = [
    "IAMEvent",
    # User events
    "UserRegistered",
    "UserEmailConfirmed",
    "UserLoggedIn",
    "UserPasswordChanged",
    "UserStatusChanged",
    # Role events
    "UserRoleAssigned",
    "UserRoleRemoved",
]
