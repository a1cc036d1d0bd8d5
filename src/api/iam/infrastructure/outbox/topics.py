"""Broker topics for IAM domain events.

Topic names follow the auth.<aggregate>.<happening> convention. The table
is fixed at import time; adding an event type means adding its route here.
"""

from __future__ import annotations

from types import MappingProxyType

from iam.domain.events import (
    UserEmailConfirmed,
    UserLoggedIn,
    UserPasswordChanged,
    UserRegistered,
    UserRoleAssigned,
    UserRoleRemoved,
    UserStatusChanged,
)
from infrastructure.outbox.composite import StaticTopicRouter

IAM_TOPICS = MappingProxyType(
    {
        UserRegistered.__name__: "auth.user.registered",
        UserEmailConfirmed.__name__: "auth.user.email-confirmed",
        UserLoggedIn.__name__: "auth.user.logged-in",
        UserPasswordChanged.__name__: "auth.user.password-changed",
        UserStatusChanged.__name__: "auth.user.status-changed",
        UserRoleAssigned.__name__: "auth.user.role-assigned",
        UserRoleRemoved.__name__: "auth.user.role-removed",
    }
)


class IAMTopicRouter(StaticTopicRouter):
    """Routes IAM event types to their topics."""

    def __init__(self) -> None:
        super().__init__(IAM_TOPICS)
