"""In-process handlers for critical IAM events.

These run right after the unit of work commits. A handler that raises does
not fail the request: the dispatcher records the event in the outbox and
the broker consumers pick up the work instead.
"""

from __future__ import annotations

from iam.domain.events import UserPasswordChanged, UserRegistered
from iam.ports.notifications import IAccountNotifier
from shared_kernel.events.base import DomainEvent
from shared_kernel.events.handlers import DomainEventHandler


class SendVerificationEmailHandler:
    """Sends the confirmation e-mail for a new account."""

    def __init__(self, notifier: IAccountNotifier):
        self._notifier = notifier

    async def handle(self, event: UserRegistered) -> None:
        await self._notifier.send_verification_email(event.user_id, event.email)


class PasswordChangedNoticeHandler:
    """Notifies the account owner that their password changed."""

    def __init__(self, notifier: IAccountNotifier):
        self._notifier = notifier

    async def handle(self, event: UserPasswordChanged) -> None:
        await self._notifier.send_password_changed_notice(event.user_id)


def iam_event_handlers(
    notifier: IAccountNotifier,
) -> list[tuple[type[DomainEvent], DomainEventHandler]]:
    """Return the IAM (event type, handler) registrations."""
    return [
        (UserRegistered, SendVerificationEmailHandler(notifier)),
        (UserPasswordChanged, PasswordChangedNoticeHandler(notifier)),
    ]
