"""Notification port for IAM bounded context."""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class IAccountNotifier(Protocol):
    """Sends account e-mails to users.

    Implementations raise on delivery failure; the event dispatcher then
    hands the triggering event to the outbox.
    """

    async def send_verification_email(self, user_id: str, email: str) -> None:
        """Ask a newly registered user to confirm their address."""
        ...

    async def send_password_changed_notice(self, user_id: str) -> None:
        """Tell a user their password was changed."""
        ...
