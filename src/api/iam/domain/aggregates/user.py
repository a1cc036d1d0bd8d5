"""User aggregate for IAM context."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime

from iam.domain.events import (
    IAMEvent,
    UserEmailConfirmed,
    UserLoggedIn,
    UserPasswordChanged,
    UserRegistered,
    UserRoleAssigned,
    UserRoleRemoved,
    UserStatusChanged,
)
from iam.domain.value_objects import UserId, UserStatus


@dataclass
class User:
    """User aggregate representing an account holder.

    Business rules:
    - The e-mail address must look like one
    - Only active users can log in
    - A role is held at most once

    Event collection:
    - Every state-changing operation records a domain event
    - Operations that change nothing record nothing
    - Events are drained with collect_events() when the unit of work commits
    """

    id: UserId
    email: str
    first_name: str
    last_name: str
    status: UserStatus = UserStatus.ACTIVE
    email_confirmed: bool = False
    password_hash: str | None = None
    last_login_at: datetime | None = None
    roles: set[str] = field(default_factory=set)
    _pending_events: list[IAMEvent] = field(default_factory=list, repr=False)

    @classmethod
    def register(
        cls,
        email: str,
        first_name: str,
        last_name: str,
        password_hash: str | None = None,
    ) -> User:
        """Factory method for creating a new user.

        Raises:
            ValueError: If the e-mail address is malformed
        """
        email = email.strip().lower()
        local, _, domain = email.partition("@")
        if not local or "." not in domain:
            raise ValueError(f"Invalid e-mail address: {email}")

        user = cls(
            id=UserId.generate(),
            email=email,
            first_name=first_name,
            last_name=last_name,
            password_hash=password_hash,
        )
        user._pending_events.append(
            UserRegistered(
                user_id=user.id.value,
                email=user.email,
                first_name=first_name,
                last_name=last_name,
            )
        )
        return user

    def confirm_email(self) -> None:
        if self.email_confirmed:
            return
        self.email_confirmed = True
        self._pending_events.append(
            UserEmailConfirmed(user_id=self.id.value, email=self.email)
        )

    def record_login(
        self, ip_address: str | None = None, user_agent: str | None = None
    ) -> None:
        """Record a successful login.

        Raises:
            ValueError: If the account is not active
        """
        if self.status != UserStatus.ACTIVE:
            raise ValueError(f"User {self.id} is {self.status} and cannot log in")

        event = UserLoggedIn(
            user_id=self.id.value,
            ip_address=ip_address,
            user_agent=user_agent,
        )
        self.last_login_at = event.occurred_at
        self._pending_events.append(event)

    def change_password(self, password_hash: str) -> None:
        if password_hash == self.password_hash:
            return
        self.password_hash = password_hash
        self._pending_events.append(UserPasswordChanged(user_id=self.id.value))

    def change_status(self, new_status: UserStatus, reason: str | None = None) -> None:
        if new_status == self.status:
            return
        old_status, self.status = self.status, new_status
        self._pending_events.append(
            UserStatusChanged(
                user_id=self.id.value,
                old_status=old_status,
                new_status=new_status,
                reason=reason,
            )
        )

    def assign_role(self, role_name: str, assigned_by: UserId | None = None) -> None:
        if role_name in self.roles:
            return
        self.roles.add(role_name)
        self._pending_events.append(
            UserRoleAssigned(
                user_id=self.id.value,
                role_name=role_name,
                assigned_by=assigned_by.value if assigned_by else None,
            )
        )

    def remove_role(self, role_name: str) -> None:
        if role_name not in self.roles:
            return
        self.roles.discard(role_name)
        self._pending_events.append(
            UserRoleRemoved(user_id=self.id.value, role_name=role_name)
        )

    def collect_events(self) -> list[IAMEvent]:
        """Return and clear the events recorded since the last collection."""
        events = list(self._pending_events)
        self._pending_events.clear()
        return events

    def __eq__(self, other: object) -> bool:
        """Users are equal if they have the same ID (identity-based equality)."""
        if not isinstance(other, User):
            return False
        return self.id == other.id

    def __hash__(self) -> int:
        """Hash based on ID for use in sets and dicts."""
        return hash(self.id)
