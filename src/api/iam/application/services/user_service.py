"""User application service for IAM bounded context.

Every use case runs in one unit of work: the user's new state and the
events it raised commit together.
"""

from __future__ import annotations

from collections.abc import Callable

from iam.application.observability import DefaultUserServiceProbe, UserServiceProbe
from iam.domain.aggregates import User
from iam.domain.value_objects import UserId, UserStatus
from iam.infrastructure.user_repository import UserRepository
from iam.ports.exceptions import DuplicateEmailError, UserNotFoundError
from infrastructure.database.unit_of_work import SqlAlchemyUnitOfWork


class UserService:
    """Application service for user account management."""

    def __init__(
        self,
        uow_factory: Callable[[], SqlAlchemyUnitOfWork],
        probe: UserServiceProbe | None = None,
    ):
        """Initialize UserService with dependencies.

        Args:
            uow_factory: Creates a fresh unit of work per use case
            probe: Optional domain probe for observability
        """
        self._uow_factory = uow_factory
        self._probe = probe or DefaultUserServiceProbe()

    async def register_user(
        self,
        email: str,
        first_name: str,
        last_name: str,
        password_hash: str | None = None,
    ) -> User:
        """Create a user account.

        Raises:
            DuplicateEmailError: If the e-mail address is already registered
            ValueError: If the e-mail address is malformed
        """
        async with self._uow_factory() as uow:
            users = UserRepository(uow)
            if await users.get_by_email(email) is not None:
                self._probe.registration_rejected(email, "duplicate_email")
                raise DuplicateEmailError(f"E-mail {email} is already registered")

            user = User.register(
                email=email,
                first_name=first_name,
                last_name=last_name,
                password_hash=password_hash,
            )
            await users.save(user)
            await uow.commit()

        self._probe.user_registered(user.id.value, user.email)
        return user

    async def confirm_email(self, user_id: UserId) -> User:
        return await self._update(user_id, "confirm_email", lambda u: u.confirm_email())

    async def record_login(
        self,
        user_id: UserId,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> User:
        return await self._update(
            user_id,
            "record_login",
            lambda u: u.record_login(ip_address=ip_address, user_agent=user_agent),
        )

    async def change_password(self, user_id: UserId, password_hash: str) -> User:
        return await self._update(
            user_id, "change_password", lambda u: u.change_password(password_hash)
        )

    async def change_status(
        self, user_id: UserId, status: UserStatus, reason: str | None = None
    ) -> User:
        return await self._update(
            user_id, "change_status", lambda u: u.change_status(status, reason)
        )

    async def assign_role(
        self,
        user_id: UserId,
        role_name: str,
        assigned_by: UserId | None = None,
    ) -> User:
        return await self._update(
            user_id,
            "assign_role",
            lambda u: u.assign_role(role_name, assigned_by=assigned_by),
        )

    async def remove_role(self, user_id: UserId, role_name: str) -> User:
        return await self._update(
            user_id, "remove_role", lambda u: u.remove_role(role_name)
        )

    async def _update(
        self,
        user_id: UserId,
        operation: str,
        mutate: Callable[[User], None],
    ) -> User:
        """Load a user, apply a mutation and commit it with its events.

        Raises:
            UserNotFoundError: If the user does not exist
        """
        async with self._uow_factory() as uow:
            users = UserRepository(uow)
            user = await users.get_by_id(user_id)
            if user is None:
                self._probe.user_not_found(user_id.value, operation)
                raise UserNotFoundError(f"User {user_id} not found")

            mutate(user)
            await users.save(user)
            await uow.commit()

        self._probe.user_updated(user_id.value, operation)
        return user
