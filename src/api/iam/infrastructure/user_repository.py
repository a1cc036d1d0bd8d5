"""SQLAlchemy implementation of IUserRepository.

The repository works on the session of a unit of work and never commits.
Saving a user also registers it with the unit of work so the events it
raised are written to the outbox in the same transaction.
"""

from __future__ import annotations

from sqlalchemy import select

from iam.domain.aggregates import User
from iam.domain.value_objects import UserId, UserStatus
from iam.infrastructure.models import UserModel, UserRoleModel
from iam.infrastructure.observability import (
    DefaultUserRepositoryProbe,
    UserRepositoryProbe,
)
from iam.ports.exceptions import DuplicateEmailError
from iam.ports.repositories import IUserRepository
from infrastructure.database.unit_of_work import SqlAlchemyUnitOfWork


class UserRepository(IUserRepository):
    """SQLAlchemy-backed repository for User aggregates."""

    def __init__(
        self, uow: SqlAlchemyUnitOfWork, probe: UserRepositoryProbe | None = None
    ) -> None:
        """Initialize repository with a unit of work and probe.

        Args:
            uow: The active unit of work owning the transaction
            probe: Optional domain probe for observability
        """
        self._uow = uow
        self._probe = probe or DefaultUserRepositoryProbe()

    async def save(self, user: User) -> None:
        """Add or update a user in the current unit of work.

        Raises:
            DuplicateEmailError: If another user already has the e-mail
        """
        session = self._uow.session

        owner = await session.scalar(
            select(UserModel.id).where(UserModel.email == user.email)
        )
        if owner is not None and owner != user.id.value:
            raise DuplicateEmailError(f"E-mail {user.email} is already registered")

        model = await session.get(UserModel, user.id.value)
        created = model is None
        if model is None:
            model = UserModel(id=user.id.value, roles=[])
            session.add(model)

        model.email = user.email
        model.first_name = user.first_name
        model.last_name = user.last_name
        model.status = user.status.value
        model.email_confirmed = user.email_confirmed
        model.password_hash = user.password_hash
        model.last_login_at = user.last_login_at

        current = {role.role_name for role in model.roles}
        model.roles = [r for r in model.roles if r.role_name in user.roles] + [
            UserRoleModel(role_name=name) for name in sorted(user.roles - current)
        ]

        self._uow.track(user)
        self._probe.user_saved(user.id.value, created)

    async def get_by_id(self, user_id: UserId) -> User | None:
        """Retrieve a user by their ID.

        Returns:
            The User aggregate, or None if not found
        """
        model = await self._uow.session.get(UserModel, user_id.value)
        if model is None:
            self._probe.user_not_found(user_id.value)
            return None

        self._probe.user_retrieved(model.id)
        return self._to_domain(model)

    async def get_by_email(self, email: str) -> User | None:
        """Retrieve a user by their e-mail address.

        Returns:
            The User aggregate, or None if not found
        """
        stmt = select(UserModel).where(UserModel.email == email.strip().lower())
        model = await self._uow.session.scalar(stmt)
        if model is None:
            self._probe.user_not_found(email)
            return None

        self._probe.user_retrieved(model.id)
        return self._to_domain(model)

    @staticmethod
    def _to_domain(model: UserModel) -> User:
        return User(
            id=UserId(value=model.id),
            email=model.email,
            first_name=model.first_name,
            last_name=model.last_name,
            status=UserStatus(model.status),
            email_confirmed=model.email_confirmed,
            password_hash=model.password_hash,
            last_login_at=model.last_login_at,
            roles={role.role_name for role in model.roles},
        )
