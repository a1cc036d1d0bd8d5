from collections.abc import Callable
from typing import Annotated

from fastapi import Depends

from iam.application.observability import DefaultUserServiceProbe, UserServiceProbe
from iam.application.services import UserService
from infrastructure.database.unit_of_work import SqlAlchemyUnitOfWork
from infrastructure.dependencies import get_outbox_runtime


def get_user_service_probe() -> UserServiceProbe:
    """Get UserServiceProbe instance.

    Returns:
        DefaultUserServiceProbe instance for observability
    """
    return DefaultUserServiceProbe()


def get_unit_of_work_factory() -> Callable[[], SqlAlchemyUnitOfWork]:
    """Get the factory creating one unit of work per use case."""
    return get_outbox_runtime().unit_of_work


def get_user_service(
    uow_factory: Annotated[
        Callable[[], SqlAlchemyUnitOfWork], Depends(get_unit_of_work_factory)
    ],
    probe: Annotated[UserServiceProbe, Depends(get_user_service_probe)],
) -> UserService:
    """Get UserService instance.

    Args:
        uow_factory: Unit of work factory bound to the event pipeline
        probe: User service probe for observability

    Returns:
        UserService instance
    """
    return UserService(uow_factory=uow_factory, probe=probe)
