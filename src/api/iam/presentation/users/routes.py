"""HTTP routes for user account management."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status

from iam.application.services import UserService
from iam.dependencies.user import get_user_service
from iam.domain.aggregates import User
from iam.domain.value_objects import UserId
from iam.ports.exceptions import DuplicateEmailError, UserNotFoundError
from iam.presentation.users.models import (
    AssignRoleRequest,
    ChangeStatusRequest,
    RecordLoginRequest,
    RegisterUserRequest,
    UserResponse,
)

router = APIRouter(
    prefix="/users",
    tags=["users"],
)


def _parse_user_id(user_id: str) -> UserId:
    try:
        return UserId.from_string(user_id)
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid user ID format: {e}",
        ) from e


async def _apply(user_id: str, operation: Callable[[UserId], Awaitable[User]]) -> UserResponse:
    """Run a user use case and map domain errors to HTTP errors."""
    user_id_obj = _parse_user_id(user_id)
    try:
        user = await operation(user_id_obj)
    except UserNotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"User {user_id} not found",
        ) from e
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(e),
        ) from e
    return UserResponse.from_domain(user)


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
)
async def register_user(
    request: RegisterUserRequest,
    service: Annotated[UserService, Depends(get_user_service)],
) -> UserResponse:
    """Register a new user account.

    The verification e-mail is sent before the response returns; if that
    fails the registration still succeeds and the e-mail is delivered from
    the outbox.

    Raises:
        HTTPException: 400 if the e-mail address is malformed
        HTTPException: 409 if the e-mail address is already registered
    """
    try:
        user = await service.register_user(
            email=request.email,
            first_name=request.first_name,
            last_name=request.last_name,
        )
    except DuplicateEmailError as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="A user with this e-mail address already exists",
        ) from e
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e),
        ) from e
    return UserResponse.from_domain(user)


@router.post("/{user_id}/email-confirmation")
async def confirm_email(
    user_id: str,
    service: Annotated[UserService, Depends(get_user_service)],
) -> UserResponse:
    """Mark the user's e-mail address as confirmed."""
    return await _apply(user_id, service.confirm_email)


@router.post("/{user_id}/logins")
async def record_login(
    user_id: str,
    request: RecordLoginRequest,
    service: Annotated[UserService, Depends(get_user_service)],
) -> UserResponse:
    """Record a successful login.

    Raises:
        HTTPException: 409 if the account is not active
    """
    return await _apply(
        user_id,
        lambda uid: service.record_login(
            uid, ip_address=request.ip_address, user_agent=request.user_agent
        ),
    )


@router.put("/{user_id}/status")
async def change_status(
    user_id: str,
    request: ChangeStatusRequest,
    service: Annotated[UserService, Depends(get_user_service)],
) -> UserResponse:
    """Suspend, deactivate or reactivate an account."""
    return await _apply(
        user_id,
        lambda uid: service.change_status(
            uid, request.to_domain_status(), reason=request.reason
        ),
    )


@router.post("/{user_id}/roles")
async def assign_role(
    user_id: str,
    request: AssignRoleRequest,
    service: Annotated[UserService, Depends(get_user_service)],
) -> UserResponse:
    """Grant a role; granting a held role changes nothing."""
    assigned_by = (
        _parse_user_id(request.assigned_by) if request.assigned_by else None
    )
    return await _apply(
        user_id,
        lambda uid: service.assign_role(
            uid, request.role_name, assigned_by=assigned_by
        ),
    )


@router.delete("/{user_id}/roles/{role_name}")
async def remove_role(
    user_id: str,
    role_name: str,
    service: Annotated[UserService, Depends(get_user_service)],
) -> UserResponse:
    """Revoke a role; revoking a role not held changes nothing."""
    return await _apply(user_id, lambda uid: service.remove_role(uid, role_name))
