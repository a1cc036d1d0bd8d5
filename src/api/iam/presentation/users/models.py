"""Pydantic models for user API requests and responses."""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, Field

from iam.domain.aggregates import User
from iam.domain.value_objects import UserStatus


class UserStatusEnum(StrEnum):
    """API-level enum for account status.

    Maps to domain UserStatus values for validation.
    """

    ACTIVE = "active"
    SUSPENDED = "suspended"
    DEACTIVATED = "deactivated"


class RegisterUserRequest(BaseModel):
    """Request model for registering a user."""

    email: str = Field(..., description="E-mail address", min_length=3, max_length=320)
    first_name: str = Field(..., description="Given name", min_length=1, max_length=100)
    last_name: str = Field(..., description="Family name", min_length=1, max_length=100)


class RecordLoginRequest(BaseModel):
    """Request model for recording a successful login."""

    ip_address: str | None = Field(default=None, description="Client address")
    user_agent: str | None = Field(default=None, description="Client user agent")


class ChangeStatusRequest(BaseModel):
    """Request model for changing an account's status."""

    status: UserStatusEnum = Field(..., description="New account status")
    reason: str | None = Field(default=None, description="Why the status changed")

    def to_domain_status(self) -> UserStatus:
        return UserStatus(self.status.value)


class AssignRoleRequest(BaseModel):
    """Request model for assigning a role."""

    role_name: str = Field(..., description="Role to assign", min_length=1, max_length=100)
    assigned_by: str | None = Field(
        default=None, description="User ID of the assigning user"
    )


class UserResponse(BaseModel):
    """Response model for a user account."""

    id: str = Field(..., description="User ID (ULID format)")
    email: str = Field(..., description="E-mail address")
    first_name: str = Field(..., description="Given name")
    last_name: str = Field(..., description="Family name")
    status: str = Field(..., description="Account status")
    email_confirmed: bool = Field(..., description="Whether the address is confirmed")
    roles: list[str] = Field(default_factory=list, description="Assigned roles")
    last_login_at: datetime | None = Field(default=None, description="Last login")

    @classmethod
    def from_domain(cls, user: User) -> UserResponse:
        """Convert domain User aggregate to API response.

        Args:
            user: User domain aggregate

        Returns:
            UserResponse
        """
        return cls(
            id=user.id.value,
            email=user.email,
            first_name=user.first_name,
            last_name=user.last_name,
            status=user.status.value,
            email_confirmed=user.email_confirmed,
            roles=sorted(user.roles),
            last_login_at=user.last_login_at,
        )
