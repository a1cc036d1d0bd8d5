"""IAM presentation layer - aggregate-based organization.

Organizes presentation concerns by domain aggregate following vertical
slicing and DDD principles. Each aggregate package contains its own routes
and models.
"""

from __future__ import annotations

from fastapi import APIRouter

from iam.presentation import users

router = APIRouter(
    prefix="/iam",
    tags=["iam"],
)

router.include_router(users.router)

__all__ = ["router"]
