"""User account endpoints."""

from iam.presentation.users.routes import router

__all__ = ["router"]
