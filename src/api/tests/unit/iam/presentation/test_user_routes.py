"""Unit tests for user HTTP routes.

The UserService is mocked through FastAPI dependency overrides, so these
tests cover request parsing and error mapping only.
"""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest
from fastapi import FastAPI, status
from fastapi.testclient import TestClient

from iam.application.services import UserService
from iam.domain.aggregates import User
from iam.domain.value_objects import UserId, UserStatus
from iam.ports.exceptions import DuplicateEmailError, UserNotFoundError


@pytest.fixture
def mock_user_service() -> AsyncMock:
    """Mock UserService for testing."""
    return AsyncMock(spec=UserService)


@pytest.fixture
def sample_user() -> User:
    user = User.register(email="alice@example.com", first_name="Alice", last_name="L")
    user.collect_events()
    return user


@pytest.fixture
def test_client(mock_user_service: AsyncMock) -> TestClient:
    """Create TestClient with mocked dependencies."""
    from iam.dependencies.user import get_user_service
    from iam.presentation import router

    app = FastAPI()
    app.dependency_overrides[get_user_service] = lambda: mock_user_service
    app.include_router(router)
    return TestClient(app)


class TestRegisterUserRoute:
    def test_returns_201_with_user(self, test_client, mock_user_service, sample_user):
        mock_user_service.register_user.return_value = sample_user

        response = test_client.post(
            "/iam/users",
            json={
                "email": "alice@example.com",
                "first_name": "Alice",
                "last_name": "L",
            },
        )

        assert response.status_code == status.HTTP_201_CREATED
        body = response.json()
        assert body["id"] == sample_user.id.value
        assert body["status"] == "active"
        assert body["email_confirmed"] is False
        mock_user_service.register_user.assert_awaited_once_with(
            email="alice@example.com", first_name="Alice", last_name="L"
        )

    def test_duplicate_email_returns_409(self, test_client, mock_user_service):
        mock_user_service.register_user.side_effect = DuplicateEmailError("taken")

        response = test_client.post(
            "/iam/users",
            json={"email": "alice@example.com", "first_name": "A", "last_name": "L"},
        )

        assert response.status_code == status.HTTP_409_CONFLICT

    def test_malformed_email_returns_400(self, test_client, mock_user_service):
        mock_user_service.register_user.side_effect = ValueError("Invalid e-mail")

        response = test_client.post(
            "/iam/users",
            json={"email": "nope", "first_name": "A", "last_name": "L"},
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_missing_fields_return_422(self, test_client):
        response = test_client.post("/iam/users", json={"email": "a@b.co"})

        assert response.status_code == 422


class TestUserUpdateRoutes:
    def test_invalid_user_id_returns_400(self, test_client, mock_user_service):
        response = test_client.post("/iam/users/not-a-ulid/email-confirmation")

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        mock_user_service.confirm_email.assert_not_called()

    def test_unknown_user_returns_404(self, test_client, mock_user_service):
        mock_user_service.confirm_email.side_effect = UserNotFoundError("missing")

        response = test_client.post(
            f"/iam/users/{UserId.generate()}/email-confirmation"
        )

        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_login_of_inactive_user_returns_409(self, test_client, mock_user_service):
        mock_user_service.record_login.side_effect = ValueError("suspended")

        response = test_client.post(
            f"/iam/users/{UserId.generate()}/logins", json={"ip_address": "10.0.0.1"}
        )

        assert response.status_code == status.HTTP_409_CONFLICT

    def test_login_passes_client_details(
        self, test_client, mock_user_service, sample_user
    ):
        mock_user_service.record_login.return_value = sample_user

        response = test_client.post(
            f"/iam/users/{sample_user.id}/logins",
            json={"ip_address": "10.0.0.1", "user_agent": "curl/8"},
        )

        assert response.status_code == status.HTTP_200_OK
        mock_user_service.record_login.assert_awaited_once_with(
            sample_user.id, ip_address="10.0.0.1", user_agent="curl/8"
        )

    def test_change_status(self, test_client, mock_user_service, sample_user):
        sample_user.change_status(UserStatus.SUSPENDED)
        mock_user_service.change_status.return_value = sample_user

        response = test_client.put(
            f"/iam/users/{sample_user.id}/status",
            json={"status": "suspended", "reason": "abuse"},
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["status"] == "suspended"
        mock_user_service.change_status.assert_awaited_once_with(
            sample_user.id, UserStatus.SUSPENDED, reason="abuse"
        )

    def test_unknown_status_returns_422(self, test_client, sample_user):
        response = test_client.put(
            f"/iam/users/{sample_user.id}/status", json={"status": "banished"}
        )

        assert response.status_code == 422

    def test_assign_role(self, test_client, mock_user_service, sample_user):
        admin = UserId.generate()
        sample_user.assign_role("editor")
        mock_user_service.assign_role.return_value = sample_user

        response = test_client.post(
            f"/iam/users/{sample_user.id}/roles",
            json={"role_name": "editor", "assigned_by": admin.value},
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["roles"] == ["editor"]
        mock_user_service.assign_role.assert_awaited_once_with(
            sample_user.id, "editor", assigned_by=admin
        )

    def test_remove_role(self, test_client, mock_user_service, sample_user):
        mock_user_service.remove_role.return_value = sample_user

        response = test_client.delete(f"/iam/users/{sample_user.id}/roles/editor")

        assert response.status_code == status.HTTP_200_OK
        mock_user_service.remove_role.assert_awaited_once_with(sample_user.id, "editor")
