"""Unit test fixtures with mocked dependencies."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from iam.domain.events import UserEmailConfirmed, UserLoggedIn, UserRegistered


@pytest.fixture
def registered_event() -> UserRegistered:
    """Provide a critical event."""
    return UserRegistered(
        user_id="01ARZCX0P0HZGQP3MZXQQ0NNZZ",
        email="alice@example.com",
        first_name="Alice",
        last_name="Liddell",
    )


@pytest.fixture
def login_event() -> UserLoggedIn:
    """Provide a deferred event."""
    return UserLoggedIn(
        user_id="01ARZCX0P0HZGQP3MZXQQ0NNZZ",
        ip_address="10.0.0.1",
    )


@pytest.fixture
def confirmed_event() -> UserEmailConfirmed:
    """Provide a regular event."""
    return UserEmailConfirmed(
        user_id="01ARZCX0P0HZGQP3MZXQQ0NNZZ",
        email="alice@example.com",
    )


@pytest.fixture
def mock_session_factory():
    """Provide a session factory whose sessions and transactions are mocks.

    Both ``async with factory() as session`` and ``async with
    session.begin()`` work; the session is exposed as ``factory.session``.
    """
    session = MagicMock()
    session.begin.return_value.__aenter__ = AsyncMock(return_value=None)
    session.begin.return_value.__aexit__ = AsyncMock(return_value=False)

    factory = MagicMock()
    factory.return_value.__aenter__ = AsyncMock(return_value=session)
    factory.return_value.__aexit__ = AsyncMock(return_value=False)
    factory.session = session
    return factory
