"""Unit tests for the IAM outbox serializer and topic router."""

import json

import pytest

from iam.domain.events import (
    UserEmailConfirmed,
    UserLoggedIn,
    UserPasswordChanged,
    UserRegistered,
    UserRoleAssigned,
    UserRoleRemoved,
    UserStatusChanged,
)
from iam.domain.value_objects import UserStatus
from iam.infrastructure.outbox import IAMEventSerializer, IAMTopicRouter
from iam.infrastructure.outbox.serializer import IAM_EVENT_TYPES
from iam.infrastructure.outbox.topics import IAM_TOPICS
from shared_kernel.outbox.exceptions import UnknownEventTypeError
from shared_kernel.outbox.ports import EventSerializer, TopicRouter

USER_ID = "01ARZCX0P0HZGQP3MZXQQ0NNZZ"


class TestIAMEventSerializer:
    def test_supports_every_iam_event(self):
        serializer = IAMEventSerializer()

        assert serializer.supported_event_types() == frozenset(
            t.__name__ for t in IAM_EVENT_TYPES
        )
        assert isinstance(serializer, EventSerializer)

    @pytest.mark.parametrize(
        "event",
        [
            UserRegistered(
                user_id=USER_ID, email="a@b.co", first_name="A", last_name="B"
            ),
            UserStatusChanged(
                user_id=USER_ID,
                old_status=UserStatus.ACTIVE,
                new_status=UserStatus.SUSPENDED,
                reason=None,
            ),
            UserRoleAssigned(user_id=USER_ID, role_name="editor", assigned_by=None),
        ],
        ids=lambda e: e.event_type,
    )
    def test_events_survive_storage(self, event):
        serializer = IAMEventSerializer()

        restored = serializer.deserialize(event.event_type, serializer.serialize(event))

        assert restored == event

    def test_enums_stored_by_value(self):
        event = UserStatusChanged(
            user_id=USER_ID,
            old_status=UserStatus.ACTIVE,
            new_status=UserStatus.DEACTIVATED,
        )

        payload = json.loads(IAMEventSerializer().serialize(event))

        assert payload["old_status"] == "active"
        assert payload["new_status"] == "deactivated"

    def test_rejects_foreign_event_type(self):
        with pytest.raises(UnknownEventTypeError):
            IAMEventSerializer().deserialize("OrderPlaced", "{}")


class TestIAMTopicRouter:
    def test_every_serializable_event_has_a_topic(self):
        router = IAMTopicRouter()

        for event_type in IAM_EVENT_TYPES:
            assert router.topic_for(event_type.__name__) is not None

    def test_topics_follow_naming_convention(self):
        assert all(topic.startswith("auth.user.") for topic in IAM_TOPICS.values())

    @pytest.mark.parametrize(
        "event_type,topic",
        [
            (UserRegistered, "auth.user.registered"),
            (UserEmailConfirmed, "auth.user.email-confirmed"),
            (UserLoggedIn, "auth.user.logged-in"),
            (UserPasswordChanged, "auth.user.password-changed"),
            (UserRoleRemoved, "auth.user.role-removed"),
        ],
    )
    def test_known_routes(self, event_type, topic):
        assert IAMTopicRouter().topic_for(event_type.__name__) == topic

    def test_unknown_type_has_no_route(self):
        router = IAMTopicRouter()

        assert router.topic_for("OrderPlaced") is None
        assert isinstance(router, TopicRouter)
