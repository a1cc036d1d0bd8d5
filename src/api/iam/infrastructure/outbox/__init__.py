"""IAM-specific outbox infrastructure.

Contains the serializer and topic routes for IAM domain events. These are
registered with the composite serializer and router at application startup.
"""

from iam.infrastructure.outbox.serializer import IAMEventSerializer
from iam.infrastructure.outbox.topics import IAM_TOPICS, IAMTopicRouter

__all__ = ["IAM_TOPICS", "IAMEventSerializer", "IAMTopicRouter"]
