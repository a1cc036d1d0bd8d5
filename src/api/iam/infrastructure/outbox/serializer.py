"""IAM-specific event serializer for outbox persistence.

This module provides serialization and deserialization of IAM domain events
for storage in the outbox table. The supported events are derived from the
IAMEvent type alias, so adding an event to the alias registers it here.
"""

from __future__ import annotations

from typing import get_args

from iam.domain.events import IAMEvent
from shared_kernel.outbox.serialization import DataclassEventSerializer

IAM_EVENT_TYPES: tuple[type, ...] = get_args(IAMEvent)


class IAMEventSerializer(DataclassEventSerializer):
    """Serializes and deserializes IAM domain events.

    Events are stored as JSON: datetimes in ISO-8601, enums by value,
    identifiers as strings.
    """

    def __init__(self) -> None:
        super().__init__(IAM_EVENT_TYPES)
