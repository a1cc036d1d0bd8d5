"""Event serialization for the outbox pattern.

Domain events are frozen dataclasses. This module converts them to a JSON
string for the ``event_data`` column and back, driven by the dataclass
field types so bounded contexts only need to list their event classes.

The wire format is a flat JSON object with every dataclass field plus a
``schema_version`` key. Evolution is additive: unknown keys are ignored on
read and fields missing from older records fall back to their defaults.
"""

from __future__ import annotations

import json
import types
from collections.abc import Iterable
from dataclasses import MISSING, fields, is_dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Union, get_args, get_origin, get_type_hints
from uuid import UUID

from shared_kernel.events.base import DomainEvent
from shared_kernel.outbox.exceptions import (
    EventDeserializationError,
    EventSerializationError,
    UnknownEventTypeError,
)

SCHEMA_VERSION = "1"
SCHEMA_VERSION_KEY = "schema_version"


def _to_json_value(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, Enum):
        return value.value
    if is_dataclass(value) and not isinstance(value, type):
        return {f.name: _to_json_value(getattr(value, f.name)) for f in fields(value)}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_to_json_value(v) for v in value]
    if isinstance(value, dict):
        return {str(k): _to_json_value(v) for k, v in value.items()}
    return value


def _from_json_value(tp: Any, value: Any) -> Any:
    if value is None:
        return None

    origin = get_origin(tp)
    if origin in (Union, types.UnionType):
        members = [a for a in get_args(tp) if a is not type(None)]
        return _from_json_value(members[0], value) if len(members) == 1 else value
    if origin in (tuple, list, set, frozenset):
        args = get_args(tp)
        item_tp = args[0] if args else Any
        return origin(_from_json_value(item_tp, v) for v in value)

    if tp is datetime:
        return datetime.fromisoformat(value)
    if tp is UUID:
        return UUID(value)
    if isinstance(tp, type) and issubclass(tp, Enum):
        return tp(value)
    if isinstance(tp, type) and is_dataclass(tp):
        return _build_dataclass(tp, value)
    return value


def _build_dataclass(cls: type, data: dict[str, Any]) -> Any:
    hints = get_type_hints(cls)
    kwargs: dict[str, Any] = {}
    for f in fields(cls):
        if not f.init:
            continue
        if f.name not in data:
            if f.default is MISSING and f.default_factory is MISSING:
                raise EventDeserializationError(
                    f"Missing required field '{f.name}' for {cls.__name__}"
                )
            continue
        kwargs[f.name] = _from_json_value(hints[f.name], data[f.name])
    return cls(**kwargs)


class DataclassEventSerializer:
    """Serializes a fixed set of dataclass domain events to JSON.

    The name to type table is built once from the classes passed to the
    constructor and never changes afterwards.
    """

    def __init__(self, event_types: Iterable[type[DomainEvent]]) -> None:
        self._registry: dict[str, type[DomainEvent]] = {}
        for event_class in event_types:
            name = event_class.__name__
            if name in self._registry:
                raise ValueError(f"Event type {name} registered twice")
            self._registry[name] = event_class

    def supported_event_types(self) -> frozenset[str]:
        return frozenset(self._registry)

    def supports(self, event_type: str) -> bool:
        return event_type in self._registry

    def serialize(self, event: DomainEvent) -> str:
        """Convert a domain event to a JSON string.

        Raises:
            UnknownEventTypeError: If the event type is not registered
            EventSerializationError: If a field value cannot be encoded
        """
        self._event_class(event.event_type)
        payload = _to_json_value(event)
        payload[SCHEMA_VERSION_KEY] = SCHEMA_VERSION
        try:
            return json.dumps(payload)
        except (TypeError, ValueError) as e:
            raise EventSerializationError(
                f"Cannot serialize {event.event_type}: {e}"
            ) from e

    def serialize_with_metadata(self, event: DomainEvent) -> str:
        """Wrap the serialized event in a diagnostic envelope."""
        envelope = {
            "event_type": event.event_type,
            "event_id": str(event.event_id),
            "occurred_at": event.occurred_at.isoformat(),
            SCHEMA_VERSION_KEY: SCHEMA_VERSION,
            "data": json.loads(self.serialize(event)),
        }
        return json.dumps(envelope)

    def deserialize(self, event_type: str, data: str) -> DomainEvent:
        """Reconstruct a domain event from a JSON string.

        Raises:
            UnknownEventTypeError: If the event type is not registered
            EventDeserializationError: If the data does not fit the type
        """
        event_class = self._event_class(event_type)

        try:
            payload = json.loads(data)
        except (TypeError, ValueError) as e:
            raise EventDeserializationError(
                f"Invalid JSON for {event_type}: {e}"
            ) from e
        if not isinstance(payload, dict):
            raise EventDeserializationError(
                f"Expected a JSON object for {event_type}, got {type(payload).__name__}"
            )

        # Records written before versioning carry no version key
        version = str(payload.pop(SCHEMA_VERSION_KEY, SCHEMA_VERSION))
        if version.split(".")[0] != SCHEMA_VERSION:
            raise EventDeserializationError(
                f"Unsupported schema version {version} for {event_type}"
            )

        try:
            return _build_dataclass(event_class, payload)
        except EventDeserializationError:
            raise
        except (TypeError, ValueError, KeyError) as e:
            raise EventDeserializationError(
                f"Invalid data for {event_type}: {e}"
            ) from e

    def is_valid_event_data(self, event_type: str, data: str) -> bool:
        """Check whether stored data deserializes under its event type."""
        try:
            self.deserialize(event_type, data)
        except EventSerializationError:
            return False
        return True

    def _event_class(self, event_type: str) -> type[DomainEvent]:
        event_class = self._registry.get(event_type)
        if event_class is None:
            raise UnknownEventTypeError(event_type, self.supported_event_types())
        return event_class
