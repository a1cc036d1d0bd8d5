"""Base types for domain events.

Domain events are immutable facts describing something that already happened
inside an aggregate. Each concrete event is a frozen dataclass that inherits
from one of the classification bases below; the base chosen decides how the
dispatcher delivers it after the owning transaction commits.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import ClassVar, Protocol, runtime_checkable
from uuid import UUID, uuid4


def _utc_now() -> datetime:
    return datetime.now(UTC)


class DeliveryMode(StrEnum):
    """How a domain event reaches its consumers."""

    CRITICAL = "critical"
    """Delivered in-process before the triggering operation returns."""

    DEFERRED = "deferred"
    """Delivered only in the background through the outbox."""

    REGULAR = "regular"
    """Default classification, treated as deferred."""


@dataclass(frozen=True, kw_only=True)
class DomainEvent:
    """Base class for all domain events.

    Attributes:
        event_id: Unique identifier of this occurrence, used as broker key
        occurred_at: When the event occurred (UTC)
    """

    event_id: UUID = field(default_factory=uuid4)
    occurred_at: datetime = field(default_factory=_utc_now)

    delivery: ClassVar[DeliveryMode] = DeliveryMode.REGULAR
    priority: ClassVar[int] = 0

    @property
    def event_type(self) -> str:
        """Wire discriminator for this event (the class name)."""
        return type(self).__name__


@dataclass(frozen=True, kw_only=True)
class CriticalDomainEvent(DomainEvent):
    """An event whose handlers must run before the operation completes.

    Subclasses may override ``priority``; lower values are handled first.
    """

    delivery: ClassVar[DeliveryMode] = DeliveryMode.CRITICAL
    priority: ClassVar[int] = 100


@dataclass(frozen=True, kw_only=True)
class DeferredDomainEvent(DomainEvent):
    """An event meant only for background delivery."""

    delivery: ClassVar[DeliveryMode] = DeliveryMode.DEFERRED


@runtime_checkable
class HasDomainEvents(Protocol):
    """An aggregate that buffers the events it raises until commit."""

    def collect_events(self) -> list[DomainEvent]:
        """Return the buffered events and clear the buffer."""
        ...
