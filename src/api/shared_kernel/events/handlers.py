"""Typed in-process handlers for domain events.

Handlers are registered explicitly at startup against the concrete event
type they accept. Once the application is wired the registry is frozen so
the handler set of every event type is fixed for the process lifetime.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Protocol, TypeVar, runtime_checkable

from shared_kernel.events.base import DomainEvent
from shared_kernel.events.exceptions import HandlerRegistrationError

E = TypeVar("E", bound=DomainEvent)
E_contra = TypeVar("E_contra", bound=DomainEvent, contravariant=True)


@runtime_checkable
class DomainEventHandler(Protocol[E_contra]):
    """Handles domain events of a single type."""

    async def handle(self, event: E_contra) -> None:
        """Apply the side effects of the event."""
        ...


class HandlerRegistry:
    """Maps concrete event types to their in-process handlers.

    Lookup is by exact type: a handler registered for a base class is not
    invoked for its subclasses.
    """

    def __init__(self) -> None:
        self._handlers: dict[type[DomainEvent], list[DomainEventHandler]] = {}
        self._frozen = False

    def register(self, event_type: type[E], handler: DomainEventHandler[E]) -> None:
        """Register a handler for an event type.

        Raises:
            HandlerRegistrationError: If the registry is frozen or the
                handler is already registered for this type
        """
        if self._frozen:
            raise HandlerRegistrationError(
                f"Cannot register handler for {event_type.__name__}: registry is frozen"
            )

        handlers = self._handlers.setdefault(event_type, [])
        if handler in handlers:
            raise HandlerRegistrationError(
                f"Handler {type(handler).__name__} already registered "
                f"for {event_type.__name__}"
            )
        handlers.append(handler)

    def freeze(self) -> None:
        """Prevent further registrations."""
        self._frozen = True

    @property
    def is_frozen(self) -> bool:
        return self._frozen

    def handlers_for(self, event: DomainEvent) -> tuple[DomainEventHandler, ...]:
        """Return the handlers registered for the event's concrete type."""
        return tuple(self._handlers.get(type(event), ()))

    def registered_event_types(self) -> frozenset[str]:
        return frozenset(t.__name__ for t, h in self._handlers.items() if h)


def build_handler_registry(
    registrations: Iterable[tuple[type[DomainEvent], DomainEventHandler]],
) -> HandlerRegistry:
    """Assemble and freeze a registry from (event type, handler) pairs."""
    registry = HandlerRegistry()
    for event_type, handler in registrations:
        registry.register(event_type, handler)
    registry.freeze()
    return registry
