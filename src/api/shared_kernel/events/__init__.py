"""Domain event primitives shared by every bounded context."""

from shared_kernel.events.base import (
    CriticalDomainEvent,
    DeferredDomainEvent,
    DeliveryMode,
    DomainEvent,
    HasDomainEvents,
)
from shared_kernel.events.exceptions import (
    HandlerRegistrationError,
)
from shared_kernel.events.observability import (
    DefaultDispatcherProbe,
    DispatcherProbe,
)
from shared_kernel.events.handlers import (
    DomainEventHandler,
    HandlerRegistry,
    build_handler_registry,
)

__all__ = [
    "CriticalDomainEvent",
    "DefaultDispatcherProbe",
    "DeferredDomainEvent",
    "DeliveryMode",
    "DispatcherProbe",
    "DomainEvent",
    "DomainEventHandler",
    "HandlerRegistrationError",
    "HandlerRegistry",
    "HasDomainEvents",
    "build_handler_registry",
]
