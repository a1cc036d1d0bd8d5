"""Domain event dispatch infrastructure."""

from infrastructure.events.dispatcher import (
    DispatchResult,
    EventPartition,
    HybridDomainEventDispatcher,
)

__all__ = ["DispatchResult", "EventPartition", "HybridDomainEventDispatcher"]
