"""Shared infrastructure dependencies.

Provides the process-wide outbox runtime to request handlers. The runtime
is built once during application startup and registered here.
Does NOT import from bounded contexts to maintain DDD boundaries.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from infrastructure.outbox.bootstrap import OutboxRuntime

_runtime: OutboxRuntime | None = None


def set_outbox_runtime(runtime: OutboxRuntime | None) -> None:
    """Register the runtime built at startup (None on shutdown)."""
    global _runtime
    _runtime = runtime


def get_outbox_runtime() -> OutboxRuntime:
    """Get the application's outbox runtime.

    Raises:
        RuntimeError: If startup has not registered one
    """
    if _runtime is None:
        raise RuntimeError(
            "Outbox runtime not initialized. Ensure app startup completed successfully."
        )
    return _runtime

