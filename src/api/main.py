"""Main FastAPI application entry point."""

from contextlib import asynccontextmanager
from dataclasses import asdict
from datetime import timedelta
from typing import Annotated
from uuid import UUID

from fastapi import Depends, FastAPI, HTTPException, Query, status

from iam.application.event_handlers import iam_event_handlers
from iam.infrastructure.account_notifier import LoggingAccountNotifier
from iam.infrastructure.outbox import IAMEventSerializer, IAMTopicRouter
from iam.presentation import router as iam_router
from infrastructure.database.dependencies import (
    close_database_connections,
    get_session_factory,
)
from infrastructure.dependencies import get_outbox_runtime, set_outbox_runtime
from infrastructure.logging import configure_logging
from infrastructure.outbox.bootstrap import OutboxRuntime, build_outbox_runtime
from infrastructure.settings import (
    get_database_settings,
    get_kafka_settings,
    get_outbox_settings,
    get_settings,
)
from infrastructure.version import __version__


def build_runtime() -> OutboxRuntime:
    """Wire every bounded context into the event delivery pipeline."""
    return build_outbox_runtime(
        session_factory=get_session_factory(),
        serializers=[IAMEventSerializer()],
        topic_routers=[IAMTopicRouter()],
        handlers=iam_event_handlers(LoggingAccountNotifier()),
        outbox_settings=get_outbox_settings(),
        kafka_settings=get_kafka_settings(),
        database_settings=get_database_settings(),
    )


@asynccontextmanager
async def courier_lifespan(app: FastAPI):
    """Application lifespan context.

    Manages:
    - Logging configuration
    - Outbox runtime (publisher started on boot, stopped before the pool)
    - Database engine lifecycle (created lazily, disposed on shutdown)
    """
    configure_logging(debug=get_settings().debug)
    runtime = build_runtime()
    set_outbox_runtime(runtime)
    await runtime.start()

    try:
        yield
    finally:
        await runtime.stop()
        set_outbox_runtime(None)
        await close_database_connections()


app = FastAPI(
    title=get_settings().app_name,
    description="Reliable domain-event delivery through a transactional outbox",
    version=__version__,
    lifespan=courier_lifespan,
)

app.include_router(iam_router)


@app.get("/health")
def health():
    """Basic health check endpoint."""
    return {"status": "ok"}


@app.get("/health/outbox")
async def health_outbox(
    runtime: Annotated[OutboxRuntime, Depends(get_outbox_runtime)],
) -> dict:
    """Report outbox backlog and publisher state."""
    try:
        stats = await runtime.statistics()
    except Exception as e:
        return {
            "status": "error",
            "publisher_running": runtime.publisher.is_running,
            "error": str(e),
        }

    return {
        "status": "ok",
        "publisher_running": runtime.publisher.is_running,
        "total": stats.total,
        "pending": stats.pending,
        "processed": stats.processed,
        "failed": stats.failed,
        "retryable": stats.retryable,
        "dead_lettered": stats.dead_lettered,
        "oldest_pending_at": stats.oldest_pending_at,
        "by_event_type": dict(stats.by_event_type),
    }


@app.get("/util/outbox/failed")
async def list_failed_records(
    runtime: Annotated[OutboxRuntime, Depends(get_outbox_runtime)],
    limit: Annotated[int, Query(ge=1, le=1000)] = 50,
) -> dict:
    """List failed records whose retry backoff has elapsed."""
    async with runtime.outbox() as outbox:
        entries = await outbox.list_failed_for_retry(limit)
    return {
        "records": [asdict(entry) for entry in entries],
        "count": len(entries),
    }


@app.post("/util/outbox/records/{entry_id}/retry")
async def retry_record(
    entry_id: UUID,
    runtime: Annotated[OutboxRuntime, Depends(get_outbox_runtime)],
) -> dict:
    """Make a failed record due again with a fresh retry budget."""
    async with runtime.outbox() as outbox:
        reset = await outbox.retry_record(entry_id)

    if not reset:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Pending outbox record {entry_id} not found",
        )
    runtime.publisher.wake()
    return {"outbox_id": entry_id, "reset": True}


@app.get("/util/outbox/dead-letters")
async def list_dead_letters(
    runtime: Annotated[OutboxRuntime, Depends(get_outbox_runtime)],
    limit: Annotated[int, Query(ge=1, le=1000)] = 100,
) -> dict:
    """List dead-lettered records, newest first."""
    async with runtime.outbox() as outbox:
        entries = await outbox.list_dead_letters(limit)
    return {
        "dead_letters": [asdict(entry) for entry in entries],
        "count": len(entries),
    }


@app.post("/util/outbox/dead-letters/{dead_letter_id}/requeue")
async def requeue_dead_letter(
    dead_letter_id: UUID,
    runtime: Annotated[OutboxRuntime, Depends(get_outbox_runtime)],
) -> dict:
    """Move a dead-lettered record back into the outbox for another try."""
    async with runtime.outbox() as outbox:
        entry_id = await outbox.requeue_dead_letter(dead_letter_id)

    if entry_id is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Dead letter {dead_letter_id} not found",
        )
    runtime.publisher.wake()
    return {"outbox_id": entry_id}


@app.delete("/util/outbox/processed")
async def cleanup_processed(
    runtime: Annotated[OutboxRuntime, Depends(get_outbox_runtime)],
) -> dict:
    """Delete processed records older than the configured retention.

    Returns:
        Dictionary with count of deleted records
    """
    retention = timedelta(days=get_outbox_settings().processed_retention_days)
    async with runtime.outbox() as outbox:
        deleted = await outbox.cleanup_processed(older_than=retention)
    return {"deleted": deleted}
