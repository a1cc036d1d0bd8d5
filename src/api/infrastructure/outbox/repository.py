"""Outbox repository implementation.

This module provides the SQLAlchemy implementation of the outbox repository.
It persists serialized domain events and the publisher's bookkeeping.
"""

from __future__ import annotations

from datetime import UTC, datetime
from uuid import UUID, uuid4

from sqlalchemy import ColumnElement, and_, delete, func, or_, select, true, update
from sqlalchemy.ext.asyncio import AsyncSession

from infrastructure.outbox.models import (
    OutboxDeadLetterModel,
    OutboxMessageModel,
    as_utc,
    truncate_error,
)
from shared_kernel.outbox.value_objects import (
    DeadLetterEntry,
    DeadLetterReason,
    OutboxEntry,
    OutboxPage,
    OutboxStatistics,
    RetryBackoff,
)


def _due_for_attempt(
    backoff: RetryBackoff | None, now: datetime
) -> ColumnElement[bool]:
    """SQL condition for records whose retry backoff has elapsed."""
    if backoff is None:
        return true()

    retry_count = OutboxMessageModel.retry_count
    updated_at = OutboxMessageModel.updated_at
    capped_from = backoff.capped_from
    clauses = [retry_count == 0]
    for count in range(1, capped_from):
        clauses.append(
            and_(retry_count == count, updated_at <= now - backoff.delay_for(count))
        )
    clauses.append(
        and_(retry_count >= capped_from, updated_at <= now - backoff.max_delay)
    )
    return or_(*clauses)


class OutboxRepository:
    """SQLAlchemy implementation of the outbox repository.

    This repository shares the same database session as the calling service,
    ensuring that event appends happen within the same transaction as the
    aggregate changes. This is critical for the atomicity guarantee of the
    outbox pattern.

    The repository only calls session.add() and session.execute() - it never
    calls session.commit(). The caller owns the transaction boundary.
    """

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def append(
        self,
        event_id: UUID,
        event_type: str,
        event_data: str,
        occurred_at: datetime,
    ) -> UUID:
        """Add a serialized event to the current transaction.

        The record identifier is generated here rather than by the database
        so callers can report it before the transaction commits.

        Returns:
            The identifier of the new record
        """
        model = OutboxMessageModel(
            id=uuid4(),
            event_id=event_id,
            event_type=event_type,
            event_data=event_data,
            occurred_at=occurred_at,
            processed_at=None,
            retry_count=0,
        )
        self._session.add(model)
        return model.id

    async def get_by_id(self, entry_id: UUID) -> OutboxEntry | None:
        model = await self._session.get(OutboxMessageModel, entry_id)
        return model.to_value_object() if model else None

    async def fetch_unprocessed(
        self,
        limit: int = 100,
        backoff: RetryBackoff | None = None,
        now: datetime | None = None,
    ) -> list[OutboxEntry]:
        """Fetch pending records, oldest occurrence first.

        Ties on occurred_at fall back to insertion time so records raised
        in one commit keep their order. Failed records are left out until
        their backoff has elapsed.

        Args:
            limit: Maximum number of records to fetch
            backoff: Delay schedule for failed records; None fetches them
                on every call
            now: Reference time for the backoff, defaults to the current time

        Returns:
            List of pending OutboxEntry value objects
        """
        stmt = (
            select(OutboxMessageModel)
            .where(OutboxMessageModel.processed_at.is_(None))
            .where(_due_for_attempt(backoff, now or datetime.now(UTC)))
            .order_by(
                OutboxMessageModel.occurred_at,
                OutboxMessageModel.created_at,
            )
            .limit(limit)
        )

        result = await self._session.execute(stmt)
        return [model.to_value_object() for model in result.scalars().all()]

    async def mark_processed(self, entry_id: UUID) -> bool:
        """Mark a record as processed.

        Only pending records are touched, so marking twice is a no-op.

        Returns:
            True if this call marked the record
        """
        stmt = (
            update(OutboxMessageModel)
            .where(OutboxMessageModel.id == entry_id)
            .where(OutboxMessageModel.processed_at.is_(None))
            .values(processed_at=datetime.now(UTC), error=None)
        )

        result = await self._session.execute(stmt)
        return result.rowcount > 0

    async def record_failure(self, entry_id: UUID, error: str) -> int | None:
        """Increment the retry count and overwrite the error.

        The increment happens in SQL so concurrent writers cannot lose one.

        Returns:
            The new retry count, or None if the record no longer exists
        """
        stmt = (
            update(OutboxMessageModel)
            .where(OutboxMessageModel.id == entry_id)
            .values(
                retry_count=OutboxMessageModel.retry_count + 1,
                error=truncate_error(error),
                updated_at=datetime.now(UTC),
            )
            .returning(OutboxMessageModel.retry_count)
        )

        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def reset_for_retry(self, entry_id: UUID) -> bool:
        """Clear the failure state of a pending record.

        The record becomes due at once and gets a fresh retry budget.

        Returns:
            True if a pending record was reset
        """
        stmt = (
            update(OutboxMessageModel)
            .where(OutboxMessageModel.id == entry_id)
            .where(OutboxMessageModel.processed_at.is_(None))
            .values(retry_count=0, error=None, updated_at=datetime.now(UTC))
        )

        result = await self._session.execute(stmt)
        return result.rowcount > 0

    async def list_failed_for_retry(
        self,
        limit: int = 50,
        backoff: RetryBackoff | None = None,
        now: datetime | None = None,
    ) -> list[OutboxEntry]:
        """Return failed pending records that are due, longest waiting first."""
        stmt = (
            select(OutboxMessageModel)
            .where(OutboxMessageModel.processed_at.is_(None))
            .where(OutboxMessageModel.retry_count > 0)
            .where(_due_for_attempt(backoff, now or datetime.now(UTC)))
            .order_by(OutboxMessageModel.updated_at)
            .limit(limit)
        )

        result = await self._session.execute(stmt)
        return [model.to_value_object() for model in result.scalars().all()]

    async def move_to_dead_letter(
        self,
        entry: OutboxEntry,
        reason: DeadLetterReason,
    ) -> None:
        """Append the record to the dead-letter table and remove it.

        Both statements run in the caller's transaction.
        """
        self._session.add(
            OutboxDeadLetterModel(
                id=uuid4(),
                outbox_id=entry.id,
                event_id=entry.event_id,
                event_type=entry.event_type,
                event_data=entry.event_data,
                occurred_at=entry.occurred_at,
                error=truncate_error(entry.error),
                retry_count=entry.retry_count,
                reason=reason.value,
            )
        )
        await self.delete(entry.id)

    async def delete(self, entry_id: UUID) -> None:
        await self._session.execute(
            delete(OutboxMessageModel).where(OutboxMessageModel.id == entry_id)
        )

    async def delete_processed_before(self, cutoff: datetime) -> int:
        """Remove processed records whose processed_at is older than cutoff.

        Returns:
            Number of records removed
        """
        stmt = (
            delete(OutboxMessageModel)
            .where(OutboxMessageModel.processed_at.is_not(None))
            .where(OutboxMessageModel.processed_at < cutoff)
        )

        result = await self._session.execute(stmt)
        return result.rowcount

    async def get_statistics(
        self,
        backoff: RetryBackoff | None = None,
        now: datetime | None = None,
    ) -> OutboxStatistics:
        """Count records by state and by event type.

        Args:
            backoff: Delay schedule deciding which failed records count
                as retryable; None counts every failed record
            now: Reference time for the backoff
        """
        pending_filter = OutboxMessageModel.processed_at.is_(None)
        failed_filter = and_(pending_filter, OutboxMessageModel.retry_count > 0)
        stmt = select(
            func.count().filter(pending_filter),
            func.count().filter(OutboxMessageModel.processed_at.is_not(None)),
            func.count().filter(failed_filter),
            func.count().filter(
                failed_filter, _due_for_attempt(backoff, now or datetime.now(UTC))
            ),
            func.min(OutboxMessageModel.occurred_at).filter(pending_filter),
        )
        pending, processed, failed, retryable, oldest = (
            await self._session.execute(stmt)
        ).one()

        by_type = await self._session.execute(
            select(OutboxMessageModel.event_type, func.count()).group_by(
                OutboxMessageModel.event_type
            )
        )

        dead_lettered = await self._session.scalar(
            select(func.count()).select_from(OutboxDeadLetterModel)
        )

        return OutboxStatistics(
            pending=pending,
            processed=processed,
            failed=failed,
            dead_lettered=dead_lettered or 0,
            oldest_pending_at=as_utc(oldest),
            retryable=retryable,
            by_event_type={event_type: count for event_type, count in by_type.all()},
        )

    async def list_by_event_type(
        self,
        event_type: str,
        page_index: int = 0,
        page_size: int = 50,
    ) -> OutboxPage:
        """Return one page of records of an event type, newest first."""
        total = await self._session.scalar(
            select(func.count())
            .select_from(OutboxMessageModel)
            .where(OutboxMessageModel.event_type == event_type)
        )

        stmt = (
            select(OutboxMessageModel)
            .where(OutboxMessageModel.event_type == event_type)
            .order_by(OutboxMessageModel.occurred_at.desc())
            .offset(page_index * page_size)
            .limit(page_size)
        )
        result = await self._session.execute(stmt)

        return OutboxPage(
            items=tuple(model.to_value_object() for model in result.scalars().all()),
            page_index=page_index,
            page_size=page_size,
            total=total or 0,
        )

    async def list_dead_letters(self, limit: int = 100) -> list[DeadLetterEntry]:
        stmt = (
            select(OutboxDeadLetterModel)
            .order_by(OutboxDeadLetterModel.dead_lettered_at.desc())
            .limit(limit)
        )
        result = await self._session.execute(stmt)
        return [model.to_value_object() for model in result.scalars().all()]

    async def requeue_dead_letter(self, dead_letter_id: UUID) -> UUID | None:
        """Move a dead-lettered record back into the outbox.

        The record re-enters as a new pending record with a fresh identifier
        and a zero retry count; identifiers are never reused.

        Returns:
            The identifier of the new outbox record, or None if the
            dead-letter record does not exist
        """
        dead_letter = await self._session.get(OutboxDeadLetterModel, dead_letter_id)
        if dead_letter is None:
            return None

        entry_id = await self.append(
            event_id=dead_letter.event_id,
            event_type=dead_letter.event_type,
            event_data=dead_letter.event_data,
            occurred_at=dead_letter.occurred_at,
        )
        await self._session.delete(dead_letter)
        return entry_id
