"""SQLAlchemy ORM models for the outbox and dead-letter tables.

The outbox table stores domain events that need to be delivered to the
message broker. Records are written in the same transaction as the
aggregate changes that raised the events.
"""

from __future__ import annotations

from datetime import UTC, datetime
from uuid import UUID, uuid4

from sqlalchemy import DateTime, Index, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from infrastructure.database.models import Base, TimestampMixin, _utc_now
from shared_kernel.outbox.value_objects import (
    DeadLetterEntry,
    DeadLetterReason,
    OutboxEntry,
)

ERROR_MAX_LENGTH = 1000


def truncate_error(error: str | None) -> str | None:
    """Fit an error message into the error column."""
    if error is None or len(error) <= ERROR_MAX_LENGTH:
        return error
    return error[: ERROR_MAX_LENGTH - 3] + "..."


def as_utc(value: datetime | None) -> datetime | None:
    # Drivers without timezone support hand back naive values stored as UTC
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


class OutboxMessageModel(TimestampMixin, Base):
    """ORM model for the outbox_messages table.

    A record is pending while processed_at is NULL. The publisher only
    ever updates processed_at, error and retry_count; updated_at marks the
    last failure and starts the retry backoff.
    """

    __tablename__ = "outbox_messages"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    event_id: Mapped[UUID] = mapped_column(Uuid, nullable=False, index=True)
    event_type: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    event_data: Mapped[str] = mapped_column(Text, nullable=False)
    occurred_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, index=True
    )
    processed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True, index=True
    )
    error: Mapped[str | None] = mapped_column(String(ERROR_MAX_LENGTH), nullable=True)
    retry_count: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default="0"
    )

    __table_args__ = (
        Index(
            "ix_outbox_messages_processed_at_retry_count",
            "processed_at",
            "retry_count",
        ),
    )

    def to_value_object(self) -> OutboxEntry:
        """Convert the ORM model to a domain value object."""
        return OutboxEntry(
            id=self.id,
            event_id=self.event_id,
            event_type=self.event_type,
            event_data=self.event_data,
            occurred_at=as_utc(self.occurred_at),
            processed_at=as_utc(self.processed_at),
            created_at=as_utc(self.created_at),
            retry_count=self.retry_count,
            error=self.error,
            updated_at=as_utc(self.updated_at),
        )

    def __repr__(self) -> str:
        """Return string representation."""
        return (
            f"<OutboxMessageModel(id={self.id}, event_type={self.event_type}, "
            f"processed_at={self.processed_at}, retry_count={self.retry_count})>"
        )


class OutboxDeadLetterModel(Base):
    """ORM model for the outbox_dead_letters table.

    Append-only: rows are inserted when a record leaves the outbox
    undelivered and removed only when requeued.
    """

    __tablename__ = "outbox_dead_letters"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    outbox_id: Mapped[UUID] = mapped_column(Uuid, nullable=False)
    event_id: Mapped[UUID] = mapped_column(Uuid, nullable=False, index=True)
    event_type: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    event_data: Mapped[str] = mapped_column(Text, nullable=False)
    occurred_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
    error: Mapped[str | None] = mapped_column(String(ERROR_MAX_LENGTH), nullable=True)
    retry_count: Mapped[int] = mapped_column(Integer, nullable=False)
    reason: Mapped[str] = mapped_column(String(50), nullable=False)
    dead_lettered_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, insert_default=_utc_now, index=True
    )

    def to_value_object(self) -> DeadLetterEntry:
        """Convert the ORM model to a domain value object."""
        return DeadLetterEntry(
            id=self.id,
            outbox_id=self.outbox_id,
            event_id=self.event_id,
            event_type=self.event_type,
            event_data=self.event_data,
            occurred_at=as_utc(self.occurred_at),
            error=self.error,
            retry_count=self.retry_count,
            reason=DeadLetterReason(self.reason),
            dead_lettered_at=as_utc(self.dead_lettered_at),
        )

    def __repr__(self) -> str:
        """Return string representation."""
        return (
            f"<OutboxDeadLetterModel(id={self.id}, event_type={self.event_type}, "
            f"reason={self.reason})>"
        )
