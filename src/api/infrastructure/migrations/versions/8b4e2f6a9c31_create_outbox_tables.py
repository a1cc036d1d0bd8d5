"""create_outbox_tables

Create the outbox_messages table for the transactional outbox pattern and
the outbox_dead_letters table holding records that could not be delivered.

Revision ID: 8b4e2f6a9c31
Revises: 3f1c9a7d2b10
Create Date: 2026-09-14 10:31:07.502914

"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op


# revision identifiers, used by Alembic.
revision: str = "8b4e2f6a9c31"
down_revision: Union[str, Sequence[str], None] = "3f1c9a7d2b10"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        "outbox_messages",
        sa.Column(
            "id",
            sa.UUID(),
            nullable=False,
            server_default=sa.text("gen_random_uuid()"),
        ),
        sa.Column("event_id", sa.UUID(), nullable=False),
        sa.Column(
            "event_type", sa.String(length=255), nullable=False
        ),  # e.g., "UserRegistered"
        sa.Column("event_data", sa.Text(), nullable=False),  # JSON string
        sa.Column("occurred_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column(
            "processed_at", sa.DateTime(timezone=True), nullable=True
        ),  # NULL until published
        sa.Column("error", sa.String(length=1000), nullable=True),
        sa.Column(
            "retry_count",
            sa.Integer(),
            nullable=False,
            server_default=sa.text("0"),
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("NOW()"),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("NOW()"),
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_outbox_messages_event_id", "outbox_messages", ["event_id"], unique=False
    )
    op.create_index(
        "ix_outbox_messages_event_type", "outbox_messages", ["event_type"], unique=False
    )
    op.create_index(
        "ix_outbox_messages_occurred_at",
        "outbox_messages",
        ["occurred_at"],
        unique=False,
    )
    op.create_index(
        "ix_outbox_messages_processed_at",
        "outbox_messages",
        ["processed_at"],
        unique=False,
    )
    op.create_index(
        "ix_outbox_messages_processed_at_retry_count",
        "outbox_messages",
        ["processed_at", "retry_count"],
        unique=False,
    )
    # Partial index for the publisher's fetch of pending records
    op.create_index(
        "idx_outbox_messages_pending",
        "outbox_messages",
        ["occurred_at", "created_at"],
        unique=False,
        postgresql_where=sa.text("processed_at IS NULL"),
    )

    op.create_table(
        "outbox_dead_letters",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("outbox_id", sa.UUID(), nullable=False),
        sa.Column("event_id", sa.UUID(), nullable=False),
        sa.Column("event_type", sa.String(length=255), nullable=False),
        sa.Column("event_data", sa.Text(), nullable=False),
        sa.Column("occurred_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("error", sa.String(length=1000), nullable=True),
        sa.Column("retry_count", sa.Integer(), nullable=False),
        sa.Column(
            "reason", sa.String(length=50), nullable=False
        ),  # retries_exhausted | undeserializable
        sa.Column(
            "dead_lettered_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("NOW()"),
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_outbox_dead_letters_event_id",
        "outbox_dead_letters",
        ["event_id"],
        unique=False,
    )
    op.create_index(
        "ix_outbox_dead_letters_event_type",
        "outbox_dead_letters",
        ["event_type"],
        unique=False,
    )
    op.create_index(
        "ix_outbox_dead_letters_dead_lettered_at",
        "outbox_dead_letters",
        ["dead_lettered_at"],
        unique=False,
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index(
        "ix_outbox_dead_letters_dead_lettered_at", table_name="outbox_dead_letters"
    )
    op.drop_index("ix_outbox_dead_letters_event_type", table_name="outbox_dead_letters")
    op.drop_index("ix_outbox_dead_letters_event_id", table_name="outbox_dead_letters")
    op.drop_table("outbox_dead_letters")

    op.drop_index("idx_outbox_messages_pending", table_name="outbox_messages")
    op.drop_index(
        "ix_outbox_messages_processed_at_retry_count", table_name="outbox_messages"
    )
    op.drop_index("ix_outbox_messages_processed_at", table_name="outbox_messages")
    op.drop_index("ix_outbox_messages_occurred_at", table_name="outbox_messages")
    op.drop_index("ix_outbox_messages_event_type", table_name="outbox_messages")
    op.drop_index("ix_outbox_messages_event_id", table_name="outbox_messages")
    op.drop_table("outbox_messages")
