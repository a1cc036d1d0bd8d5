"""create_outbox_notify_trigger

Create a PostgreSQL trigger that sends NOTIFY when rows are inserted into
outbox_messages. The publisher may listen on the channel to poll early;
polling on its interval still delivers everything without it.

Revision ID: c5d7e1f30a42
Revises: 8b4e2f6a9c31
Create Date: 2026-09-14 11:12:55.846120

"""

from typing import Sequence, Union

from alembic import op


# revision identifiers, used by Alembic.
revision: str = "c5d7e1f30a42"
down_revision: Union[str, Sequence[str], None] = "8b4e2f6a9c31"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.execute("""
        CREATE OR REPLACE FUNCTION notify_outbox_messages_insert()
        RETURNS TRIGGER AS $$
        BEGIN
            PERFORM pg_notify('outbox_events', NEW.id::text);
            RETURN NEW;
        END;
        $$ LANGUAGE plpgsql;
    """)

    op.execute("""
        CREATE TRIGGER outbox_messages_after_insert
            AFTER INSERT ON outbox_messages
            FOR EACH ROW
            EXECUTE FUNCTION notify_outbox_messages_insert();
    """)


def downgrade() -> None:
    """Downgrade schema."""
    op.execute(
        "DROP TRIGGER IF EXISTS outbox_messages_after_insert ON outbox_messages;"
    )
    op.execute("DROP FUNCTION IF EXISTS notify_outbox_messages_insert();")
