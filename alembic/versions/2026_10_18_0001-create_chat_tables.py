"""create sessions, students and messages tables

Revision ID: create_chat_tables
Revises:
Create Date: 2026-10-18 00:01:00

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "create_chat_tables"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema: sessions, students and messages tables."""
    op.create_table(
        "sessions",
        sa.Column("session_id", sa.String(length=16), nullable=False),
        sa.Column(
            "created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()
        ),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("teacher_id", sa.String(length=256), nullable=True),
        sa.PrimaryKeyConstraint("session_id"),
    )
    op.create_index("ix_sessions_status", "sessions", ["status"], unique=False)
    op.create_index("ix_sessions_teacher_id", "sessions", ["teacher_id"], unique=False)

    op.create_table(
        "students",
        sa.Column("persistent_id", sa.String(length=512), nullable=False),
        sa.Column("session_id", sa.String(length=16), nullable=False),
        sa.Column("username", sa.String(length=256), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("last_active", sa.String(length=64), nullable=True),
        sa.Column("socket_id", sa.String(length=128), nullable=True),
        sa.PrimaryKeyConstraint("persistent_id"),
        sa.ForeignKeyConstraint(["session_id"], ["sessions.session_id"]),
    )
    op.create_index(
        "ix_students_session_id", "students", ["session_id"], unique=False
    )

    op.create_table(
        "messages",
        sa.Column("id", sa.String(length=64), nullable=False),
        sa.Column("session_id", sa.String(length=16), nullable=False),
        sa.Column("sender", sa.String(length=512), nullable=False),
        sa.Column("sender_name", sa.String(length=256), nullable=True),
        sa.Column("text", sa.Text(), nullable=False),
        sa.Column("timestamp", sa.String(length=64), nullable=False),
        sa.Column("type", sa.String(length=16), nullable=False),
        sa.Column("role", sa.String(length=16), nullable=False),
        sa.Column("recipient", sa.String(length=512), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["session_id"], ["sessions.session_id"]),
    )
    op.create_index(
        "ix_messages_session_id_timestamp",
        "messages",
        ["session_id", "timestamp"],
        unique=False,
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index("ix_messages_session_id_timestamp", table_name="messages")
    op.drop_table("messages")
    op.drop_index("ix_students_session_id", table_name="students")
    op.drop_table("students")
    op.drop_index("ix_sessions_teacher_id", table_name="sessions")
    op.drop_index("ix_sessions_status", table_name="sessions")
    op.drop_table("sessions")
