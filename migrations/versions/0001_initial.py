"""initial schema

Revision ID: 0001
Revises:
Create Date: 2026-10-19
"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision = "0001"
down_revision = None
branch_labels = None
depends_on = None

_TS = postgresql.TIMESTAMP(timezone=True)
_UUID = postgresql.UUID(as_uuid=True)


def upgrade() -> None:
    op.create_table(
        "conversations",
        sa.Column("id", _UUID, primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("kind", sa.String(20), nullable=False),
        sa.Column("name", sa.String(100), nullable=True),
        sa.Column("image", sa.String(2048), nullable=True),
        sa.Column("admin_id", sa.BigInteger, nullable=True),
        sa.Column("direct_key", sa.String(64), nullable=True),
        sa.Column("last_message_at", _TS, nullable=True),
        sa.Column("created_at", _TS, nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", _TS, nullable=False, server_default=sa.text("now()")),
        sa.UniqueConstraint("direct_key", name="uq_conversations_direct_key"),
    )
    op.create_index(
        "ix_conversations_last_activity", "conversations", ["last_message_at", "created_at"],
    )

    op.create_table(
        "participants",
        sa.Column(
            "conversation_id", _UUID,
            sa.ForeignKey("conversations.id", ondelete="CASCADE"), primary_key=True,
        ),
        sa.Column("user_id", sa.BigInteger, primary_key=True),
        sa.Column("joined_at", _TS, nullable=False, server_default=sa.text("now()")),
    )
    op.create_index("ix_participants_user", "participants", ["user_id", "conversation_id"])

    op.create_table(
        "messages",
        sa.Column("id", _UUID, primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("seq", sa.BigInteger, sa.Identity(), nullable=False),
        sa.Column(
            "conversation_id", _UUID,
            sa.ForeignKey("conversations.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("sender_id", sa.BigInteger, nullable=True),
        sa.Column("type", sa.String(20), nullable=False),
        sa.Column("content", sa.Text, nullable=True),
        sa.Column("image", sa.String(2048), nullable=True),
        sa.Column("client_msg_id", _UUID, nullable=True),
        sa.Column("created_at", _TS, nullable=False, server_default=sa.text("now()")),
        sa.UniqueConstraint("seq", name="uq_messages_seq"),
        sa.UniqueConstraint(
            "conversation_id", "sender_id", "client_msg_id", name="uq_message_idempotency",
        ),
    )
    op.create_index(
        "ix_messages_conversation_timeline", "messages", ["conversation_id", "created_at", "seq"],
    )

    op.create_table(
        "message_receipts",
        sa.Column(
            "message_id", _UUID,
            sa.ForeignKey("messages.id", ondelete="CASCADE"), primary_key=True,
        ),
        sa.Column("user_id", sa.BigInteger, primary_key=True),
        sa.Column(
            "conversation_id", _UUID,
            sa.ForeignKey("conversations.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("seen_at", _TS, nullable=False, server_default=sa.text("now()")),
    )
    op.create_index(
        "ix_message_receipts_conversation_user",
        "message_receipts",
        ["conversation_id", "user_id"],
    )

    op.create_table(
        "read_state",
        sa.Column(
            "conversation_id", _UUID,
            sa.ForeignKey("conversations.id", ondelete="CASCADE"), primary_key=True,
        ),
        sa.Column("user_id", sa.BigInteger, primary_key=True),
        sa.Column("unread_count", sa.Integer, nullable=False, server_default=sa.text("0")),
        sa.Column(
            "last_seen_message_id", _UUID,
            sa.ForeignKey("messages.id", ondelete="SET NULL"), nullable=True,
        ),
        sa.Column("last_seen_at", _TS, nullable=True),
        sa.Column("updated_at", _TS, nullable=False, server_default=sa.text("now()")),
        sa.CheckConstraint("unread_count >= 0", name="ck_read_state_unread_non_negative"),
    )
    op.create_index("ix_read_state_user", "read_state", ["user_id", "unread_count"])

    op.create_table(
        "outbox_messages",
        sa.Column("id", sa.BigInteger, primary_key=True, autoincrement=True),
        sa.Column("event_type", sa.String(64), nullable=False),
        sa.Column("payload", postgresql.JSONB, nullable=False),
        sa.Column("status", sa.String(16), nullable=False, server_default=sa.text("'pending'")),
        sa.Column("attempts", sa.Integer, nullable=False, server_default=sa.text("0")),
        sa.Column("last_error", sa.Text, nullable=True),
        sa.Column("next_retry_at", _TS, nullable=True),
        sa.Column("published_at", _TS, nullable=True),
        sa.Column("created_at", _TS, nullable=False, server_default=sa.text("now()")),
        sa.CheckConstraint(
            "status IN ('pending', 'processing', 'failed', 'sent', 'dead')",
            name="ck_outbox_messages_outbox_status",
        ),
    )
    op.create_index(
        "ix_outbox_pending", "outbox_messages", ["status", "next_retry_at", "created_at"],
    )
    op.create_index("ix_outbox_published", "outbox_messages", ["published_at"])


def downgrade() -> None:
    op.drop_table("outbox_messages")
    op.drop_table("read_state")
    op.drop_table("message_receipts")
    op.drop_table("messages")
    op.drop_table("participants")
    op.drop_table("conversations")
