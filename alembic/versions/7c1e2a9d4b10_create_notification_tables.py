"""Create match, participant, notification and push subscription tables.

Revision ID: 7c1e2a9d4b10
Revises:
Create Date: 2026-10-18
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision = "7c1e2a9d4b10"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
  """Upgrade schema."""
  op.create_table(
    "matches",
    sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
    sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    sa.Column("date", sa.Date(), nullable=False),
    sa.Column("time", sa.Time(), nullable=False),
    sa.Column("field", sa.Text(), nullable=False),
    sa.Column("max_players", sa.Integer(), nullable=False),
    sa.PrimaryKeyConstraint("id"),
  )
  op.create_table(
    "participants",
    sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
    sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    sa.Column("match_id", postgresql.UUID(as_uuid=True), nullable=False),
    sa.Column("user_id", sa.Text(), nullable=False),
    sa.Column("name", sa.Text(), nullable=False),
    sa.Column("position", sa.String(length=3), nullable=False),
    sa.Column("team", sa.String(length=1), nullable=True),
    sa.Column("number", sa.Integer(), nullable=True),
    sa.ForeignKeyConstraint(["match_id"], ["matches.id"], ondelete="CASCADE"),
    sa.PrimaryKeyConstraint("id"),
  )
  op.create_index(op.f("ix_participants_match_id"), "participants", ["match_id"], unique=False)

  op.create_table(
    "notifications",
    sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
    sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    sa.Column("match_id", sa.Text(), nullable=False),
    sa.Column("user_id", sa.Text(), nullable=False),
    sa.Column("message", sa.Text(), nullable=False),
    sa.Column("is_read", sa.Boolean(), server_default=sa.text("false"), nullable=False),
    sa.PrimaryKeyConstraint("id"),
    sa.UniqueConstraint("match_id", "user_id", name="uq_notifications_match_user"),
  )
  op.create_index(op.f("ix_notifications_match_id"), "notifications", ["match_id"], unique=False)
  op.create_index(op.f("ix_notifications_user_id"), "notifications", ["user_id"], unique=False)

  op.create_table(
    "push_subscriptions",
    sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
    sa.Column("user_id", sa.Text(), nullable=False),
    sa.Column("subscription", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
    sa.Column("device_info", postgresql.JSONB(astext_type=sa.Text()), server_default=sa.text("'{}'::jsonb"), nullable=False),
    sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    sa.PrimaryKeyConstraint("id"),
    sa.UniqueConstraint("user_id"),
  )


def downgrade() -> None:
  """Downgrade schema."""
  op.drop_table("push_subscriptions")
  op.drop_index(op.f("ix_notifications_user_id"), table_name="notifications")
  op.drop_index(op.f("ix_notifications_match_id"), table_name="notifications")
  op.drop_table("notifications")
  op.drop_index(op.f("ix_participants_match_id"), table_name="participants")
  op.drop_table("participants")
  op.drop_table("matches")
