"""SQLAlchemy model for match notifications."""

from __future__ import annotations

import datetime
import uuid

from sqlalchemy import Boolean, DateTime, Text, UniqueConstraint, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from calcio_arena.core.database import Base


class Notification(Base):
  """Persist one notification per (match, user); repeated reminders update the row."""

  __tablename__ = "notifications"
  __table_args__ = (UniqueConstraint("match_id", "user_id", name="uq_notifications_match_user"),)

  id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
  created_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
  match_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)
  user_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)
  message: Mapped[str] = mapped_column(Text, nullable=False)
  is_read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")
