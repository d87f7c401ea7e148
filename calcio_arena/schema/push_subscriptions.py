"""SQLAlchemy model for browser Web Push subscriptions."""

from __future__ import annotations

import datetime
import uuid
from typing import Any

from sqlalchemy import DateTime, Text, func
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from calcio_arena.core.database import Base


class PushSubscriptionRow(Base):
  """Persist the single push subscription owned by a user."""

  __tablename__ = "push_subscriptions"

  id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
  user_id: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
  subscription: Mapped[dict[str, Any]] = mapped_column(JSONB, nullable=False)
  device_info: Mapped[dict[str, Any]] = mapped_column(JSONB, nullable=False, server_default="{}")
  created_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
  updated_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())
