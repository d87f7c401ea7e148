"""Read-only views of the match tables owned by the match management screens."""

from __future__ import annotations

import datetime
import uuid

from sqlalchemy import Date, DateTime, ForeignKey, Integer, String, Text, Time, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from calcio_arena.core.database import Base


class Match(Base):
  __tablename__ = "matches"

  id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
  created_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
  date: Mapped[datetime.date] = mapped_column(Date, nullable=False)
  time: Mapped[datetime.time] = mapped_column(Time, nullable=False)
  field: Mapped[str] = mapped_column(Text, nullable=False)
  max_players: Mapped[int] = mapped_column(Integer, nullable=False, default=10)


class Participant(Base):
  __tablename__ = "participants"

  id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
  created_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
  match_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("matches.id", ondelete="CASCADE"), index=True, nullable=False)
  user_id: Mapped[str] = mapped_column(Text, nullable=False)
  name: Mapped[str] = mapped_column(Text, nullable=False)
  position: Mapped[str] = mapped_column(String(3), nullable=False)
  team: Mapped[str | None] = mapped_column(String(1), nullable=True)
  number: Mapped[int | None] = mapped_column(Integer, nullable=True)
