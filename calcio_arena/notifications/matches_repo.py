"""Read access to the match and participant tables owned by the match screens."""

from __future__ import annotations

import datetime
import uuid
from dataclasses import dataclass, field

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from calcio_arena.core.database import get_session_factory
from calcio_arena.notifications.contracts import NotificationPersistenceError
from calcio_arena.schema.matches import Match, Participant


@dataclass(frozen=True)
class MatchSummary:
  """The match fields needed to phrase a reminder."""

  id: str
  date: datetime.date
  time: datetime.time
  field: str


def default_reminder_message(match: MatchSummary) -> str:
  """Build the reminder text sent when an organiser does not write one."""
  day = f"{match.date.day}/{match.date.month}/{match.date.year}"
  return f"Reminder: the match at {match.field} is confirmed for {day} at {match.time.strftime('%H:%M')}"


def _parse_match_id(match_id: str) -> uuid.UUID | None:
  try:
    return uuid.UUID(str(match_id))
  except ValueError:
    return None


class MatchRepository:
  """Look up matches and their rosters in Postgres."""

  def _session_factory(self):  # type: ignore[no-untyped-def]
    session_factory = get_session_factory()
    if session_factory is None:
      raise NotificationPersistenceError("Database connection is not configured.")
    return session_factory

  async def get_match(self, match_id: str) -> MatchSummary | None:
    parsed = _parse_match_id(match_id)
    if parsed is None:
      return None

    try:
      async with self._session_factory()() as session:
        return await self._get_match_with_session(session=session, match_id=parsed)
    except SQLAlchemyError as exc:
      raise NotificationPersistenceError(f"Match lookup failed: {exc}") from exc

  async def _get_match_with_session(self, *, session: AsyncSession, match_id: uuid.UUID) -> MatchSummary | None:
    row = await session.get(Match, match_id)
    if row is None:
      return None
    return MatchSummary(id=str(row.id), date=row.date, time=row.time, field=row.field)

  async def list_participant_ids(self, match_id: str) -> list[str]:
    """Return every participant user id of a match, guests included."""
    parsed = _parse_match_id(match_id)
    if parsed is None:
      return []

    try:
      async with self._session_factory()() as session:
        result = await session.execute(select(Participant.user_id).where(Participant.match_id == parsed).order_by(Participant.created_at))
        return [str(user_id) for user_id in result.scalars().all()]
    except SQLAlchemyError as exc:
      raise NotificationPersistenceError(f"Participant lookup failed: {exc}") from exc


@dataclass
class InMemoryMatchRepository:
  """Match lookups backed by dictionaries, used without Postgres."""

  matches: dict[str, MatchSummary] = field(default_factory=dict)
  participants: dict[str, list[str]] = field(default_factory=dict)

  def add_match(self, match: MatchSummary, participant_ids: list[str] | None = None) -> None:
    self.matches[match.id] = match
    self.participants[match.id] = list(participant_ids or [])

  async def get_match(self, match_id: str) -> MatchSummary | None:
    return self.matches.get(match_id)

  async def list_participant_ids(self, match_id: str) -> list[str]:
    return list(self.participants.get(match_id, []))
