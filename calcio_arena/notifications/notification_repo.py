"""Repository helpers for match notification persistence."""

from __future__ import annotations

import asyncio
import datetime
import logging
import uuid
from collections.abc import Sequence
from dataclasses import replace
from typing import Any

from sqlalchemy import desc, literal_column, select, update
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from calcio_arena.core.database import get_session_factory
from calcio_arena.notifications.contracts import NotificationEntry, NotificationPersistenceError, NotificationRecord
from calcio_arena.notifications.realtime import INSERT, UPDATE, ChangeFeed
from calcio_arena.schema.notifications import Notification

logger = logging.getLogger(__name__)

TABLE = "notifications"


def _record_from_row(row: Any) -> NotificationRecord:
  return NotificationRecord(id=row.id, created_at=row.created_at, match_id=row.match_id, user_id=row.user_id, message=row.message, is_read=bool(row.is_read))


class NotificationRepository:
  """Persist notifications in Postgres with upsert-by-(match_id, user_id) semantics."""

  def __init__(self, *, change_feed: ChangeFeed | None = None) -> None:
    self._change_feed = change_feed

  def _session_factory(self):  # type: ignore[no-untyped-def]
    session_factory = get_session_factory()
    if session_factory is None:
      raise NotificationPersistenceError("Database connection is not configured.")
    return session_factory

  async def upsert_many(self, entries: list[NotificationEntry]) -> list[NotificationRecord]:
    """Write every entry in one statement; any failure fails the whole batch."""
    if not entries:
      return []

    try:
      async with self._session_factory()() as session:
        rows = await self._upsert_many_with_session(session=session, entries=entries)
    except SQLAlchemyError as exc:
      raise NotificationPersistenceError(f"Notification upsert failed: {exc}") from exc

    records = [record for record, _ in rows]
    await self._publish(rows)
    return records

  async def _upsert_many_with_session(self, *, session: AsyncSession, entries: list[NotificationEntry]) -> list[tuple[NotificationRecord, bool]]:
    # Re-notify: a conflicting row takes the latest message and becomes unread again.
    stmt = insert(Notification).values([{"id": uuid.uuid4(), "match_id": entry.match_id, "user_id": entry.user_id, "message": entry.message, "is_read": False} for entry in entries])
    stmt = stmt.on_conflict_do_update(index_elements=["match_id", "user_id"], set_={"message": stmt.excluded.message, "is_read": False})
    # xmax is zero only for rows created by this statement.
    stmt = stmt.returning(Notification.id, Notification.created_at, Notification.match_id, Notification.user_id, Notification.message, Notification.is_read, literal_column("(xmax = 0)").label("inserted"))
    result = await session.execute(stmt)
    rows = result.all()
    await session.commit()
    return [(_record_from_row(row), bool(row.inserted)) for row in rows]

  async def _publish(self, rows: Sequence[tuple[NotificationRecord, bool]]) -> None:
    if self._change_feed is None:
      return
    for record, inserted in rows:
      await self._change_feed.publish(table=TABLE, event=INSERT if inserted else UPDATE, row=record.to_dict())

  async def list_for_user(self, *, user_id: str) -> list[NotificationRecord]:
    try:
      async with self._session_factory()() as session:
        return await self._list_for_user_with_session(session=session, user_id=user_id)
    except SQLAlchemyError as exc:
      raise NotificationPersistenceError(f"Notification lookup failed: {exc}") from exc

  async def _list_for_user_with_session(self, *, session: AsyncSession, user_id: str) -> list[NotificationRecord]:
    stmt = select(Notification).where(Notification.user_id == user_id).order_by(desc(Notification.created_at))
    result = await session.execute(stmt)
    return [_record_from_row(row) for row in result.scalars().all()]

  async def mark_read(self, *, notification_id: uuid.UUID, user_id: str | None = None) -> bool:
    try:
      async with self._session_factory()() as session:
        return await self._mark_read_with_session(session=session, notification_id=notification_id, user_id=user_id)
    except SQLAlchemyError as exc:
      raise NotificationPersistenceError(f"Notification update failed: {exc}") from exc

  async def _mark_read_with_session(self, *, session: AsyncSession, notification_id: uuid.UUID, user_id: str | None) -> bool:
    # Constrain by owner when known so users cannot mark other inboxes.
    stmt = update(Notification).where(Notification.id == notification_id)
    if user_id is not None:
      stmt = stmt.where(Notification.user_id == user_id)
    result = await session.execute(stmt.values(is_read=True))
    await session.commit()
    return bool(result.rowcount)

  async def mark_all_read(self, *, user_id: str) -> int:
    try:
      async with self._session_factory()() as session:
        return await self._mark_all_read_with_session(session=session, user_id=user_id)
    except SQLAlchemyError as exc:
      raise NotificationPersistenceError(f"Notification update failed: {exc}") from exc

  async def _mark_all_read_with_session(self, *, session: AsyncSession, user_id: str) -> int:
    stmt = update(Notification).where(Notification.user_id == user_id, Notification.is_read.is_(False)).values(is_read=True)
    result = await session.execute(stmt)
    await session.commit()
    return int(result.rowcount or 0)


class InMemoryNotificationRepository:
  """Process-local notification store with the same upsert semantics, used without Postgres."""

  def __init__(self, *, change_feed: ChangeFeed | None = None) -> None:
    self._change_feed = change_feed
    self._rows: dict[tuple[str, str], NotificationRecord] = {}
    self._lock = asyncio.Lock()

  async def upsert_many(self, entries: list[NotificationEntry]) -> list[NotificationRecord]:
    changes: list[tuple[NotificationRecord, bool]] = []
    async with self._lock:
      for entry in entries:
        key = (entry.match_id, entry.user_id)
        existing = self._rows.get(key)
        if existing is None:
          record = NotificationRecord(id=uuid.uuid4(), created_at=datetime.datetime.now(datetime.UTC), match_id=entry.match_id, user_id=entry.user_id, message=entry.message, is_read=False)
        else:
          record = replace(existing, message=entry.message, is_read=False)
        self._rows[key] = record
        changes.append((record, existing is None))

    if self._change_feed is not None:
      for record, inserted in changes:
        await self._change_feed.publish(table=TABLE, event=INSERT if inserted else UPDATE, row=record.to_dict())
    return [record for record, _ in changes]

  async def list_for_user(self, *, user_id: str) -> list[NotificationRecord]:
    rows = [record for record in self._rows.values() if record.user_id == user_id]
    return sorted(rows, key=lambda record: record.created_at, reverse=True)

  async def mark_read(self, *, notification_id: uuid.UUID, user_id: str | None = None) -> bool:
    async with self._lock:
      for key, record in self._rows.items():
        if record.id != notification_id or (user_id is not None and record.user_id != user_id):
          continue
        self._rows[key] = replace(record, is_read=True)
        return True
    return False

  async def mark_all_read(self, *, user_id: str) -> int:
    marked = 0
    async with self._lock:
      for key, record in self._rows.items():
        if record.user_id == user_id and not record.is_read:
          self._rows[key] = replace(record, is_read=True)
          marked += 1
    return marked

  def all_rows(self) -> list[NotificationRecord]:
    return list(self._rows.values())
