"""Repository helpers for push subscription persistence."""

from __future__ import annotations

import asyncio
import datetime
from dataclasses import replace

from sqlalchemy import delete, func, select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from calcio_arena.core.database import get_session_factory
from calcio_arena.notifications.contracts import NotificationPersistenceError, SubscriptionRecord
from calcio_arena.schema.push_subscriptions import PushSubscriptionRow


def _record_from_row(row: PushSubscriptionRow) -> SubscriptionRecord:
  return SubscriptionRecord(user_id=row.user_id, subscription=dict(row.subscription or {}), device_info=dict(row.device_info or {}), created_at=row.created_at, updated_at=row.updated_at)


class PushSubscriptionRepository:
  """Persist and manage the single push subscription of each user in Postgres."""

  def _session_factory(self):  # type: ignore[no-untyped-def]
    session_factory = get_session_factory()
    if session_factory is None:
      raise NotificationPersistenceError("Database connection is not configured.")
    return session_factory

  async def upsert(self, record: SubscriptionRecord) -> SubscriptionRecord:
    """Insert or overwrite the subscription row keyed by user."""
    try:
      async with self._session_factory()() as session:
        return await self._upsert_with_session(session=session, record=record)
    except SQLAlchemyError as exc:
      raise NotificationPersistenceError(f"Push subscription upsert failed: {exc}") from exc

  async def _upsert_with_session(self, *, session: AsyncSession, record: SubscriptionRecord) -> SubscriptionRecord:
    # Upsert by user so the most recently registered device wins.
    stmt = insert(PushSubscriptionRow).values(user_id=record.user_id, subscription=record.subscription, device_info=record.device_info)
    stmt = stmt.on_conflict_do_update(index_elements=["user_id"], set_={"subscription": stmt.excluded.subscription, "device_info": stmt.excluded.device_info, "updated_at": func.now()})
    stmt = stmt.returning(PushSubscriptionRow)
    result = await session.execute(stmt)
    row = result.scalar_one()
    await session.commit()
    return _record_from_row(row)

  async def list_for_users(self, *, user_ids: list[str]) -> list[SubscriptionRecord]:
    """List stored subscriptions for a set of users."""
    if not user_ids:
      return []

    try:
      async with self._session_factory()() as session:
        return await self._list_for_users_with_session(session=session, user_ids=user_ids)
    except SQLAlchemyError as exc:
      raise NotificationPersistenceError(f"Push subscription lookup failed: {exc}") from exc

  async def _list_for_users_with_session(self, *, session: AsyncSession, user_ids: list[str]) -> list[SubscriptionRecord]:
    stmt = select(PushSubscriptionRow).where(PushSubscriptionRow.user_id.in_(user_ids))
    result = await session.execute(stmt)
    return [_record_from_row(row) for row in result.scalars().all()]

  async def delete_for_user(self, *, user_id: str) -> None:
    try:
      async with self._session_factory()() as session:
        await session.execute(delete(PushSubscriptionRow).where(PushSubscriptionRow.user_id == user_id))
        await session.commit()
    except SQLAlchemyError as exc:
      raise NotificationPersistenceError(f"Push subscription delete failed: {exc}") from exc

  async def delete_by_endpoint(self, *, endpoint: str) -> list[str]:
    """Delete subscriptions pointing at an endpoint regardless of owner and return the affected users."""
    try:
      async with self._session_factory()() as session:
        return await self._delete_by_endpoint_with_session(session=session, endpoint=endpoint)
    except SQLAlchemyError as exc:
      raise NotificationPersistenceError(f"Push subscription delete failed: {exc}") from exc

  async def _delete_by_endpoint_with_session(self, *, session: AsyncSession, endpoint: str) -> list[str]:
    # Remove invalidated endpoints immediately to avoid repeated provider errors.
    stmt = delete(PushSubscriptionRow).where(PushSubscriptionRow.subscription["endpoint"].astext == endpoint).returning(PushSubscriptionRow.user_id)
    result = await session.execute(stmt)
    user_ids = [str(user_id) for user_id in result.scalars().all()]
    await session.commit()
    return user_ids


class InMemoryPushSubscriptionRepository:
  """Process-local subscription store with last-writer-wins semantics."""

  def __init__(self) -> None:
    self._rows: dict[str, SubscriptionRecord] = {}
    self._lock = asyncio.Lock()

  async def upsert(self, record: SubscriptionRecord) -> SubscriptionRecord:
    now = datetime.datetime.now(datetime.UTC)
    async with self._lock:
      existing = self._rows.get(record.user_id)
      created_at = existing.created_at if existing is not None else now
      stored = replace(record, subscription=dict(record.subscription), device_info=dict(record.device_info), created_at=created_at, updated_at=now)
      self._rows[record.user_id] = stored
    return stored

  async def list_for_users(self, *, user_ids: list[str]) -> list[SubscriptionRecord]:
    wanted = set(user_ids)
    return [record for user_id, record in self._rows.items() if user_id in wanted]

  async def delete_for_user(self, *, user_id: str) -> None:
    async with self._lock:
      self._rows.pop(user_id, None)

  async def delete_by_endpoint(self, *, endpoint: str) -> list[str]:
    async with self._lock:
      user_ids = [user_id for user_id, record in self._rows.items() if record.endpoint == endpoint]
      for user_id in user_ids:
        del self._rows[user_id]
    return user_ids
