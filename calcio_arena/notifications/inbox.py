"""Per-user notification inbox with real-time inserts."""

from __future__ import annotations

import inspect
import logging
import uuid
from collections.abc import Awaitable, Callable
from dataclasses import replace

from calcio_arena.notifications.contracts import NotificationRecord, NotificationStore
from calcio_arena.notifications.realtime import INSERT, ChangeFeed, FeedSubscription

logger = logging.getLogger(__name__)

InsertHandler = Callable[[NotificationRecord], Awaitable[None] | None]


class InboxSubscription:
  """Disposable handle returned by `NotificationInbox.subscribe`."""

  def __init__(self, feed_subscription: FeedSubscription) -> None:
    self._feed_subscription = feed_subscription

  @property
  def active(self) -> bool:
    return self._feed_subscription.active

  def unsubscribe(self) -> None:
    self._feed_subscription.unsubscribe()

  def __enter__(self) -> InboxSubscription:
    return self

  def __exit__(self, *_exc: object) -> None:
    self.unsubscribe()


class NotificationInbox:
  """Hold the loaded notifications of one user and keep them current."""

  def __init__(self, *, store: NotificationStore, change_feed: ChangeFeed) -> None:
    self._store = store
    self._change_feed = change_feed
    self._user_id: str | None = None
    self._items: list[NotificationRecord] = []

  @property
  def notifications(self) -> list[NotificationRecord]:
    return list(self._items)

  async def load(self, user_id: str) -> list[NotificationRecord]:
    """Replace the snapshot with the user's notifications, newest first."""
    self._user_id = user_id
    self._items = await self._store.list_for_user(user_id=user_id)
    return self.notifications

  async def mark_read(self, notification_id: uuid.UUID) -> bool:
    found = await self._store.mark_read(notification_id=notification_id, user_id=self._user_id)
    if found:
      self._items = [replace(item, is_read=True) if item.id == notification_id else item for item in self._items]
    return found

  async def mark_all_read(self, user_id: str | None = None) -> int:
    target = user_id or self._user_id
    if target is None:
      raise ValueError("mark_all_read needs a user id before load() has run.")

    marked = await self._store.mark_all_read(user_id=target)
    if target == self._user_id:
      self._items = [replace(item, is_read=True) for item in self._items]
    return marked

  def unread_count(self) -> int:
    return sum(1 for item in self._items if not item.is_read)

  def subscribe(self, user_id: str, on_insert: InsertHandler | None = None) -> InboxSubscription:
    """Listen for new notifications of `user_id`; release the handle on teardown."""

    async def _handle(row: dict) -> None:
      record = NotificationRecord.from_dict(row)
      if user_id == self._user_id and all(item.id != record.id for item in self._items):
        self._items.insert(0, record)
      if on_insert is not None:
        result = on_insert(record)
        if inspect.isawaitable(result):
          await result

    feed_subscription = self._change_feed.subscribe(table="notifications", event=INSERT, filters={"user_id": user_id}, handler=_handle)
    logger.debug("Inbox subscribed user_id=%s", user_id)
    return InboxSubscription(feed_subscription)
