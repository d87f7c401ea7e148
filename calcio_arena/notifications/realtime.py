"""In-process real-time change feed for table events."""

from __future__ import annotations

import inspect
import itertools
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any

logger = logging.getLogger(__name__)

ChangeHandler = Callable[[dict[str, Any]], Awaitable[None] | None]

INSERT = "INSERT"
UPDATE = "UPDATE"


@dataclass
class _Listener:
  key: int
  table: str
  event: str
  filters: dict[str, str]
  handler: ChangeHandler

  def matches(self, *, table: str, event: str, row: dict[str, Any]) -> bool:
    if table != self.table or event != self.event:
      return False
    return all(str(row.get(column)) == value for column, value in self.filters.items())


@dataclass
class FeedSubscription:
  """Disposable handle for a feed listener; release it on teardown."""

  feed: ChangeFeed
  key: int
  released: bool = field(default=False)

  @property
  def active(self) -> bool:
    return not self.released

  def unsubscribe(self) -> None:
    if self.released:
      return
    self.feed._remove(self.key)
    self.released = True

  def __enter__(self) -> FeedSubscription:
    return self

  def __exit__(self, *_exc: object) -> None:
    self.unsubscribe()


class ChangeFeed:
  """Deliver table change events to listeners filtered by table, event type and column equality."""

  def __init__(self) -> None:
    self._listeners: dict[int, _Listener] = {}
    self._keys = itertools.count(1)

  def subscribe(self, *, table: str, handler: ChangeHandler, event: str = INSERT, filters: dict[str, str] | None = None) -> FeedSubscription:
    key = next(self._keys)
    self._listeners[key] = _Listener(key=key, table=table, event=event, filters={k: str(v) for k, v in (filters or {}).items()}, handler=handler)
    logger.debug("Change feed listener added key=%s table=%s event=%s filters=%s", key, table, event, filters)
    return FeedSubscription(feed=self, key=key)

  def _remove(self, key: int) -> None:
    self._listeners.pop(key, None)
    logger.debug("Change feed listener removed key=%s", key)

  def listener_count(self) -> int:
    return len(self._listeners)

  async def publish(self, *, table: str, event: str, row: dict[str, Any]) -> int:
    """Deliver one change to every matching listener and return how many received it."""
    delivered = 0
    # Snapshot listeners so handlers may unsubscribe while being notified.
    for listener in list(self._listeners.values()):
      if not listener.matches(table=table, event=event, row=row):
        continue
      try:
        result = listener.handler(dict(row))
        if inspect.isawaitable(result):
          await result
        delivered += 1
      except Exception as exc:  # noqa: BLE001
        logger.error("Change feed handler failed key=%s table=%s event=%s error=%s", listener.key, table, event, exc, exc_info=True)
    return delivered


@lru_cache(maxsize=1)
def get_change_feed() -> ChangeFeed:
  """Return the process-wide change feed."""
  return ChangeFeed()
