"""Background delivery worker driven by lifecycle, push, click and fetch events."""

from __future__ import annotations

import logging
from typing import Any, Literal, Protocol

from calcio_arena.notifications.contracts import InvalidPushPayloadError
from calcio_arena.notifications.payloads import PushPayload, convert_push_payload, decode_push_payload, notification_options
from calcio_arena.worker.cache import CacheStorage
from calcio_arena.worker.channel import ChannelMessage, MessageType, decode_message
from calcio_arena.worker.fetch import Fetcher, FetchRequest, FetchResponse

logger = logging.getLogger(__name__)

CACHE_NAME = "calcio-arena-v1"
PRECACHE_ASSETS = ("/", "/index.html", "/manifest.json", "/favicon.ico", "/icon-192.png")
DISMISS_ACTION = "dismiss"

ClickOutcome = Literal["dismissed", "focused", "opened", "none"]


class NotificationDisplay(Protocol):
  async def show_notification(self, title: str, options: dict[str, Any]) -> None: ...


class ShownNotification(Protocol):
  @property
  def data(self) -> dict[str, Any]: ...

  def close(self) -> None: ...


class WindowClient(Protocol):
  @property
  def url(self) -> str: ...

  async def post_message(self, message: ChannelMessage) -> None: ...

  async def focus(self) -> None: ...


class Clients(Protocol):
  async def match_all(self) -> list[WindowClient]:
    """Every open window client, controlled or not."""

  async def open_window(self, url: str) -> WindowClient | None: ...


class DeliveryWorker:
  """Render notifications and keep an offline copy of the app shell.

  Every handler logs and absorbs its own failures so that one bad event never stops the
  worker from handling the next one.
  """

  def __init__(
    self, *, origin: str, cache_storage: CacheStorage, fetcher: Fetcher, display: NotificationDisplay, clients: Clients, cache_name: str = CACHE_NAME, precache_assets: tuple[str, ...] = PRECACHE_ASSETS
  ) -> None:
    self._origin = origin.rstrip("/")
    self._cache_storage = cache_storage
    self._fetcher = fetcher
    self._display = display
    self._clients = clients
    self._cache_name = cache_name
    self._precache_assets = precache_assets

  @property
  def cache_name(self) -> str:
    return self._cache_name

  async def on_install(self) -> int:
    """Warm the shell cache; assets that fail to load are skipped."""
    cache = await self._cache_storage.open(self._cache_name)
    cached = 0
    for asset in self._precache_assets:
      request = FetchRequest(url=asset)
      try:
        response = await self._fetcher.fetch(request)
      except Exception as exc:  # noqa: BLE001
        logger.warning("Precache fetch failed asset=%s error=%s", asset, exc)
        continue

      if not response.ok:
        logger.warning("Precache skipped asset=%s status=%s", asset, response.status)
        continue

      await cache.put(request, response)
      cached += 1

    logger.info("Worker installed cache=%s cached=%s total=%s", self._cache_name, cached, len(self._precache_assets))
    return cached

  async def on_activate(self) -> list[str]:
    """Delete every cache from an older generation."""
    deleted: list[str] = []
    for name in await self._cache_storage.keys():
      if name != self._cache_name and await self._cache_storage.delete(name):
        deleted.append(name)

    logger.info("Worker activated cache=%s deleted=%s", self._cache_name, deleted)
    return deleted

  async def on_push(self, data: bytes | str | None) -> PushPayload | None:
    if not data:
      logger.warning("Push event without data ignored")
      return None

    try:
      payload = decode_push_payload(data)
    except InvalidPushPayloadError as exc:
      logger.warning("Dropping malformed push payload: %s", exc)
      return None

    return await self._show(payload)

  async def on_message(self, message: ChannelMessage | bytes | str) -> PushPayload | None:
    """Render push-shaped messages posted by the page."""
    try:
      if not isinstance(message, ChannelMessage):
        message = decode_message(message)
      if message.type != MessageType.PUSH_NOTIFICATION:
        logger.debug("Worker ignoring message type=%s", message.type)
        return None
      payload = convert_push_payload(message.payload)
    except InvalidPushPayloadError as exc:
      logger.warning("Dropping malformed worker message: %s", exc)
      return None

    return await self._show(payload)

  async def _show(self, payload: PushPayload) -> PushPayload | None:
    try:
      await self._display.show_notification(payload.title, notification_options(payload))
    except Exception as exc:  # noqa: BLE001
      logger.error("Showing notification failed tag=%s error=%s", payload.tag, exc, exc_info=True)
      return None
    return payload

  def _same_origin(self, client: WindowClient) -> bool:
    return client.url == self._origin or client.url.startswith(f"{self._origin}/")

  async def on_notification_click(self, notification: ShownNotification, action: str | None = None) -> ClickOutcome:
    """Focus an open window (reusing it before opening a new one) and pass the data along."""
    notification.close()
    if action == DISMISS_ACTION:
      return "dismissed"

    data = dict(notification.data or {})
    url = str(data.get("url") or "/")
    try:
      for client in await self._clients.match_all():
        if not self._same_origin(client):
          continue
        await client.post_message(ChannelMessage(type=MessageType.NOTIFICATION_CLICK, payload=data))
        await client.focus()
        return "focused"

      opened = await self._clients.open_window(url)
    except Exception as exc:  # noqa: BLE001
      logger.error("Notification click handling failed url=%s error=%s", url, exc, exc_info=True)
      return "none"
    return "opened" if opened is not None else "none"

  async def on_fetch(self, request: FetchRequest) -> FetchResponse | None:
    """Network first; fall back to the cache only when the network fails."""
    try:
      response = await self._fetcher.fetch(request)
    except Exception as exc:  # noqa: BLE001
      logger.info("Network fetch failed url=%s error=%s; using cache", request.url, exc)
      return await self._cache_storage.match(request)

    if response.status != 200 or response.type != "basic" or request.method.upper() != "GET":
      return response

    try:
      cache = await self._cache_storage.open(self._cache_name)
      await cache.put(request, response)
    except Exception as exc:  # noqa: BLE001
      logger.warning("Cache write failed url=%s error=%s", request.url, exc)
    return response

  async def on_push_subscription_change(self, new_subscription: dict[str, Any] | None) -> int:
    """Tell open pages to store the rotated subscription; returns how many were told."""
    message = ChannelMessage(type=MessageType.PUSH_SUBSCRIPTION_CHANGED, payload={"subscription": new_subscription})
    notified = 0
    for client in await self._clients.match_all():
      if not self._same_origin(client):
        continue
      try:
        await client.post_message(message)
        notified += 1
      except Exception as exc:  # noqa: BLE001
        logger.warning("Posting subscription change failed url=%s error=%s", client.url, exc)
    return notified
