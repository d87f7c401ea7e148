"""Typed message channel between the page and the delivery worker."""

from __future__ import annotations

import asyncio
import enum
import inspect
import logging
from collections.abc import Awaitable, Callable
from typing import Any

import msgspec

from calcio_arena.notifications.contracts import InvalidPushPayloadError

logger = logging.getLogger(__name__)


class MessageType(enum.StrEnum):
  PUSH_NOTIFICATION = "PUSH_NOTIFICATION"
  NOTIFICATION_CLICK = "NOTIFICATION_CLICK"
  PUSH_SUBSCRIPTION_CHANGED = "PUSH_SUBSCRIPTION_CHANGED"


class ChannelMessage(msgspec.Struct, frozen=True):
  """One message crossing the page/worker boundary."""

  type: MessageType
  payload: dict[str, Any] | None = None


MessageHandler = Callable[[ChannelMessage], Awaitable[None] | None]


def encode_message(message: ChannelMessage) -> bytes:
  return msgspec.json.encode(message)


def decode_message(raw: bytes | str) -> ChannelMessage:
  """Decode a channel message; unknown types and bad shapes are rejected here."""
  try:
    return msgspec.json.decode(raw, type=ChannelMessage)
  except msgspec.DecodeError as exc:
    raise InvalidPushPayloadError(f"Invalid channel message: {exc}") from exc


class MessageChannel:
  """One-directional queue of channel messages."""

  def __init__(self, *, maxsize: int = 0) -> None:
    self._queue: asyncio.Queue[ChannelMessage] = asyncio.Queue(maxsize=maxsize)

  async def send(self, message: ChannelMessage) -> None:
    await self._queue.put(message)

  async def receive(self, *, timeout: float | None = None) -> ChannelMessage:
    async with asyncio.timeout(timeout):
      return await self._queue.get()

  def pending(self) -> int:
    return self._queue.qsize()

  def listen(self, handler: MessageHandler, *, message_type: MessageType | None = None) -> asyncio.Task[None]:
    """Consume messages in a background task until it is cancelled."""

    async def _run() -> None:
      while True:
        message = await self._queue.get()
        if message_type is not None and message.type != message_type:
          logger.debug("Ignoring channel message type=%s", message.type)
          continue
        try:
          result = handler(message)
          if inspect.isawaitable(result):
            await result
        except Exception as exc:  # noqa: BLE001
          logger.error("Channel handler failed type=%s error=%s", message.type, exc, exc_info=True)

    return asyncio.create_task(_run())
