from __future__ import annotations

import asyncio

import pytest

from calcio_arena.notifications.contracts import InvalidPushPayloadError
from calcio_arena.worker.channel import ChannelMessage, MessageChannel, MessageType, decode_message, encode_message


def test_message_encoding_uses_wire_type_names():
  raw = encode_message(ChannelMessage(type=MessageType.NOTIFICATION_CLICK, payload={"url": "/match/1"}))
  assert decode_message(raw) == ChannelMessage(type=MessageType.NOTIFICATION_CLICK, payload={"url": "/match/1"})
  assert b'"NOTIFICATION_CLICK"' in raw


def test_decode_rejects_unknown_message_type():
  with pytest.raises(InvalidPushPayloadError):
    decode_message(b'{"type": "SOMETHING_ELSE"}')


@pytest.mark.anyio
async def test_receive_times_out_on_empty_channel():
  with pytest.raises(TimeoutError):
    await MessageChannel().receive(timeout=0.01)


@pytest.mark.anyio
async def test_listen_filters_by_type_and_survives_handler_errors():
  channel = MessageChannel()
  received: list[ChannelMessage] = []

  async def handler(message: ChannelMessage) -> None:
    if message.payload and message.payload.get("boom"):
      raise RuntimeError("handler failed")
    received.append(message)

  task = channel.listen(handler, message_type=MessageType.NOTIFICATION_CLICK)
  await channel.send(ChannelMessage(type=MessageType.PUSH_NOTIFICATION, payload={"title": "ignored"}))
  await channel.send(ChannelMessage(type=MessageType.NOTIFICATION_CLICK, payload={"boom": True}))
  await channel.send(ChannelMessage(type=MessageType.NOTIFICATION_CLICK, payload={"url": "/"}))
  for _ in range(20):
    if channel.pending() == 0 and received:
      break
    await asyncio.sleep(0)
  task.cancel()

  assert [message.payload for message in received] == [{"url": "/"}]
