from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import AsyncIterator
from typing import Any

import msgspec
from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response, status
from fastapi.responses import StreamingResponse

from calcio_arena.api.deps import get_notification_services
from calcio_arena.core.security import Principal, get_current_principal
from calcio_arena.notifications.factory import NotificationServices
from calcio_arena.notifications.realtime import INSERT

logger = logging.getLogger(__name__)

router = APIRouter()

_KEEPALIVE_SECONDS = 15.0


@router.get("")
async def list_notifications(
  principal: Principal = Depends(get_current_principal),  # noqa: B008
  services: NotificationServices = Depends(get_notification_services),  # noqa: B008
  unread_only: bool = Query(False),  # noqa: B008
) -> dict[str, Any]:
  """
  Return the caller's notifications, newest first.

  - **unread_only**: Only return notifications that have not been read.
  """
  records = await services.notification_store.list_for_user(user_id=principal.user_id)
  unread = sum(1 for record in records if not record.is_read)
  if unread_only:
    records = [record for record in records if not record.is_read]
  return {"notifications": [record.to_dict() for record in records], "unread_count": unread}


@router.patch("/{notification_id}/read", status_code=status.HTTP_204_NO_CONTENT)
async def mark_notification_read(notification_id: uuid.UUID, principal: Principal = Depends(get_current_principal), services: NotificationServices = Depends(get_notification_services)) -> Response:  # noqa: B008
  """Mark one of the caller's notifications read; repeating it is a no-op."""
  found = await services.notification_store.mark_read(notification_id=notification_id, user_id=principal.user_id)
  if not found:
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Notification not found")
  return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/mark-all-read")
async def mark_all_notifications_read(principal: Principal = Depends(get_current_principal), services: NotificationServices = Depends(get_notification_services)) -> dict[str, int]:  # noqa: B008
  marked = await services.notification_store.mark_all_read(user_id=principal.user_id)
  return {"marked": marked}


@router.get("/stream")
async def stream_notifications(request: Request, principal: Principal = Depends(get_current_principal), services: NotificationServices = Depends(get_notification_services)) -> StreamingResponse:  # noqa: B008
  """Stream the caller's new notifications as server-sent events."""
  queue: asyncio.Queue[dict[str, Any]] = asyncio.Queue()
  subscription = services.change_feed.subscribe(table="notifications", event=INSERT, filters={"user_id": principal.user_id}, handler=queue.put_nowait)
  logger.info("Notification stream opened user_id=%s", principal.user_id)

  async def _events() -> AsyncIterator[bytes]:
    try:
      yield b": connected\n\n"
      while not await request.is_disconnected():
        try:
          row = await asyncio.wait_for(queue.get(), timeout=_KEEPALIVE_SECONDS)
        except TimeoutError:
          yield b": keepalive\n\n"
          continue
        yield b"event: notification\ndata: " + msgspec.json.encode(row) + b"\n\n"
    finally:
      subscription.unsubscribe()
      logger.info("Notification stream closed user_id=%s", principal.user_id)

  return StreamingResponse(_events(), media_type="text/event-stream", headers={"cache-control": "no-cache", "x-accel-buffering": "no"})
