"""Server push relay endpoint called by the dispatcher."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, ConfigDict, Field

from calcio_arena.api.deps import get_notification_services
from calcio_arena.core.security import require_relay_secret
from calcio_arena.notifications.contracts import RelayNotification
from calcio_arena.notifications.factory import NotificationServices

router = APIRouter()


class RelayNotificationBody(BaseModel):
  title: str = Field(min_length=1, max_length=200)
  message: str = Field(max_length=1000)
  match_id: str | None = Field(default=None, alias="matchId")
  url: str | None = Field(default=None, max_length=2048)
  model_config = ConfigDict(populate_by_name=True, extra="ignore")


class RelayRequest(BaseModel):
  subscriptions: list[dict[str, Any]] = Field(max_length=1000)
  notification: RelayNotificationBody


@router.post("/send-push-notification", dependencies=[Depends(require_relay_secret)])
async def send_push_notification(payload: RelayRequest, services: NotificationServices = Depends(get_notification_services)) -> dict[str, Any]:  # noqa: B008
  """Sign and send one notification to every posted subscription."""
  if not services.push_enabled:
    raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Push notifications are not configured")

  body = payload.notification
  report = await services.relay_service.deliver(subscriptions=payload.subscriptions, notification=RelayNotification(title=body.title, message=body.message, match_id=body.match_id, url=body.url))
  return {"sent": report.sent, "failed": report.failed, "removed": report.removed}
