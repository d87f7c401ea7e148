"""Routes for push subscription lifecycle management."""

from __future__ import annotations

import re
import urllib.parse
from typing import Any

from fastapi import APIRouter, Depends, Header, HTTPException, Response, status
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic_core import PydanticCustomError

from calcio_arena.api.deps import get_notification_services
from calcio_arena.client.capabilities import describe_device
from calcio_arena.config import Settings, get_settings
from calcio_arena.core.security import Principal, get_current_principal
from calcio_arena.notifications.contracts import SubscriptionRecord
from calcio_arena.notifications.factory import NotificationServices

_ALLOWED_PUSH_HOSTS = {"fcm.googleapis.com", "updates.push.services.mozilla.com", "push.services.mozilla.com", "web.push.apple.com"}
_BASE64_RE = re.compile(r"^[A-Za-z0-9_-]+={0,2}$")

router = APIRouter()


class PushSubscriptionKeys(BaseModel):
  """Browser-provided key material for Web Push encryption."""

  p256dh: str = Field(min_length=40, max_length=512)
  auth: str = Field(min_length=16, max_length=256)
  model_config = ConfigDict(extra="forbid")

  @field_validator("p256dh", "auth")
  @classmethod
  def validate_key(cls, value: str) -> str:
    normalized = value.strip()
    if not _BASE64_RE.fullmatch(normalized):
      raise PydanticCustomError("push_key_format", "push keys must be base64url encoded.")
    return normalized


class BrowserSubscription(BaseModel):
  """Standard browser push subscription object."""

  endpoint: str = Field(min_length=1, max_length=2048)
  expiration_time: int | None = Field(default=None, alias="expirationTime")
  keys: PushSubscriptionKeys
  model_config = ConfigDict(extra="forbid", populate_by_name=True)

  @field_validator("endpoint")
  @classmethod
  def validate_endpoint(cls, value: str) -> str:
    """Restrict endpoints to known provider hosts over HTTPS."""
    normalized = value.strip()
    parsed = urllib.parse.urlparse(normalized)

    if parsed.scheme.lower() != "https":
      raise PydanticCustomError("push_endpoint_https", "endpoint must use https.")

    host = (parsed.hostname or "").lower()
    if host not in _ALLOWED_PUSH_HOSTS:
      raise PydanticCustomError("push_endpoint_host", "endpoint host is not allowed.")

    return normalized


class DeviceInfo(BaseModel):
  is_safari: bool = False
  is_ios: bool = False
  user_agent: str = Field(default="", max_length=512)
  model_config = ConfigDict(extra="ignore")


class PushSubscriptionRequest(BaseModel):
  subscription: BrowserSubscription
  device_info: DeviceInfo | None = None
  model_config = ConfigDict(extra="forbid")


@router.get("/public-key")
async def get_public_key(settings: Settings = Depends(get_settings)) -> dict[str, str]:  # noqa: B008
  """Return the VAPID public key browsers need to subscribe."""
  if not settings.push_vapid_public_key:
    raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Push notifications are not configured")
  return {"publicKey": settings.push_vapid_public_key}


@router.put("/subscription")
async def save_subscription(
  payload: PushSubscriptionRequest,
  principal: Principal = Depends(get_current_principal),  # noqa: B008
  services: NotificationServices = Depends(get_notification_services),  # noqa: B008
  user_agent: str | None = Header(default=None),
) -> dict[str, Any]:
  """Store the caller's subscription, replacing any earlier device."""
  if payload.device_info is not None:
    device_info = payload.device_info.model_dump()
  else:
    # Clamp user agent size to limit storage abuse.
    device_info = describe_device((user_agent or "").strip()[:512])

  subscription = payload.subscription.model_dump(by_alias=True, exclude_none=True)
  stored = await services.subscription_store.upsert(SubscriptionRecord(user_id=principal.user_id, subscription=subscription, device_info=device_info))
  return {"user_id": stored.user_id, "endpoint": stored.endpoint, "device_info": stored.device_info}


@router.delete("/subscription", status_code=status.HTTP_204_NO_CONTENT)
async def delete_subscription(principal: Principal = Depends(get_current_principal), services: NotificationServices = Depends(get_notification_services)) -> Response:  # noqa: B008
  """Delete the caller's subscription; deleting a missing one succeeds."""
  await services.subscription_store.delete_for_user(user_id=principal.user_id)
  return Response(status_code=status.HTTP_204_NO_CONTENT)
