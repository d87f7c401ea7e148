"""Web Push delivery implementations used by the push relay."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from http import HTTPStatus
from typing import Any

from pywebpush import WebPushException, webpush

from calcio_arena.notifications.contracts import InvalidPushSubscriptionError, PushNotification, PushSender, TransientPushProviderError

logger = logging.getLogger(__name__)

_BACKOFF_SECONDS = (0.5, 1.0)


@dataclass(frozen=True)
class VapidConfig:
  """Configuration required to sign Web Push requests."""

  public_key: str
  private_key: str
  sub: str


class WebPushSender(PushSender):
  """`pywebpush` backed sender with retry and invalid-endpoint handling."""

  def __init__(self, *, vapid_config: VapidConfig, timeout_seconds: float = 10.0, sleep=time.sleep) -> None:  # type: ignore[no-untyped-def]
    self._vapid_config = vapid_config
    self._timeout_seconds = timeout_seconds
    self._sleep = sleep

  def send(self, notification: PushNotification) -> None:
    """Send an encoded payload with bounded retries for transient failures."""
    subscription_info = {"endpoint": notification.endpoint, "keys": {"p256dh": notification.p256dh, "auth": notification.auth}}

    for attempt in range(len(_BACKOFF_SECONDS) + 1):
      # Sign with VAPID so the push service can verify the sender.
      try:
        webpush(subscription_info=subscription_info, data=notification.payload, vapid_private_key=self._vapid_config.private_key, vapid_claims={"sub": self._vapid_config.sub}, timeout=self._timeout_seconds)
        return
      except WebPushException as exc:
        status_code = _extract_status_code(exc)

        if status_code in {HTTPStatus.GONE, HTTPStatus.NOT_FOUND}:
          raise InvalidPushSubscriptionError(f"Push subscription is invalid (status={int(status_code)})") from exc

        if status_code is not None and 500 <= int(status_code) < 600:
          if attempt < len(_BACKOFF_SECONDS):
            logger.warning("Push provider returned status=%s attempt=%s; retrying", status_code, attempt + 1)
            self._sleep(_BACKOFF_SECONDS[attempt])
            continue

          raise TransientPushProviderError(f"Transient push provider failure after retries (status={int(status_code)})") from exc

        raise TransientPushProviderError(f"Push delivery failed (status={int(status_code) if status_code else 'unknown'})") from exc


class NullPushSender(PushSender):
  """No-op push sender used when push notifications are disabled or unconfigured."""

  def send(self, notification: PushNotification) -> None:
    logger.debug("Push notifications disabled; dropping push endpoint_present=%s", bool(notification.endpoint))


def push_notification_from_subscription(subscription: dict[str, Any], *, payload: bytes) -> PushNotification:
  """Build a delivery from a browser subscription object (`endpoint` plus `keys`)."""
  endpoint = subscription.get("endpoint")
  keys = subscription.get("keys") or {}
  if not endpoint or not keys.get("p256dh") or not keys.get("auth"):
    raise InvalidPushSubscriptionError("Push subscription is missing endpoint or keys")
  return PushNotification(endpoint=str(endpoint), p256dh=str(keys["p256dh"]), auth=str(keys["auth"]), payload=payload)


def _extract_status_code(exc: WebPushException) -> int | None:
  """Extract an HTTP status code from a pywebpush exception when available."""
  response = getattr(exc, "response", None)
  if response is None:
    return None

  status = getattr(response, "status_code", None)
  if isinstance(status, int):
    return status

  return None
