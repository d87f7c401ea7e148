"""Server push relay: the HTTP client used by the dispatcher and the fan-out service behind it."""

from __future__ import annotations

import logging
from typing import Any

import httpx
from starlette.concurrency import run_in_threadpool

from calcio_arena.notifications.contracts import InvalidPushSubscriptionError, NotificationProviderError, PushSender, PushSubscriptionStore, RelayClient, RelayError, RelayNotification, RelayReport
from calcio_arena.notifications.payloads import build_match_payload, encode_push_payload
from calcio_arena.notifications.push_sender import push_notification_from_subscription

logger = logging.getLogger(__name__)


class HttpRelayClient(RelayClient):
  """POST subscriptions and the message envelope to the relay endpoint."""

  def __init__(self, *, url: str, secret: str | None = None, timeout_seconds: float = 10.0, transport: httpx.AsyncBaseTransport | None = None) -> None:
    self._url = url
    self._secret = secret
    self._timeout_seconds = timeout_seconds
    self._transport = transport

  def _headers(self) -> dict[str, str]:
    headers = {"content-type": "application/json"}
    if self._secret:
      headers["authorization"] = f"Bearer {self._secret}"
    return headers

  async def send(self, *, subscriptions: list[dict[str, Any]], notification: RelayNotification) -> dict[str, Any]:
    """Send one relay request; any transport error or non-2xx status raises `RelayError`."""
    body = {"subscriptions": subscriptions, "notification": notification.to_dict()}

    try:
      # Never trust environment proxy variables for the relay call.
      async with httpx.AsyncClient(transport=self._transport, timeout=self._timeout_seconds, trust_env=False) as client:
        response = await client.post(self._url, json=body, headers=self._headers())
        response.raise_for_status()
    except httpx.HTTPStatusError as exc:
      raise RelayError(f"Relay returned status={exc.response.status_code}") from exc
    except httpx.RequestError as exc:
      raise RelayError(f"Relay request failed: {exc}") from exc

    try:
      parsed = response.json()
    except ValueError:
      return {}
    return parsed if isinstance(parsed, dict) else {"result": parsed}


class PushRelayService:
  """Fan a single notification out to browser subscriptions through the push service."""

  def __init__(self, *, push_sender: PushSender, subscription_store: PushSubscriptionStore, icon: str | None = None, badge: str | None = None) -> None:
    self._push_sender = push_sender
    self._subscription_store = subscription_store
    self._icon = icon
    self._badge = badge

  async def deliver(self, *, subscriptions: list[dict[str, Any]], notification: RelayNotification) -> RelayReport:
    payload = build_match_payload(title=notification.title, message=notification.message, match_id=notification.match_id, url=notification.url, icon=self._icon, badge=self._badge)
    encoded = encode_push_payload(payload)
    sent = 0
    failed = 0
    removed: list[str] = []

    # Attempt every endpoint so one failure does not block the remaining devices.
    for subscription in subscriptions:
      endpoint = subscription.get("endpoint")
      try:
        push_notification = push_notification_from_subscription(subscription, payload=encoded)
        await run_in_threadpool(self._push_sender.send, push_notification)
        sent += 1
      except InvalidPushSubscriptionError as exc:
        failed += 1
        logger.warning("Push subscription rejected endpoint=%s error=%s", endpoint, exc)
        if endpoint:
          await self._remove(str(endpoint))
          removed.append(str(endpoint))
      except NotificationProviderError as exc:
        failed += 1
        logger.error("Push notification delivery failed (provider error): %s", exc)
      except Exception as exc:  # noqa: BLE001
        failed += 1
        logger.error("Push notification delivery failed: %s", exc, exc_info=True)

    logger.info("Push relay finished tag=%s sent=%s failed=%s removed=%s", payload.tag, sent, failed, len(removed))
    return RelayReport(sent=sent, failed=failed, removed=removed)

  async def _remove(self, endpoint: str) -> None:
    try:
      await self._subscription_store.delete_by_endpoint(endpoint=endpoint)
    except Exception as exc:  # noqa: BLE001
      logger.error("Failed deleting invalid push subscription endpoint=%s error=%s", endpoint, exc, exc_info=True)
