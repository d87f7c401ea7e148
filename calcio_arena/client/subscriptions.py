"""Register the delivery worker and keep the user's push subscription stored.

No method here raises into calling UI code: every failure is logged and reported as
`None` (or `False`), meaning notifications are unavailable right now.
"""

from __future__ import annotations

import asyncio
import base64
import inspect
import logging
from collections.abc import Awaitable, Callable
from typing import Any, Protocol

import httpx

from calcio_arena.client.capabilities import CapabilitySnapshot, describe_device
from calcio_arena.client.permissions import GRANTED, PermissionNegotiator
from calcio_arena.notifications.contracts import SubscriptionRecord
from calcio_arena.worker.channel import ChannelMessage, MessageChannel, MessageType

logger = logging.getLogger(__name__)

WORKER_SCRIPT_URL = "/sw.js"
WORKER_SCOPE = "/"
SUBSCRIPTION_CONFIRMATION_TITLE = "Notifications enabled"
SUBSCRIPTION_CONFIRMATION_BODY = "You will receive notifications about your matches."


class PushManager(Protocol):
  async def get_subscription(self) -> dict[str, Any] | None: ...

  async def subscribe(self, *, user_visible_only: bool, application_server_key: bytes) -> dict[str, Any]: ...


class WorkerRegistration(Protocol):
  @property
  def push_manager(self) -> PushManager: ...

  async def show_notification(self, title: str, options: dict[str, Any]) -> None: ...


class WorkerContainer(Protocol):
  async def register(self, script_url: str, *, scope: str) -> WorkerRegistration: ...


class AuthSession(Protocol):
  async def current_user_id(self) -> str | None: ...


class SubscriptionStore(Protocol):
  async def upsert(self, record: SubscriptionRecord) -> SubscriptionRecord: ...


def decode_application_server_key(key: str) -> bytes:
  """Decode a base64url VAPID public key, restoring stripped padding."""
  padded = key.strip() + "=" * (-len(key.strip()) % 4)
  return base64.urlsafe_b64decode(padded)


class SubscriptionManager:
  """Own the device's push subscription from worker registration to storage."""

  def __init__(
    self,
    *,
    capabilities: CapabilitySnapshot,
    container: WorkerContainer | None,
    negotiator: PermissionNegotiator,
    auth: AuthSession,
    store: SubscriptionStore,
    vapid_public_key: str,
    channel: MessageChannel | None = None,
    ready_timeout_seconds: float = 10.0,
  ) -> None:
    self._capabilities = capabilities
    self._container = container
    self._negotiator = negotiator
    self._auth = auth
    self._store = store
    self._vapid_public_key = vapid_public_key
    self._channel = channel
    self._ready_timeout_seconds = ready_timeout_seconds
    self._registration: WorkerRegistration | None = None
    self._listener: asyncio.Task[None] | None = None

  @property
  def registration(self) -> WorkerRegistration | None:
    return self._registration

  async def register_worker(self) -> WorkerRegistration | None:
    if self._container is None:
      logger.info("Service workers unavailable; skipping registration")
      return None

    try:
      async with asyncio.timeout(self._ready_timeout_seconds):
        self._registration = await self._container.register(WORKER_SCRIPT_URL, scope=WORKER_SCOPE)
    except Exception as exc:  # noqa: BLE001
      logger.error("Service worker registration failed: %s", exc)
      return None

    logger.info("Service worker registered script=%s scope=%s", WORKER_SCRIPT_URL, WORKER_SCOPE)
    return self._registration

  async def subscribe(self) -> dict[str, Any] | None:
    """Reuse or create the push subscription and store it for the signed-in user."""
    if not self._capabilities.push_supported:
      return None

    registration = self._registration or await self.register_worker()
    if registration is None:
      return None

    try:
      push_manager = registration.push_manager
      subscription = await push_manager.get_subscription()
      if subscription is None:
        subscription = await push_manager.subscribe(user_visible_only=True, application_server_key=decode_application_server_key(self._vapid_public_key))
        logger.info("Created push subscription")

      user_id = await self._auth.current_user_id()
      if not user_id:
        logger.warning("No signed-in user; push subscription not stored")
        return None

      record = SubscriptionRecord(user_id=user_id, subscription=dict(subscription), device_info=describe_device(self._capabilities.user_agent))
      await self._store.upsert(record)
      logger.info("Push subscription stored user_id=%s", user_id)
    except Exception as exc:  # noqa: BLE001
      logger.error("Push subscription failed: %s", exc)
      return None

    # Safari gives no visible sign that the handshake worked.
    if self._capabilities.is_apple_web:
      try:
        await registration.show_notification(SUBSCRIPTION_CONFIRMATION_TITLE, {"body": SUBSCRIPTION_CONFIRMATION_BODY, "tag": "push-subscription"})
      except Exception as exc:  # noqa: BLE001
        logger.warning("Subscription confirmation not shown: %s", exc)
    return subscription

  async def initialize(self, message_handler: Callable[[dict[str, Any]], Awaitable[None] | None] | None = None) -> bool:
    """Register, ask for permission, subscribe, and listen for notification clicks."""
    if await self.register_worker() is None:
      return False

    if not await self._negotiator.request_permission():
      return False

    if self._channel is not None and message_handler is not None and self._listener is None:

      async def _on_click(message: ChannelMessage) -> None:
        result = message_handler(dict(message.payload or {}))
        if inspect.isawaitable(result):
          await result

      self._listener = self._channel.listen(_on_click, message_type=MessageType.NOTIFICATION_CLICK)

    if await self.subscribe() is None:
      logger.info("Push subscription unavailable; continuing with in-app notifications")
    return True

  async def show_local_notification(self, title: str, options: dict[str, Any]) -> bool:
    """Display through the worker registration when permission is granted."""
    if self._negotiator.permission_state() != GRANTED:
      return False

    registration = self._registration or await self.register_worker()
    if registration is None:
      return False

    try:
      await registration.show_notification(title, options)
    except Exception as exc:  # noqa: BLE001
      logger.warning("Local notification failed: %s", exc)
      return False
    return True

  async def show(self, title: str, options: dict[str, Any]) -> bool:
    return await self.show_local_notification(title, options)

  def close(self) -> None:
    if self._listener is not None:
      self._listener.cancel()
      self._listener = None


class ApiSubscriptionStore:
  """Store subscriptions through the notification service's HTTP API."""

  def __init__(self, *, base_url: str, token_provider: Callable[[], Awaitable[str | None]], timeout_seconds: float = 10.0, transport: httpx.AsyncBaseTransport | None = None) -> None:
    self._base_url = base_url.rstrip("/")
    self._token_provider = token_provider
    self._timeout_seconds = timeout_seconds
    self._transport = transport

  async def upsert(self, record: SubscriptionRecord) -> SubscriptionRecord:
    token = await self._token_provider()
    if not token:
      raise RuntimeError("No bearer token available for the subscription request.")

    async with httpx.AsyncClient(base_url=self._base_url, transport=self._transport, timeout=self._timeout_seconds, trust_env=False) as client:
      response = await client.put("/v1/push/subscription", json={"subscription": record.subscription, "device_info": record.device_info}, headers={"authorization": f"Bearer {token}"})
      response.raise_for_status()
    return record
