from __future__ import annotations

import asyncio
import json
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from calcio_arena.client.capabilities import CapabilitySnapshot
from calcio_arena.client.permissions import InMemoryPermissionHintStore, PermissionNegotiator
from calcio_arena.client.subscriptions import SUBSCRIPTION_CONFIRMATION_TITLE, WORKER_SCOPE, WORKER_SCRIPT_URL, ApiSubscriptionStore, SubscriptionManager, decode_application_server_key
from calcio_arena.notifications.contracts import SubscriptionRecord
from calcio_arena.worker.channel import ChannelMessage, MessageChannel, MessageType

VAPID_PUBLIC_KEY = "BEl62iUYgUivxIkv69yViEuiBIa-Ib9-SkvMeAtA3LFgDzkrxZJjSgSnfckjBJuBkr3qBUYIHBQFLXYp5Nksh8U"
SUBSCRIPTION = {"endpoint": "https://fcm.googleapis.com/fcm/send/abc", "keys": {"p256dh": "p" * 40, "auth": "a" * 16}}


class FakePushManager:
  def __init__(self, existing=None) -> None:
    self.existing = existing
    self.subscribe_calls: list[dict] = []

  async def get_subscription(self):
    return self.existing

  async def subscribe(self, *, user_visible_only, application_server_key):
    self.subscribe_calls.append({"user_visible_only": user_visible_only, "application_server_key": application_server_key})
    self.existing = dict(SUBSCRIPTION)
    return self.existing


class FakeRegistration:
  def __init__(self, push_manager: FakePushManager) -> None:
    self.push_manager = push_manager
    self.shown: list[tuple[str, dict]] = []

  async def show_notification(self, title, options):
    self.shown.append((title, options))


class FakeContainer:
  def __init__(self, registration: FakeRegistration) -> None:
    self.registration = registration
    self.calls: list[tuple[str, str]] = []

  async def register(self, script_url, *, scope):
    self.calls.append((script_url, scope))
    return self.registration


class FakeAuth:
  def __init__(self, user_id: str | None = "u1") -> None:
    self.user_id = user_id

  async def current_user_id(self):
    return self.user_id


class GrantedRuntime:
  permission = "granted"

  async def request_permission(self):
    return "granted"


def _snapshot(*, is_safari: bool = False, push_supported: bool = True) -> CapabilitySnapshot:
  return CapabilitySnapshot(is_ios=False, is_safari=is_safari, is_pwa=False, push_permission="granted", push_supported=push_supported, has_notification_api=True, user_agent="test-agent")


def _manager(*, existing=None, capabilities=None, auth=None, store=None, channel=None):
  capabilities = capabilities or _snapshot()
  push_manager = FakePushManager(existing)
  registration = FakeRegistration(push_manager)
  container = FakeContainer(registration)
  negotiator = PermissionNegotiator(capabilities=capabilities, runtime=GrantedRuntime(), hints=InMemoryPermissionHintStore())
  store = store or AsyncMock()
  manager = SubscriptionManager(capabilities=capabilities, container=container, negotiator=negotiator, auth=auth or FakeAuth(), store=store, vapid_public_key=VAPID_PUBLIC_KEY, channel=channel)
  return manager, push_manager, registration, container, store


def test_decode_application_server_key_restores_padding():
  decoded = decode_application_server_key(VAPID_PUBLIC_KEY)
  assert len(decoded) == 65
  assert decoded[0] == 0x04


@pytest.mark.anyio
async def test_register_worker_uses_root_scope():
  manager, _, registration, container, _ = _manager()
  assert await manager.register_worker() is registration
  assert container.calls == [(WORKER_SCRIPT_URL, WORKER_SCOPE)]


@pytest.mark.anyio
async def test_register_worker_without_container_returns_none():
  negotiator = PermissionNegotiator(capabilities=_snapshot(), runtime=GrantedRuntime(), hints=InMemoryPermissionHintStore())
  manager = SubscriptionManager(capabilities=_snapshot(), container=None, negotiator=negotiator, auth=FakeAuth(), store=AsyncMock(), vapid_public_key=VAPID_PUBLIC_KEY)
  assert await manager.register_worker() is None


@pytest.mark.anyio
async def test_subscribe_reuses_existing_subscription():
  manager, push_manager, _, _, store = _manager(existing=dict(SUBSCRIPTION))
  assert await manager.subscribe() == SUBSCRIPTION
  assert push_manager.subscribe_calls == []
  record = store.upsert.await_args.args[0]
  assert record.user_id == "u1"
  assert record.subscription == SUBSCRIPTION
  assert record.device_info["user_agent"] == "test-agent"


@pytest.mark.anyio
async def test_subscribe_creates_user_visible_subscription():
  manager, push_manager, _, _, store = _manager()
  assert await manager.subscribe() == SUBSCRIPTION
  assert push_manager.subscribe_calls[0]["user_visible_only"] is True
  assert push_manager.subscribe_calls[0]["application_server_key"] == decode_application_server_key(VAPID_PUBLIC_KEY)
  store.upsert.assert_awaited_once()


@pytest.mark.anyio
async def test_subscribe_without_signed_in_user_stores_nothing():
  manager, _, _, _, store = _manager(existing=dict(SUBSCRIPTION), auth=FakeAuth(None))
  assert await manager.subscribe() is None
  store.upsert.assert_not_awaited()


@pytest.mark.anyio
async def test_subscribe_reports_storage_failure_as_none():
  store = AsyncMock()
  store.upsert.side_effect = RuntimeError("db down")
  manager, *_ = _manager(existing=dict(SUBSCRIPTION), store=store)
  assert await manager.subscribe() is None


@pytest.mark.anyio
async def test_subscribe_when_push_unsupported_returns_none():
  manager, _, _, container, store = _manager(capabilities=_snapshot(push_supported=False))
  assert await manager.subscribe() is None
  assert container.calls == []
  store.upsert.assert_not_awaited()


@pytest.mark.anyio
async def test_safari_gets_confirmation_after_successful_save():
  manager, _, registration, _, _ = _manager(existing=dict(SUBSCRIPTION), capabilities=_snapshot(is_safari=True))
  await manager.subscribe()
  assert [title for title, _ in registration.shown] == [SUBSCRIPTION_CONFIRMATION_TITLE]


@pytest.mark.anyio
async def test_no_confirmation_outside_apple_platforms():
  manager, _, registration, _, _ = _manager(existing=dict(SUBSCRIPTION))
  await manager.subscribe()
  assert registration.shown == []


@pytest.mark.anyio
async def test_initialize_routes_notification_clicks_to_handler():
  channel = MessageChannel()
  handler = MagicMock()
  manager, *_ = _manager(existing=dict(SUBSCRIPTION), channel=channel)
  assert await manager.initialize(handler) is True

  await channel.send(ChannelMessage(type=MessageType.NOTIFICATION_CLICK, payload={"url": "/match/42"}))
  for _ in range(10):
    if handler.called:
      break
    await asyncio.sleep(0)
  manager.close()

  handler.assert_called_once_with({"url": "/match/42"})


@pytest.mark.anyio
async def test_show_local_notification_requires_grant():
  manager, _, registration, _, _ = _manager()
  assert await manager.show_local_notification("Calcio Arena", {"body": "hi"}) is True
  assert registration.shown == [("Calcio Arena", {"body": "hi"})]


@pytest.mark.anyio
async def test_api_subscription_store_puts_with_bearer_token():
  seen: dict = {}

  def handler(request: httpx.Request) -> httpx.Response:
    seen["method"] = request.method
    seen["path"] = request.url.path
    seen["authorization"] = request.headers["authorization"]
    seen["body"] = json.loads(request.content)
    return httpx.Response(200, json={"user_id": "u1"})

  async def token():
    return "token-123"

  store = ApiSubscriptionStore(base_url="http://api.test/", token_provider=token, transport=httpx.MockTransport(handler))
  record = SubscriptionRecord(user_id="u1", subscription=SUBSCRIPTION, device_info={"is_ios": False})
  assert await store.upsert(record) is record
  assert seen == {"method": "PUT", "path": "/v1/push/subscription", "authorization": "Bearer token-123", "body": {"subscription": SUBSCRIPTION, "device_info": {"is_ios": False}}}


@pytest.mark.anyio
async def test_api_subscription_store_raises_on_http_error():
  async def token():
    return "token-123"

  store = ApiSubscriptionStore(base_url="http://api.test", token_provider=token, transport=httpx.MockTransport(lambda request: httpx.Response(500)))
  with pytest.raises(httpx.HTTPStatusError):
    await store.upsert(SubscriptionRecord(user_id="u1", subscription=SUBSCRIPTION, device_info={}))


@pytest.mark.anyio
async def test_confirmation_failure_keeps_stored_subscription():
  manager, _, registration, _, store = _manager(existing=dict(SUBSCRIPTION), capabilities=_snapshot(is_safari=True))
  registration.show_notification = AsyncMock(side_effect=RuntimeError("display blocked"))

  assert await manager.subscribe() == SUBSCRIPTION
  store.upsert.assert_awaited_once()
  registration.show_notification.assert_awaited_once()
