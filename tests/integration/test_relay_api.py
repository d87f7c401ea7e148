from __future__ import annotations

import dataclasses
from unittest.mock import MagicMock

import pytest

from calcio_arena.config import get_settings
from calcio_arena.main import app
from calcio_arena.notifications.contracts import InvalidPushSubscriptionError
from calcio_arena.notifications.relay import PushRelayService

RELAY_PATH = "/functions/v1/send-push-notification"
SECRET = "relay-secret"


def _subscription(name: str) -> dict:
  return {"endpoint": f"https://fcm.googleapis.com/fcm/send/{name}", "keys": {"p256dh": "p" * 40, "auth": "a" * 16}}


def _body(*names: str) -> dict:
  return {"subscriptions": [_subscription(name) for name in names], "notification": {"title": "Calcio Arena", "message": "Match confirmed", "matchId": "42", "url": "/match/42"}}


@pytest.fixture
def relay_secret():
  app.dependency_overrides[get_settings] = lambda: dataclasses.replace(get_settings(), relay_secret=SECRET)


@pytest.fixture
def push_sender(client, services):
  sender = MagicMock()
  relay_service = PushRelayService(push_sender=sender, subscription_store=services.subscription_store)
  app.state.notification_services = dataclasses.replace(services, push_enabled=True, relay_service=relay_service)
  return sender


def test_relay_denied_without_configured_secret(client):
  app.dependency_overrides[get_settings] = lambda: dataclasses.replace(get_settings(), relay_secret=None)
  assert client.post(RELAY_PATH, json=_body("a"), headers={"authorization": "Bearer anything"}).status_code == 503


def test_relay_requires_matching_secret(client, relay_secret):
  assert client.post(RELAY_PATH, json=_body("a")).status_code == 401
  assert client.post(RELAY_PATH, json=_body("a"), headers={"authorization": "Bearer wrong"}).status_code == 401


def test_relay_unavailable_when_push_disabled(client, relay_secret):
  response = client.post(RELAY_PATH, json=_body("a"), headers={"authorization": f"Bearer {SECRET}"})
  assert response.status_code == 503


def test_relay_sends_and_reports_removed_endpoints(client, relay_secret, push_sender):
  def _send(notification):
    if notification.endpoint.endswith("/gone"):
      raise InvalidPushSubscriptionError("gone")

  push_sender.send.side_effect = _send

  response = client.post(RELAY_PATH, json=_body("ok", "gone"), headers={"authorization": f"Bearer {SECRET}"})

  assert response.status_code == 200
  assert response.json() == {"sent": 1, "failed": 1, "removed": ["https://fcm.googleapis.com/fcm/send/gone"]}
  assert push_sender.send.call_count == 2
