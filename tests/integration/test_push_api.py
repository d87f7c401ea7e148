from __future__ import annotations

import dataclasses

import anyio

from calcio_arena.config import get_settings
from calcio_arena.main import app

P256DH = "BEl6f5Y8X5Y_u7d8mV_AbpZfXfTLT3s1O3L4wM1x8QY2_5qWQ-jxJq7uKjv8mQ4I"
AUTH = "gq8Yh5xA9l2mQ6pR"


def _build_payload(endpoint: str = "https://fcm.googleapis.com/fcm/send/abc", **extra) -> dict:
  return {"subscription": {"endpoint": endpoint, "expirationTime": None, "keys": {"p256dh": P256DH, "auth": AUTH}}, **extra}


def test_public_key_unavailable_without_vapid(client):
  app.dependency_overrides[get_settings] = lambda: dataclasses.replace(get_settings(), push_vapid_public_key=None)
  response = client.get("/v1/push/public-key")
  assert response.status_code == 503


def test_public_key_is_returned(client):
  app.dependency_overrides[get_settings] = lambda: dataclasses.replace(get_settings(), push_vapid_public_key="BPublicKey")
  response = client.get("/v1/push/public-key")
  assert response.status_code == 200
  assert response.json() == {"publicKey": "BPublicKey"}


def test_subscription_rejects_non_https(client):
  response = client.put("/v1/push/subscription", json=_build_payload(endpoint="http://fcm.googleapis.com/fcm/send/abc"))
  assert response.status_code == 422


def test_subscription_rejects_unknown_host(client):
  response = client.put("/v1/push/subscription", json=_build_payload(endpoint="https://example.com/push/abc"))
  assert response.status_code == 422


def test_subscription_rejects_invalid_keys(client):
  payload = _build_payload()
  payload["subscription"]["keys"]["p256dh"] = "not-valid-***"
  response = client.put("/v1/push/subscription", json=payload)
  assert response.status_code == 422
  assert "input" not in response.json()["detail"][0]


def test_subscription_is_stored_with_device_info_from_user_agent(client, services):
  ua = "Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.0 Mobile/15E148 Safari/604.1"
  response = client.put("/v1/push/subscription", json=_build_payload(), headers={"user-agent": ua})

  assert response.status_code == 200
  body = response.json()
  assert body["user_id"] == "u1"
  assert body["endpoint"] == "https://fcm.googleapis.com/fcm/send/abc"
  assert body["device_info"] == {"is_safari": True, "is_ios": True, "user_agent": ua}


def test_subscription_truncates_user_agent(client):
  response = client.put("/v1/push/subscription", json=_build_payload(), headers={"user-agent": "a" * 2048})
  assert len(response.json()["device_info"]["user_agent"]) == 512


def test_newer_subscription_replaces_older_device(client, services):
  client.put("/v1/push/subscription", json=_build_payload(endpoint="https://fcm.googleapis.com/fcm/send/phone", device_info={"is_ios": True}))
  client.put("/v1/push/subscription", json=_build_payload(endpoint="https://web.push.apple.com/laptop"))

  records = anyio.run(lambda: services.subscription_store.list_for_users(user_ids=["u1"]))
  assert [record.endpoint for record in records] == ["https://web.push.apple.com/laptop"]


def test_delete_subscription_is_idempotent(client):
  client.put("/v1/push/subscription", json=_build_payload())
  assert client.delete("/v1/push/subscription").status_code == 204
  assert client.delete("/v1/push/subscription").status_code == 204
