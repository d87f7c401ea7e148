from __future__ import annotations

import pytest

from calcio_arena.config import get_settings


@pytest.fixture(autouse=True)
def _fresh_settings():
  get_settings.cache_clear()
  yield
  get_settings.cache_clear()


def test_defaults(monkeypatch):
  monkeypatch.setenv("CALCIO_ALLOWED_ORIGINS", "http://localhost:5173, https://calcio.test")
  settings = get_settings()

  assert settings.allowed_origins == ("http://localhost:5173", "https://calcio.test")
  assert settings.pg_dsn is None
  assert settings.relay_timeout_seconds == 10.0
  assert settings.app_title == "Calcio Arena"
  assert not settings.push_configured


def test_wildcard_origin_is_rejected(monkeypatch):
  monkeypatch.setenv("CALCIO_ALLOWED_ORIGINS", "*")
  with pytest.raises(ValueError):
    get_settings()


def test_enabled_push_requires_vapid_keys(monkeypatch):
  monkeypatch.setenv("CALCIO_PUSH_NOTIFICATIONS_ENABLED", "true")
  monkeypatch.delenv("CALCIO_PUSH_VAPID_PUBLIC_KEY", raising=False)
  with pytest.raises(ValueError, match="CALCIO_PUSH_VAPID_PUBLIC_KEY"):
    get_settings()


def test_vapid_subject_must_be_mailto_or_https(monkeypatch):
  monkeypatch.setenv("CALCIO_PUSH_NOTIFICATIONS_ENABLED", "true")
  monkeypatch.setenv("CALCIO_PUSH_VAPID_PUBLIC_KEY", "pub")
  monkeypatch.setenv("CALCIO_PUSH_VAPID_PRIVATE_KEY", "priv")
  monkeypatch.setenv("CALCIO_PUSH_VAPID_SUB", "admin@example.com")
  with pytest.raises(ValueError, match="mailto"):
    get_settings()

  get_settings.cache_clear()
  monkeypatch.setenv("CALCIO_PUSH_VAPID_SUB", "mailto:admin@example.com")
  assert get_settings().push_configured


def test_relay_timeout_must_be_positive(monkeypatch):
  monkeypatch.setenv("CALCIO_RELAY_TIMEOUT_SECONDS", "0")
  with pytest.raises(ValueError):
    get_settings()


def test_database_url_is_accepted_as_dsn(monkeypatch):
  monkeypatch.setenv("DATABASE_URL", "postgresql://calcio@localhost/calcio")
  assert get_settings().pg_dsn == "postgresql://calcio@localhost/calcio"
