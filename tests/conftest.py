"""Test configuration for importing the application package."""

from __future__ import annotations

import os
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
  sys.path.insert(0, str(ROOT))

# Settings are read at import time; pin a test environment before importing the app.
os.environ.setdefault("CALCIO_ALLOWED_ORIGINS", "http://localhost:5173")
os.environ["CALCIO_PG_DSN"] = ""
os.environ.pop("DATABASE_URL", None)
os.environ.pop("CALCIO_RELAY_URL", None)
os.environ["CALCIO_PUSH_NOTIFICATIONS_ENABLED"] = "false"

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

import calcio_arena.core.logging as calcio_logging  # noqa: E402
from calcio_arena.config import get_settings  # noqa: E402
from calcio_arena.core.security import Principal, get_current_principal  # noqa: E402
from calcio_arena.main import app  # noqa: E402
from calcio_arena.notifications.factory import NotificationServices, build_notification_services  # noqa: E402
from calcio_arena.notifications.realtime import ChangeFeed  # noqa: E402

# Keep test runs from writing log files.
calcio_logging._LOGGING_INITIALIZED = True


@pytest.fixture
def anyio_backend():
  return "asyncio"


@pytest.fixture
def services() -> NotificationServices:
  return build_notification_services(get_settings(), change_feed=ChangeFeed())


@pytest.fixture
def principal() -> Principal:
  return Principal(user_id="u1")


@pytest.fixture
def client(services, principal):
  app.state.notification_services = services
  app.dependency_overrides[get_current_principal] = lambda: principal
  try:
    with TestClient(app) as test_client:
      yield test_client
  finally:
    app.dependency_overrides.clear()
    app.state.notification_services = None
