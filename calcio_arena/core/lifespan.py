import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from urllib.parse import urlparse

from fastapi import FastAPI

from calcio_arena.config import get_settings
from calcio_arena.core.database import dispose_engine
from calcio_arena.core.firebase import initialize_firebase
from calcio_arena.core.logging import initialize_logging
from calcio_arena.notifications.factory import build_notification_services


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
  """Set up logging, auth and the notification services for the app's lifetime."""
  settings = get_settings()
  logger = logging.getLogger("calcio_arena.core.lifespan")

  try:
    initialize_logging(settings)
    logger.info("Startup complete - logging verified.")
    initialize_firebase()
  except Exception:
    # Keep serving; request logging still reaches uvicorn's handlers.
    logger.warning("Startup initialization failed.", exc_info=True)

  # Tests may install their own services before startup.
  if getattr(app.state, "notification_services", None) is None:
    app.state.notification_services = build_notification_services(settings)

  storage = "postgres" if settings.pg_dsn else "memory"
  logger.info("Notification services ready storage=%s dsn=%s push_enabled=%s relay=%s", storage, _redact_dsn(settings.pg_dsn), settings.push_configured, bool(settings.relay_url))

  try:
    yield
  finally:
    await dispose_engine()


def _redact_dsn(raw: str | None) -> str:
  """Redact credentials from a DSN while keeping host/db visible."""
  if not raw:
    return "<unset>"

  parsed = urlparse(raw)
  if not parsed.scheme:
    return "<invalid>"

  user = parsed.username or ""
  host = parsed.hostname or ""
  port = f":{parsed.port}" if parsed.port else ""
  netloc = f"{user}@{host}{port}" if user else f"{host}{port}"
  database = parsed.path.lstrip("/")
  path = f"/{database}" if database else ""
  return f"{parsed.scheme}://{netloc}{path}"
