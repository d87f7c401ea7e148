"""Application configuration loaded from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache

from calcio_arena.utils.env import default_env_path, load_env_file

load_env_file(default_env_path(), override=False)

DEFAULT_RELAY_PATH = "/functions/v1/send-push-notification"


@dataclass(frozen=True)
class Settings:
  """Typed settings for the Calcio Arena notification service."""

  environment: str
  debug: bool
  allowed_origins: tuple[str, ...]
  pg_dsn: str | None
  pg_connect_timeout: int
  log_max_bytes: int
  log_backup_count: int
  log_http_4xx: bool
  push_notifications_enabled: bool
  push_vapid_public_key: str | None
  push_vapid_private_key: str | None
  push_vapid_sub: str | None
  relay_url: str | None
  relay_secret: str | None
  relay_timeout_seconds: float
  app_title: str
  app_icon: str
  app_badge: str
  firebase_project_id: str | None
  firebase_service_account_json_path: str | None

  @property
  def push_configured(self) -> bool:
    """Return True when the relay can sign and send Web Push requests."""
    return bool(self.push_notifications_enabled and self.push_vapid_public_key and self.push_vapid_private_key and self.push_vapid_sub)


@dataclass(frozen=True)
class DatabaseSettings:
  """Typed settings for database connectivity."""

  debug: bool
  pg_dsn: str | None
  pg_connect_timeout: int


def _parse_origins(raw: str | None) -> tuple[str, ...]:
  if not raw:
    raise ValueError("CALCIO_ALLOWED_ORIGINS must be set to one or more origins.")

  origins = [origin.strip() for origin in raw.split(",") if origin.strip()]

  if not origins:
    raise ValueError("CALCIO_ALLOWED_ORIGINS must include at least one origin.")

  if "*" in origins:
    raise ValueError("CALCIO_ALLOWED_ORIGINS must not include wildcard origins.")

  return tuple(origins)


def _parse_bool(raw: str | None) -> bool:
  """Parse a boolean-ish string from environment variables."""

  if raw is None:
    return False

  normalized = raw.strip().lower()
  return normalized in {"1", "true", "yes", "on"}


def _optional_str(raw: str | None) -> str | None:
  if raw is None:
    return None

  stripped = raw.strip()
  return stripped or None


def _parse_positive_float(raw: str | None, *, name: str, default: float) -> float:
  if raw is None or not raw.strip():
    return default

  try:
    value = float(raw)
  except ValueError as exc:
    raise ValueError(f"{name} must be a number.") from exc

  if value <= 0:
    raise ValueError(f"{name} must be a positive number.")

  return value


@lru_cache(maxsize=1)
def get_settings() -> Settings:
  """Load settings once per process."""

  environment = os.getenv("CALCIO_ENV", "development").lower()
  debug = _parse_bool(os.getenv("CALCIO_DEBUG"))

  log_max_bytes = int(os.getenv("CALCIO_LOG_MAX_BYTES", "5242880"))  # 5MB default
  if log_max_bytes <= 0:
    raise ValueError("CALCIO_LOG_MAX_BYTES must be a positive integer.")

  log_backup_count = int(os.getenv("CALCIO_LOG_BACKUP_COUNT", "10"))
  if log_backup_count < 0:
    raise ValueError("CALCIO_LOG_BACKUP_COUNT must be zero or a positive integer.")

  push_notifications_enabled = _parse_bool(os.getenv("CALCIO_PUSH_NOTIFICATIONS_ENABLED"))
  push_vapid_public_key = _optional_str(os.getenv("CALCIO_PUSH_VAPID_PUBLIC_KEY"))
  push_vapid_private_key = _optional_str(os.getenv("CALCIO_PUSH_VAPID_PRIVATE_KEY"))
  push_vapid_sub = _optional_str(os.getenv("CALCIO_PUSH_VAPID_SUB"))

  # Validate push configuration only when push notifications are enabled.
  if push_notifications_enabled:
    if not push_vapid_public_key:
      raise ValueError("CALCIO_PUSH_VAPID_PUBLIC_KEY must be set when push notifications are enabled.")

    if not push_vapid_private_key:
      raise ValueError("CALCIO_PUSH_VAPID_PRIVATE_KEY must be set when push notifications are enabled.")

    if not push_vapid_sub:
      raise ValueError("CALCIO_PUSH_VAPID_SUB must be set when push notifications are enabled.")

    if not (push_vapid_sub.startswith("mailto:") or push_vapid_sub.startswith("https://")):
      raise ValueError("CALCIO_PUSH_VAPID_SUB must start with 'mailto:' or 'https://'.")

  relay_timeout_seconds = _parse_positive_float(os.getenv("CALCIO_RELAY_TIMEOUT_SECONDS"), name="CALCIO_RELAY_TIMEOUT_SECONDS", default=10.0)

  return Settings(
    environment=environment,
    debug=debug,
    allowed_origins=_parse_origins(os.getenv("CALCIO_ALLOWED_ORIGINS")),
    pg_dsn=_optional_str(os.getenv("CALCIO_PG_DSN")) or _optional_str(os.getenv("DATABASE_URL")),
    pg_connect_timeout=int(os.getenv("CALCIO_PG_CONNECT_TIMEOUT", "5")),
    log_max_bytes=log_max_bytes,
    log_backup_count=log_backup_count,
    log_http_4xx=_parse_bool(os.getenv("CALCIO_LOG_HTTP_4XX")),
    push_notifications_enabled=push_notifications_enabled,
    push_vapid_public_key=push_vapid_public_key,
    push_vapid_private_key=push_vapid_private_key,
    push_vapid_sub=push_vapid_sub,
    relay_url=_optional_str(os.getenv("CALCIO_RELAY_URL")),
    relay_secret=_optional_str(os.getenv("CALCIO_RELAY_SECRET")),
    relay_timeout_seconds=relay_timeout_seconds,
    app_title=(os.getenv("CALCIO_APP_TITLE") or "Calcio Arena").strip(),
    app_icon=(os.getenv("CALCIO_APP_ICON") or "/icon-192.png").strip(),
    app_badge=(os.getenv("CALCIO_APP_BADGE") or "/favicon.ico").strip(),
    firebase_project_id=_optional_str(os.getenv("CALCIO_FIREBASE_PROJECT_ID")),
    firebase_service_account_json_path=_optional_str(os.getenv("CALCIO_FIREBASE_SERVICE_ACCOUNT_JSON_PATH")),
  )


@lru_cache(maxsize=1)
def get_database_settings() -> DatabaseSettings:
  """Load only the settings needed to open a database connection."""

  return DatabaseSettings(debug=_parse_bool(os.getenv("CALCIO_DEBUG")), pg_dsn=_optional_str(os.getenv("CALCIO_PG_DSN")) or _optional_str(os.getenv("DATABASE_URL")), pg_connect_timeout=int(os.getenv("CALCIO_PG_CONNECT_TIMEOUT", "5")))
