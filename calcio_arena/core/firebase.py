import logging
from typing import Any

import firebase_admin
from firebase_admin import auth, credentials

from calcio_arena.config import get_settings

logger = logging.getLogger(__name__)

_REJECTED_TOKEN_ERRORS = (auth.InvalidIdTokenError, auth.RevokedIdTokenError, auth.UserDisabledError, auth.CertificateFetchError, ValueError)


def initialize_firebase() -> firebase_admin.App | None:
  """Return the default Firebase app, initializing it on first use; None when unconfigured."""
  try:
    return firebase_admin.get_app()
  except ValueError:
    pass

  settings = get_settings()
  if not settings.firebase_project_id:
    logger.warning("Firebase project not configured; bearer tokens will be rejected.")
    return None

  options = {"projectId": settings.firebase_project_id}
  try:
    if settings.firebase_service_account_json_path:
      app = firebase_admin.initialize_app(credentials.Certificate(settings.firebase_service_account_json_path), options)
    else:
      # Application Default Credentials.
      app = firebase_admin.initialize_app(options=options)
  except (ValueError, OSError) as exc:
    logger.error("Failed to initialize Firebase Admin SDK project_id=%s error=%s", settings.firebase_project_id, exc)
    return None

  logger.info("Firebase Admin SDK initialized project_id=%s", settings.firebase_project_id)
  return app


def verify_id_token(id_token: str) -> dict[str, Any] | None:
  """Return the claims of a valid Firebase ID token, or None."""
  app = initialize_firebase()
  if app is None:
    return None

  try:
    return auth.verify_id_token(id_token, app=app)
  except _REJECTED_TOKEN_ERRORS as exc:
    logger.info("ID token rejected error_type=%s", type(exc).__name__)
    return None
