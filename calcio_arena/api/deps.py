"""Shared FastAPI dependencies for the notification routes."""

from __future__ import annotations

from fastapi import Request

from calcio_arena.notifications.factory import NotificationServices


def get_notification_services(request: Request) -> NotificationServices:
  """Return the services built at startup."""
  services = getattr(request.app.state, "notification_services", None)
  if services is None:
    raise RuntimeError("Notification services are not initialized; is the app lifespan running?")
  return services
