"""Factory helpers for notification services."""

from __future__ import annotations

from dataclasses import dataclass

from calcio_arena.config import DEFAULT_RELAY_PATH, Settings
from calcio_arena.notifications.contracts import NotificationStore, PushSender, PushSubscriptionStore, RelayClient
from calcio_arena.notifications.dispatcher import NotificationDispatcher
from calcio_arena.notifications.matches_repo import InMemoryMatchRepository, MatchRepository
from calcio_arena.notifications.notification_repo import InMemoryNotificationRepository, NotificationRepository
from calcio_arena.notifications.push_sender import NullPushSender, VapidConfig, WebPushSender
from calcio_arena.notifications.push_subscription_repo import InMemoryPushSubscriptionRepository, PushSubscriptionRepository
from calcio_arena.notifications.realtime import ChangeFeed, get_change_feed
from calcio_arena.notifications.relay import HttpRelayClient, PushRelayService


@dataclass(frozen=True)
class NotificationServices:
  """Process-wide notification collaborators shared by the HTTP routes."""

  change_feed: ChangeFeed
  notification_store: NotificationStore
  subscription_store: PushSubscriptionStore
  matches: MatchRepository | InMemoryMatchRepository
  dispatcher: NotificationDispatcher
  relay_service: PushRelayService
  push_enabled: bool


def build_push_sender(settings: Settings) -> PushSender:
  """Use pywebpush only when VAPID signing material is configured."""
  if settings.push_configured:
    return WebPushSender(vapid_config=VapidConfig(public_key=settings.push_vapid_public_key or "", private_key=settings.push_vapid_private_key or "", sub=settings.push_vapid_sub or ""))
  return NullPushSender()


def build_relay_client(settings: Settings) -> RelayClient | None:
  """Build the relay client; a bare origin gets the default relay path appended."""
  if not settings.relay_url:
    return None

  url = settings.relay_url.rstrip("/")
  if not url.endswith(DEFAULT_RELAY_PATH):
    url = f"{url}{DEFAULT_RELAY_PATH}"
  return HttpRelayClient(url=url, secret=settings.relay_secret, timeout_seconds=settings.relay_timeout_seconds)


def build_notification_services(settings: Settings, *, change_feed: ChangeFeed | None = None) -> NotificationServices:
  """Construct notification services based on environment configuration."""
  feed = change_feed or get_change_feed()

  # Persist in Postgres when configured, otherwise keep rows in process memory.
  if settings.pg_dsn:
    notification_store: NotificationStore = NotificationRepository(change_feed=feed)
    subscription_store: PushSubscriptionStore = PushSubscriptionRepository()
    matches: MatchRepository | InMemoryMatchRepository = MatchRepository()
  else:
    notification_store = InMemoryNotificationRepository(change_feed=feed)
    subscription_store = InMemoryPushSubscriptionRepository()
    matches = InMemoryMatchRepository()

  dispatcher = NotificationDispatcher(
    notification_store=notification_store,
    subscription_store=subscription_store,
    relay_client=build_relay_client(settings),
    title=settings.app_title,
    icon=settings.app_icon,
    badge=settings.app_badge,
    relay_timeout_seconds=settings.relay_timeout_seconds,
  )
  relay_service = PushRelayService(push_sender=build_push_sender(settings), subscription_store=subscription_store, icon=settings.app_icon, badge=settings.app_badge)
  return NotificationServices(
    change_feed=feed, notification_store=notification_store, subscription_store=subscription_store, matches=matches, dispatcher=dispatcher, relay_service=relay_service, push_enabled=settings.push_configured
  )
