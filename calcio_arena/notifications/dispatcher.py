"""Fan match notifications out to registered participants.

The durable notification rows are written first and are the source of truth. Push
delivery through the relay runs afterwards and is best effort: its failures are logged
and never change the outcome reported to the caller.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable, Mapping
from typing import Any

from calcio_arena.notifications.contracts import DispatchResult, LocalNotifier, NotificationEntry, NotificationPersistenceError, NotificationRecord, NotificationStore, PushSubscriptionStore, RelayClient, RelayError, RelayNotification
from calcio_arena.notifications.payloads import build_match_payload, match_url, notification_options
from calcio_arena.notifications.recipients import is_guest_identity, partition_recipients

logger = logging.getLogger(__name__)

NO_RECIPIENTS_MESSAGE = "No registered users to notify"
GUEST_RECIPIENT_MESSAGE = "Guest participants cannot receive notifications"


class NotificationDispatcher:
  """Write notification rows for real participants, then relay push best effort."""

  def __init__(
    self,
    *,
    notification_store: NotificationStore,
    subscription_store: PushSubscriptionStore,
    relay_client: RelayClient | None = None,
    local_notifier: LocalNotifier | None = None,
    title: str = "Calcio Arena",
    icon: str | None = None,
    badge: str | None = None,
    relay_timeout_seconds: float = 10.0,
  ) -> None:
    self._notification_store = notification_store
    self._subscription_store = subscription_store
    self._relay_client = relay_client
    self._local_notifier = local_notifier
    self._title = title
    self._icon = icon
    self._badge = badge
    self._relay_timeout_seconds = relay_timeout_seconds

  async def notify_all(self, match_id: str, message: str, participants: Iterable[str | Mapping[str, Any] | Any], *, current_user_id: str | None = None) -> DispatchResult:
    """Notify every non-guest participant of a match."""
    recipients, guests = partition_recipients(participants)
    if guests:
      logger.info("Skipping guest participants match_id=%s guests=%s", match_id, len(guests))

    # A guest-only roster is a successful no-op.
    if not recipients:
      return DispatchResult(success=True, skipped_guests=tuple(guests), message=NO_RECIPIENTS_MESSAGE)

    return await self._dispatch(match_id=match_id, message=message, recipients=recipients, skipped_guests=guests, current_user_id=current_user_id)

  async def notify_single(self, match_id: str, user_id: str, message: str, *, current_user_id: str | None = None) -> DispatchResult:
    """Notify one participant; guests are rejected before any storage call."""
    if is_guest_identity(user_id):
      logger.warning("Refusing to notify guest participant match_id=%s user_id=%s", match_id, user_id)
      return DispatchResult(success=False, skipped_guests=(user_id,), rejected_guest=True, error=GUEST_RECIPIENT_MESSAGE)

    return await self._dispatch(match_id=match_id, message=message, recipients=[user_id], skipped_guests=[], current_user_id=current_user_id)

  async def _dispatch(self, *, match_id: str, message: str, recipients: list[str], skipped_guests: list[str], current_user_id: str | None) -> DispatchResult:
    entries = [NotificationEntry(match_id=match_id, user_id=user_id, message=message) for user_id in recipients]

    # The durable write must finish before any push is attempted.
    try:
      rows = await self._notification_store.upsert_many(entries)
    except NotificationPersistenceError as exc:
      logger.error("Notification write failed match_id=%s recipients=%s error=%s", match_id, len(recipients), exc)
      return DispatchResult(success=False, skipped_guests=tuple(skipped_guests), error=str(exc))
    except Exception as exc:  # noqa: BLE001
      logger.error("Notification write failed match_id=%s recipients=%s error=%s", match_id, len(recipients), exc, exc_info=True)
      return DispatchResult(success=False, skipped_guests=tuple(skipped_guests), error=str(exc))

    logger.info("Notifications stored match_id=%s recipients=%s", match_id, len(rows))
    relayed, relay_reachable = await self._relay(match_id=match_id, message=message, recipients=recipients)

    displayed_locally = False
    if not relay_reachable and current_user_id is not None and current_user_id in recipients:
      displayed_locally = await self._display_locally(match_id=match_id, message=message)

    return DispatchResult(success=True, notified=tuple(recipients), skipped_guests=tuple(skipped_guests), rows=tuple(_sorted_rows(rows)), relayed=relayed, displayed_locally=displayed_locally)

  async def _relay(self, *, match_id: str, message: str, recipients: list[str]) -> tuple[bool, bool]:
    """Return (relayed, relay_reachable); nothing raised here reaches the caller."""
    if self._relay_client is None:
      logger.debug("No push relay configured match_id=%s", match_id)
      return False, False

    try:
      subscriptions = await self._subscription_store.list_for_users(user_ids=recipients)
    except Exception as exc:  # noqa: BLE001
      logger.error("Push subscription lookup failed match_id=%s error=%s", match_id, exc, exc_info=True)
      return False, False

    if not subscriptions:
      logger.info("No push subscriptions for recipients match_id=%s", match_id)
      return False, True

    notification = RelayNotification(title=self._title, message=message, match_id=match_id, url=match_url(match_id))
    try:
      async with asyncio.timeout(self._relay_timeout_seconds):
        response = await self._relay_client.send(subscriptions=[record.subscription for record in subscriptions], notification=notification)
    except TimeoutError:
      logger.error("Push relay timed out match_id=%s timeout=%s", match_id, self._relay_timeout_seconds)
      return False, False
    except RelayError as exc:
      logger.error("Push relay failed match_id=%s error=%s", match_id, exc)
      return False, False
    except Exception as exc:  # noqa: BLE001
      logger.error("Push relay failed match_id=%s error=%s", match_id, exc, exc_info=True)
      return False, False

    logger.info("Push relay accepted match_id=%s subscriptions=%s response=%s", match_id, len(subscriptions), response)
    return True, True

  async def _display_locally(self, *, match_id: str, message: str) -> bool:
    if self._local_notifier is None:
      return False

    payload = build_match_payload(title=self._title, message=message, match_id=match_id, icon=self._icon, badge=self._badge)
    try:
      return bool(await self._local_notifier.show(payload.title, notification_options(payload)))
    except Exception as exc:  # noqa: BLE001
      logger.warning("Local notification display failed match_id=%s error=%s", match_id, exc)
      return False


def _sorted_rows(rows: list[NotificationRecord]) -> list[NotificationRecord]:
  return sorted(rows, key=lambda row: row.user_id)
