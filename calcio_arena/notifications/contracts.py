"""Contracts shared by the notification dispatcher, inbox and push relay."""

from __future__ import annotations

import datetime
import uuid
from dataclasses import dataclass, field
from typing import Any, Protocol


@dataclass(frozen=True)
class NotificationEntry:
  """One message addressed to one real user about one match."""

  match_id: str
  user_id: str
  message: str


@dataclass(frozen=True)
class NotificationRecord:
  """A persisted notification row."""

  id: uuid.UUID
  created_at: datetime.datetime
  match_id: str
  user_id: str
  message: str
  is_read: bool

  def to_dict(self) -> dict[str, Any]:
    return {"id": str(self.id), "created_at": self.created_at.isoformat(), "match_id": self.match_id, "user_id": self.user_id, "message": self.message, "is_read": self.is_read}

  @classmethod
  def from_dict(cls, row: dict[str, Any]) -> NotificationRecord:
    """Rebuild a record from a change-feed row."""
    created_at = row["created_at"]
    if isinstance(created_at, str):
      created_at = datetime.datetime.fromisoformat(created_at)
    return cls(id=uuid.UUID(str(row["id"])), created_at=created_at, match_id=str(row["match_id"]), user_id=str(row["user_id"]), message=str(row.get("message") or ""), is_read=bool(row.get("is_read")))


@dataclass(frozen=True)
class SubscriptionRecord:
  """The single stored push subscription for a user (last writer wins)."""

  user_id: str
  subscription: dict[str, Any]
  device_info: dict[str, Any]
  created_at: datetime.datetime | None = None
  updated_at: datetime.datetime | None = None

  @property
  def endpoint(self) -> str | None:
    endpoint = self.subscription.get("endpoint")
    return str(endpoint) if endpoint else None


@dataclass(frozen=True)
class RelayNotification:
  """Message envelope posted to the push relay."""

  title: str
  message: str
  match_id: str | None = None
  url: str | None = None

  def to_dict(self) -> dict[str, str]:
    body = {"title": self.title, "message": self.message}
    if self.match_id is not None:
      body["matchId"] = self.match_id
    if self.url is not None:
      body["url"] = self.url
    return body


@dataclass(frozen=True)
class PushNotification:
  """A single Web Push delivery addressed to one subscription endpoint."""

  endpoint: str
  p256dh: str
  auth: str
  payload: bytes


@dataclass(frozen=True)
class DispatchResult:
  """Outcome of a dispatch call; `success` reflects only the durable write."""

  success: bool
  notified: tuple[str, ...] = ()
  skipped_guests: tuple[str, ...] = ()
  rejected_guest: bool = False
  rows: tuple[NotificationRecord, ...] = ()
  relayed: bool = False
  displayed_locally: bool = False
  error: str | None = None
  message: str | None = None

  @property
  def notified_count(self) -> int:
    return len(self.notified)


@dataclass(frozen=True)
class RelayReport:
  """Per-call delivery counts reported by the push relay."""

  sent: int = 0
  failed: int = 0
  removed: list[str] = field(default_factory=list)


class NotificationError(Exception):
  """Base class for all notification failures."""


class GuestRecipientError(NotificationError):
  """Raised when a guest identity is addressed directly."""


class NotificationPersistenceError(NotificationError):
  """Raised when the authoritative notification write or read fails."""


class RelayError(NotificationError):
  """Raised when the server push relay cannot be reached or rejects the request."""


class InvalidPushPayloadError(NotificationError):
  """Raised when a push or channel payload does not match the expected shape."""


class NotificationProviderError(NotificationError):
  """Exception raised when the push service returns a delivery error."""


class InvalidPushSubscriptionError(NotificationProviderError):
  """Exception raised when a push subscription endpoint is expired or invalid."""


class TransientPushProviderError(NotificationProviderError):
  """Exception raised when transient push provider failures exhaust retries."""


class NotificationStore(Protocol):
  """Durable storage for notification rows."""

  async def upsert_many(self, entries: list[NotificationEntry]) -> list[NotificationRecord]:
    """Insert or update rows keyed by (match_id, user_id), resetting `is_read`."""

  async def list_for_user(self, *, user_id: str) -> list[NotificationRecord]:
    """Return the user's notifications newest first."""

  async def mark_read(self, *, notification_id: uuid.UUID, user_id: str | None = None) -> bool:
    """Mark one notification read; return False when it does not exist."""

  async def mark_all_read(self, *, user_id: str) -> int:
    """Mark every unread notification of a user read and return the count."""


class PushSubscriptionStore(Protocol):
  """Durable storage for push subscriptions keyed by user."""

  async def upsert(self, record: SubscriptionRecord) -> SubscriptionRecord:
    """Insert or overwrite the subscription for `record.user_id`."""

  async def list_for_users(self, *, user_ids: list[str]) -> list[SubscriptionRecord]:
    """Return stored subscriptions for the given users."""

  async def delete_for_user(self, *, user_id: str) -> None:
    """Remove the user's subscription."""

  async def delete_by_endpoint(self, *, endpoint: str) -> list[str]:
    """Remove subscriptions for an endpoint the push service rejected."""


class PushSender(Protocol):
  """Delivery contract for sending push notifications."""

  def send(self, notification: PushNotification) -> None:
    """Send a push notification synchronously."""


class RelayClient(Protocol):
  """Client for the server-side push relay."""

  async def send(self, *, subscriptions: list[dict[str, Any]], notification: RelayNotification) -> dict[str, Any]:
    """Post subscriptions plus the message envelope to the relay."""


class LocalNotifier(Protocol):
  """Displays a notification on the current client without the push service."""

  async def show(self, title: str, options: dict[str, Any]) -> bool:
    """Show a notification and return whether it was displayed."""
