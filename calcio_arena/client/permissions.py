"""Notification permission negotiation, including the Safari/iOS granted hint."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Protocol

from calcio_arena.client.capabilities import CapabilitySnapshot, PermissionState

logger = logging.getLogger(__name__)

SAFARI_PERMISSION_HINT_KEY = "notification_permission_safari"
GRANTED: PermissionState = "granted"
IOS_SETTINGS_INSTRUCTIONS = "Notifications are enabled. On iOS, also allow notifications for this site in Settings > Safari > Notifications."


class NotificationRuntime(Protocol):
  """The runtime's notification permission API."""

  @property
  def permission(self) -> PermissionState:
    """The live permission value."""

  async def request_permission(self) -> PermissionState:
    """Show the permission prompt and return the user's answer."""


class PermissionHintStore(Protocol):
  """Client-local key/value storage for the permission hint."""

  def get(self, key: str) -> str | None: ...

  def set(self, key: str, value: str) -> None: ...


class UserPrompter(Protocol):
  """Shows an informational message to the user."""

  def inform(self, message: str) -> None: ...


class InMemoryPermissionHintStore:
  def __init__(self, values: dict[str, str] | None = None) -> None:
    self._values = dict(values or {})

  def get(self, key: str) -> str | None:
    return self._values.get(key)

  def set(self, key: str, value: str) -> None:
    self._values[key] = value


class JsonFilePermissionHintStore:
  """Persist hints in a small JSON document so they survive restarts."""

  def __init__(self, path: Path) -> None:
    self._path = path

  def _read(self) -> dict[str, str]:
    if not self._path.exists():
      return {}
    try:
      data = json.loads(self._path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
      logger.warning("Ignoring unreadable permission hints path=%s error=%s", self._path, exc)
      return {}
    return {str(k): str(v) for k, v in data.items()} if isinstance(data, dict) else {}

  def get(self, key: str) -> str | None:
    return self._read().get(key)

  def set(self, key: str, value: str) -> None:
    data = self._read()
    data[key] = value
    self._path.parent.mkdir(parents=True, exist_ok=True)
    self._path.write_text(json.dumps(data, sort_keys=True), encoding="utf-8")


class PermissionNegotiator:
  """Ask for notification permission and answer whether it is held.

  On Safari and iOS the live permission read is unreliable across reloads, so a granted
  answer is also remembered in the hint store and `has_permission` trusts either source.
  Other platforms only ever trust the live value.
  """

  def __init__(self, *, capabilities: CapabilitySnapshot, runtime: NotificationRuntime | None, hints: PermissionHintStore, prompter: UserPrompter | None = None) -> None:
    self._capabilities = capabilities
    self._runtime = runtime if capabilities.has_notification_api else None
    self._hints = hints
    self._prompter = prompter
    self._ios_instructions_shown = False

  async def request_permission(self) -> bool:
    """Prompt once; call only from an explicit user gesture."""
    if self._runtime is None:
      logger.info("Notification API unavailable; not prompting")
      return False

    try:
      result = await self._runtime.request_permission()
    except Exception as exc:  # noqa: BLE001
      logger.error("Notification permission request failed: %s", exc)
      return False

    if result != GRANTED:
      logger.info("Notification permission not granted result=%s", result)
      return False

    self._hints.set(SAFARI_PERMISSION_HINT_KEY, GRANTED)
    if self._capabilities.is_ios and not self._ios_instructions_shown and self._prompter is not None:
      self._prompter.inform(IOS_SETTINGS_INSTRUCTIONS)
      self._ios_instructions_shown = True
    return True

  def permission_state(self) -> PermissionState:
    if self._runtime is None:
      return "default"
    return self._runtime.permission

  def has_permission(self) -> bool:
    if self._runtime is None:
      return False

    live_granted = self._runtime.permission == GRANTED
    if not self._capabilities.is_apple_web:
      return live_granted
    return live_granted or self._hints.get(SAFARI_PERMISSION_HINT_KEY) == GRANTED

  def should_show_permission_alert(self) -> bool:
    """Whether the UI should explain how to enable notifications."""
    if self._runtime is None:
      return False

    state = self._runtime.permission
    return state == "denied" or (self._capabilities.is_apple_web and state != GRANTED)
