"""Classify the client runtime for Web Push.

Everything here is a pure function of a `RuntimeEnvironment`. Missing signals count as
unsupported; nothing assumes a capability it cannot see.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Literal

PermissionState = Literal["default", "granted", "denied"]

# Web Push reached Safari (and iOS home-screen apps) in 16.4.
MIN_SAFARI_PUSH_VERSION = (16, 4)

_IOS_DEVICE_RE = re.compile(r"iPad|iPhone|iPod")
_SAFARI_RE = re.compile(r"Safari/")
# Chrome, Firefox and Edge on iOS carry the Safari token too.
_NOT_SAFARI_RE = re.compile(r"Chrome/|Chromium/|CriOS/|FxiOS/|EdgiOS/|Android")
_SAFARI_VERSION_RE = re.compile(r"Version/(\d+)(?:\.(\d+))?")


@dataclass(frozen=True)
class RuntimeEnvironment:
  """The raw signals a browser exposes about itself."""

  user_agent: str = ""
  display_mode_standalone: bool = False
  navigator_standalone: bool = False
  ms_stream: bool = False
  has_notification_api: bool = False
  has_service_worker: bool = False
  has_push_manager: bool = False
  permission: PermissionState = "default"


@dataclass(frozen=True)
class CapabilitySnapshot:
  """Push capabilities of one session, computed once and passed by value."""

  is_ios: bool
  is_safari: bool
  is_pwa: bool
  push_permission: PermissionState
  push_supported: bool
  has_notification_api: bool = False
  user_agent: str = ""

  @property
  def is_apple_web(self) -> bool:
    """True on the platforms whose permission read is unreliable."""
    return self.is_ios or self.is_safari


def is_ios(user_agent: str, *, ms_stream: bool = False) -> bool:
  return bool(_IOS_DEVICE_RE.search(user_agent or "")) and not ms_stream


def is_safari(user_agent: str) -> bool:
  ua = user_agent or ""
  return bool(_SAFARI_RE.search(ua)) and not _NOT_SAFARI_RE.search(ua)


def is_pwa(env: RuntimeEnvironment) -> bool:
  return env.display_mode_standalone or env.navigator_standalone


def safari_version(user_agent: str) -> tuple[int, int] | None:
  """Parse `Version/<major>.<minor>`; None when the token is missing."""
  match = _SAFARI_VERSION_RE.search(user_agent or "")
  if match is None:
    return None
  return int(match.group(1)), int(match.group(2) or 0)


def ios_push_supported(env: RuntimeEnvironment) -> bool:
  """Installed apps always qualify; otherwise Safari must be at least 16.4."""
  if is_pwa(env):
    return True

  if not is_safari(env.user_agent):
    return False

  version = safari_version(env.user_agent)
  return version is not None and version >= MIN_SAFARI_PUSH_VERSION


def detect(env: RuntimeEnvironment) -> CapabilitySnapshot:
  ios = is_ios(env.user_agent, ms_stream=env.ms_stream)
  push_supported = env.has_service_worker and env.has_push_manager
  if ios:
    push_supported = push_supported and ios_push_supported(env)

  return CapabilitySnapshot(
    is_ios=ios,
    is_safari=is_safari(env.user_agent),
    is_pwa=is_pwa(env),
    push_permission=env.permission if env.has_notification_api else "default",
    push_supported=push_supported,
    has_notification_api=env.has_notification_api,
    user_agent=env.user_agent,
  )


def describe_device(user_agent: str) -> dict[str, Any]:
  """Device details stored next to a push subscription."""
  return {"is_safari": is_safari(user_agent), "is_ios": is_ios(user_agent), "user_agent": user_agent}
