"""Recipient filtering for the guest identity convention."""

from __future__ import annotations

import secrets
import string
import time
from collections.abc import Iterable, Mapping
from typing import Any

GUEST_PREFIX = "guest-"
_BASE36 = string.digits + string.ascii_lowercase


def is_guest_identity(user_id: str | None) -> bool:
  """Return True for synthesized guest identifiers, which never receive notifications."""
  return bool(user_id) and str(user_id).startswith(GUEST_PREFIX)


def new_guest_identity() -> str:
  """Create a guest identifier in the `guest-<millis>-<random>` form used at signup."""
  suffix = "".join(secrets.choice(_BASE36) for _ in range(7))
  return f"{GUEST_PREFIX}{int(time.time() * 1000)}-{suffix}"


def _user_id_of(participant: str | Mapping[str, Any] | Any) -> str | None:
  if isinstance(participant, str):
    return participant
  if isinstance(participant, Mapping):
    value = participant.get("user_id")
  else:
    value = getattr(participant, "user_id", None)
  return str(value) if value else None


def partition_recipients(participants: Iterable[str | Mapping[str, Any] | Any]) -> tuple[list[str], list[str]]:
  """Split participants into (real user ids, guest ids), dropping duplicates and blanks."""
  real: list[str] = []
  guests: list[str] = []
  seen: set[str] = set()
  for participant in participants:
    user_id = _user_id_of(participant)
    if not user_id or user_id in seen:
      continue
    seen.add(user_id)
    if is_guest_identity(user_id):
      guests.append(user_id)
    else:
      real.append(user_id)
  return real, guests
