"""Typed push payloads exchanged between the relay, the push service and the worker."""

from __future__ import annotations

from typing import Annotated, Any

import msgspec

from calcio_arena.notifications.contracts import InvalidPushPayloadError

DEFAULT_VIBRATE_PATTERN = (100, 50, 100)


class PushData(msgspec.Struct, omit_defaults=True):
  """Navigation data carried by a notification."""

  url: str = "/"
  match_id: str | None = msgspec.field(default=None, name="matchId")


class PushPayload(msgspec.Struct, omit_defaults=True):
  """A notification as rendered by the delivery worker."""

  title: Annotated[str, msgspec.Meta(min_length=1)]
  body: str
  tag: Annotated[str, msgspec.Meta(min_length=1)]
  data: PushData = msgspec.field(default_factory=PushData)
  renotify: bool = True
  icon: str | None = None
  badge: str | None = None
  vibrate: list[int] | None = None


def match_tag(match_id: str | None) -> str:
  """Collapse every notification about one match into a single visible tag."""
  return f"match-{match_id}" if match_id else "calcio-arena"


def match_url(match_id: str | None) -> str:
  return f"/match/{match_id}" if match_id else "/"


def build_match_payload(*, title: str, message: str, match_id: str | None = None, url: str | None = None, icon: str | None = None, badge: str | None = None) -> PushPayload:
  """Build the payload for a match notification with the default tag and target URL."""
  return PushPayload(title=title, body=message, tag=match_tag(match_id), data=PushData(url=url or match_url(match_id), match_id=match_id), renotify=True, icon=icon, badge=badge, vibrate=list(DEFAULT_VIBRATE_PATTERN))


def decode_push_payload(raw: bytes | str) -> PushPayload:
  """Decode and validate a push payload, rejecting malformed input."""
  try:
    return msgspec.json.decode(raw, type=PushPayload)
  except msgspec.DecodeError as exc:
    raise InvalidPushPayloadError(f"Invalid push payload: {exc}") from exc


def convert_push_payload(value: Any) -> PushPayload:
  """Validate an already-parsed object (e.g. a channel message body) as a payload."""
  try:
    return msgspec.convert(value, type=PushPayload)
  except msgspec.ValidationError as exc:
    raise InvalidPushPayloadError(f"Invalid push payload: {exc}") from exc


def encode_push_payload(payload: PushPayload) -> bytes:
  return msgspec.json.encode(payload)


def notification_options(payload: PushPayload) -> dict[str, Any]:
  """Map a payload onto `showNotification` options."""
  options = msgspec.to_builtins(payload)
  options.pop("title", None)
  # omit_defaults drops renotify=True; the display API needs it spelled out.
  options["renotify"] = payload.renotify
  return options
