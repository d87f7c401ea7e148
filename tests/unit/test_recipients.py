from __future__ import annotations

import re
from types import SimpleNamespace

from calcio_arena.notifications.recipients import GUEST_PREFIX, is_guest_identity, new_guest_identity, partition_recipients


def test_guest_identity_is_prefix_based():
  assert is_guest_identity("guest-1700000000000-abc123x")
  assert not is_guest_identity("u1")
  assert not is_guest_identity("my-guest-account")
  assert not is_guest_identity("")
  assert not is_guest_identity(None)


def test_new_guest_identity_shape():
  identity = new_guest_identity()
  assert identity.startswith(GUEST_PREFIX)
  assert re.fullmatch(r"guest-\d+-[0-9a-z]{7}", identity)
  assert is_guest_identity(identity)


def test_partition_recipients_accepts_mixed_participant_shapes():
  participants = ["u1", {"user_id": "guest-123-abc"}, SimpleNamespace(user_id="u2"), {"user_id": None}, "", "u1"]
  real, guests = partition_recipients(participants)
  assert real == ["u1", "u2"]
  assert guests == ["guest-123-abc"]
