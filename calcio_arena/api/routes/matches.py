"""Routes that notify match participants."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, ConfigDict, Field

from calcio_arena.api.deps import get_notification_services
from calcio_arena.core.security import Principal, get_current_principal
from calcio_arena.notifications.contracts import DispatchResult, GuestRecipientError
from calcio_arena.notifications.dispatcher import GUEST_RECIPIENT_MESSAGE
from calcio_arena.notifications.factory import NotificationServices
from calcio_arena.notifications.matches_repo import default_reminder_message

router = APIRouter()


class NotifyMatchRequest(BaseModel):
  """Optional message and roster; missing values are read from the match tables."""

  message: str | None = Field(default=None, max_length=1000)
  participants: list[str] | None = None
  model_config = ConfigDict(extra="forbid")


class NotifyParticipantRequest(BaseModel):
  message: str | None = Field(default=None, max_length=1000)
  model_config = ConfigDict(extra="forbid")


def _result_payload(result: DispatchResult) -> dict[str, Any]:
  return {
    "success": result.success,
    "notified": list(result.notified),
    "notified_count": result.notified_count,
    "skipped_guests": list(result.skipped_guests),
    "relayed": result.relayed,
    "message": result.message,
    "error": result.error,
  }


async def _resolve_message(services: NotificationServices, match_id: str, message: str | None) -> str:
  if message and message.strip():
    return message.strip()

  match = await services.matches.get_match(match_id)
  if match is None:
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Match not found")
  return default_reminder_message(match)


def _raise_for_storage_failure(result: DispatchResult) -> None:
  # Guest rejections are raised separately; every other failure is a failed write.
  if not result.success and not result.rejected_guest:
    raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Notifications could not be saved")


@router.post("/{match_id}/notify")
async def notify_match(
  match_id: str,
  payload: NotifyMatchRequest | None = None,
  principal: Principal = Depends(get_current_principal),  # noqa: B008
  services: NotificationServices = Depends(get_notification_services),  # noqa: B008
) -> dict[str, Any]:
  """Notify every registered participant of a match; guests are skipped."""
  request = payload or NotifyMatchRequest()
  message = await _resolve_message(services, match_id, request.message)
  participants = request.participants if request.participants is not None else await services.matches.list_participant_ids(match_id)

  result = await services.dispatcher.notify_all(match_id, message, participants, current_user_id=principal.user_id)
  _raise_for_storage_failure(result)
  return _result_payload(result)


@router.post("/{match_id}/participants/{user_id}/notify")
async def notify_participant(
  match_id: str,
  user_id: str,
  payload: NotifyParticipantRequest | None = None,
  principal: Principal = Depends(get_current_principal),  # noqa: B008
  services: NotificationServices = Depends(get_notification_services),  # noqa: B008
) -> dict[str, Any]:
  """Notify a single participant; guest participants are rejected."""
  request = payload or NotifyParticipantRequest()
  message = await _resolve_message(services, match_id, request.message)

  result = await services.dispatcher.notify_single(match_id, user_id, message, current_user_id=principal.user_id)
  if result.rejected_guest:
    raise GuestRecipientError(result.error or GUEST_RECIPIENT_MESSAGE)
  _raise_for_storage_failure(result)
  return _result_payload(result)
