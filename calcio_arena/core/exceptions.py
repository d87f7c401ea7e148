import logging
from typing import Any

from fastapi import HTTPException, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from calcio_arena.notifications.contracts import GuestRecipientError, NotificationPersistenceError

logger = logging.getLogger("uvicorn.error")


def _describe_exception(exc: BaseException) -> str:
  message = str(exc)
  return f"{type(exc).__name__}: {message}" if message else type(exc).__name__


def _json_safe(value: Any) -> Any:
  return jsonable_encoder(value, custom_encoder={BaseException: _describe_exception})


def _request_id(request: Request) -> str | None:
  return getattr(request.state, "request_id", None)


def _error_payload(detail: Any, *, request_id: str | None = None) -> dict[str, Any]:
  """Wrap an error detail, tagging it with the request id when one was assigned."""
  payload: dict[str, Any] = {"detail": detail}
  if request_id:
    payload["requestId"] = request_id
  return payload


def _redact_validation_errors(errors: list[dict[str, Any]]) -> list[Any]:
  """Drop echoed request input (top level and ctx) from pydantic error entries."""
  redacted = []
  for error in errors:
    entry = {key: value for key, value in error.items() if key != "input"}
    if isinstance(entry.get("ctx"), dict):
      entry["ctx"] = {key: value for key, value in entry["ctx"].items() if key != "input"}
    redacted.append(_json_safe(entry))
  return redacted


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
  """Global exception handler to catch unhandled errors."""
  request_id = _request_id(request)
  logger.error("Global exception request_id=%s path=%s error_type=%s", request_id, request.url.path, type(exc).__name__, exc_info=True)
  return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=_error_payload("Internal Server Error", request_id=request_id))


async def request_validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
  """Log request validation errors for debugging without leaking payloads."""
  request_id = _request_id(request)
  errors = _redact_validation_errors(list(exc.errors()))
  logger.warning("Request validation failed request_id=%s path=%s method=%s errors=%s", request_id, request.url.path, request.method, errors)
  return JSONResponse(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, content=_error_payload(errors, request_id=request_id))


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
  """Handle FastAPI HTTPExceptions while avoiding leaking internal diagnostics."""
  from calcio_arena.config import get_settings

  request_id = _request_id(request)
  # Log 5xx HTTPExceptions with a traceback; do not expose `exc.detail` to callers.
  if exc.status_code >= 500:
    logger.error("HTTPException request_id=%s path=%s status_code=%s detail=%s", request_id, request.url.path, exc.status_code, exc.detail, exc_info=True)
    return JSONResponse(status_code=exc.status_code, content=_error_payload("Internal Server Error", request_id=request_id), headers=exc.headers)

  if get_settings().log_http_4xx:
    logger.warning("HTTPException request_id=%s path=%s status_code=%s detail=%s", request_id, request.url.path, exc.status_code, _json_safe(exc.detail))

  return JSONResponse(status_code=exc.status_code, content=_error_payload(exc.detail, request_id=request_id), headers=exc.headers)


async def persistence_exception_handler(request: Request, exc: NotificationPersistenceError) -> JSONResponse:
  """Report storage failures as a retryable service error."""
  request_id = _request_id(request)
  logger.error("Notification storage failure request_id=%s path=%s error=%s", request_id, request.url.path, exc, exc_info=True)
  return JSONResponse(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, content=_error_payload("Notification storage unavailable", request_id=request_id))


async def guest_recipient_exception_handler(request: Request, exc: GuestRecipientError) -> JSONResponse:
  """Reject notifications addressed to guest participants."""
  request_id = _request_id(request)
  logger.info("Guest recipient rejected request_id=%s path=%s", request_id, request.url.path)
  return JSONResponse(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, content=_error_payload(str(exc), request_id=request_id))
